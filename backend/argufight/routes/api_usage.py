"""API usage dashboard endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.database import get_db
from argufight.dependencies.auth import require_admin
from argufight.models.principal import AuthUser
from argufight.schemas.api_usage import ApiUsageRecords, ApiUsageStats
from argufight.services.api_usage import ApiUsageService

router = APIRouter()

UsageRange = Literal["today", "week", "month", "all"]


@router.get("/stats", response_model=ApiUsageStats)
async def get_usage_stats(
    range_name: UsageRange = Query("month", alias="range"),
    db: AsyncSession = Depends(get_db),
    user: AuthUser = Depends(require_admin),
):
    """Aggregate call counts, cost and tokens per provider."""
    return await ApiUsageService(db).stats(range_name)


@router.get("/records", response_model=ApiUsageRecords)
async def get_usage_records(
    range_name: UsageRange = Query("month", alias="range"),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    user: AuthUser = Depends(require_admin),
):
    """Most recent provider calls, newest first."""
    records = await ApiUsageService(db).records(range_name, limit=limit)
    return {"records": [record.to_dict() for record in records]}
