"""API usage accounting for metered third-party providers."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.models import ApiUsage
from argufight.utils.timezone import range_start

logger = logging.getLogger(__name__)

VALID_RANGES = ("today", "week", "month", "all")


class ApiUsageService:
    """Record outbound provider calls and aggregate them for the admin dashboard."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        provider: str,
        endpoint: str,
        success: bool = True,
        *,
        model: str | None = None,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        total_tokens: int | None = None,
        cost: float = 0.0,
        error_message: str | None = None,
        response_time_ms: int | None = None,
        user_id: str | None = None,
        debate_id: str | None = None,
    ) -> ApiUsage:
        """Persist one provider call."""
        if total_tokens is None and (prompt_tokens is not None or completion_tokens is not None):
            total_tokens = (prompt_tokens or 0) + (completion_tokens or 0)

        usage = ApiUsage(
            provider=provider,
            endpoint=endpoint,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            cost=cost,
            success=success,
            error_message=error_message,
            response_time_ms=response_time_ms,
            user_id=user_id,
            debate_id=debate_id,
        )
        self.db.add(usage)
        await self.db.commit()
        await self.db.refresh(usage)
        return usage

    @staticmethod
    def _since(range_name: str, now: datetime | None = None) -> datetime | None:
        if range_name not in VALID_RANGES:
            raise ValueError(f"Invalid range: {range_name}. Must be one of {', '.join(VALID_RANGES)}")
        start = range_start(range_name, now)
        # created_at is stored naive in local time
        return start.replace(tzinfo=None) if start else None

    async def stats(self, range_name: str = "month", now: datetime | None = None) -> dict[str, Any]:
        """
        Aggregate usage over a time window.

        Returns:
            {totalCalls, successfulCalls, failedCalls, totalCost, totalTokens,
            usageByProvider: [{provider, calls, cost, tokens}]}
        """
        since = self._since(range_name, now)

        query = select(
            ApiUsage.provider,
            func.count(ApiUsage.id),
            func.sum(case((ApiUsage.success.is_(True), 1), else_=0)),
            func.coalesce(func.sum(ApiUsage.cost), 0.0),
            func.coalesce(func.sum(ApiUsage.total_tokens), 0),
        ).group_by(ApiUsage.provider)
        if since is not None:
            query = query.where(ApiUsage.created_at >= since)

        result = await self.db.execute(query)

        by_provider = []
        total_calls = successful = total_tokens = 0
        total_cost = 0.0
        for provider, calls, ok_calls, cost, tokens in result.all():
            total_calls += calls
            successful += ok_calls or 0
            total_cost += float(cost)
            total_tokens += int(tokens)
            by_provider.append(
                {"provider": provider, "calls": calls, "cost": float(cost), "tokens": int(tokens)}
            )

        by_provider.sort(key=lambda row: row["calls"], reverse=True)

        return {
            "totalCalls": total_calls,
            "successfulCalls": successful,
            "failedCalls": total_calls - successful,
            "totalCost": round(total_cost, 6),
            "totalTokens": total_tokens,
            "usageByProvider": by_provider,
        }

    async def records(
        self, range_name: str = "month", limit: int = 100, now: datetime | None = None
    ) -> list[ApiUsage]:
        """Most recent calls in the window, newest first."""
        since = self._since(range_name, now)

        query = select(ApiUsage).order_by(ApiUsage.created_at.desc(), ApiUsage.id.desc()).limit(limit)
        if since is not None:
            query = query.where(ApiUsage.created_at >= since)

        result = await self.db.execute(query)
        return list(result.scalars().all())
