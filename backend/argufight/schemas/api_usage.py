"""API usage schemas (camelCase to match the admin dashboard)."""

from datetime import datetime

from pydantic import BaseModel


class ProviderUsage(BaseModel):
    provider: str
    calls: int
    cost: float
    tokens: int


class ApiUsageStats(BaseModel):
    totalCalls: int
    successfulCalls: int
    failedCalls: int
    totalCost: float
    totalTokens: int
    usageByProvider: list[ProviderUsage]


class ApiUsageRecord(BaseModel):
    id: int
    provider: str
    endpoint: str
    model: str | None = None
    promptTokens: int | None = None
    completionTokens: int | None = None
    totalTokens: int | None = None
    cost: float
    success: bool
    errorMessage: str | None = None
    responseTime: int | None = None
    userId: str | None = None
    debateId: str | None = None
    createdAt: datetime | None = None


class ApiUsageRecords(BaseModel):
    records: list[ApiUsageRecord]
