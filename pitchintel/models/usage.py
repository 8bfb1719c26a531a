"""Usage tracking and cache bookkeeping models"""

from dataclasses import dataclass
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from pitchintel.models.completion import CompletionResult


class UsageRecord(BaseModel):
    """One billed call, never mutated after creation"""
    model_config = ConfigDict(frozen=True)

    endpoint: str
    tokens: int = Field(0, ge=0)
    cost: float = Field(0.0, ge=0.0)
    timestamp: float


class UsageTotals(BaseModel):
    """Token/cost/request totals for a day or endpoint"""
    tokens: int = 0
    cost: float = 0.0
    requests: int = 0

    def add(self, record: UsageRecord):
        self.tokens += record.tokens
        self.cost += record.cost
        self.requests += 1


class UsageStats(BaseModel):
    """Aggregate usage report"""
    total_tokens: int = 0
    total_cost: float = 0.0
    request_count: int = 0
    average_tokens_per_request: float = 0.0
    daily_usage: Dict[str, UsageTotals] = Field(default_factory=dict)
    endpoint_breakdown: Dict[str, UsageTotals] = Field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        return {
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
            "requestCount": self.request_count,
            "averageTokensPerRequest": self.average_tokens_per_request,
            "dailyUsage": {k: v.model_dump() for k, v in self.daily_usage.items()},
            "endpointBreakdown": {k: v.model_dump() for k, v in self.endpoint_breakdown.items()},
        }


class DailyLimitStatus(BaseModel):
    """Advisory result of a daily budget check"""
    cost_exceeded: bool = False
    tokens_exceeded: bool = False


@dataclass
class CacheEntry:
    """Cached completion owned by the response cache"""
    fingerprint: str
    payload: CompletionResult
    created_at: float
    expires_at: float
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at
