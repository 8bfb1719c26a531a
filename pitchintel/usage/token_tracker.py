"""Token and cost usage tracking with rolling retention"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pitchintel.models.usage import DailyLimitStatus, UsageRecord, UsageStats, UsageTotals

logger = logging.getLogger(__name__)

RETENTION_SECONDS = 30 * 24 * 60 * 60
# Average of gpt-4o-mini input/output pricing, per 1M tokens
FALLBACK_COST_PER_MILLION = 0.375


def day_key(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()


class TokenTracker:
    """
    Append-only log of billed calls

    Records older than 30 days are dropped on every `track` call; there is no
    background timer. Limit checks are advisory: the caller rejects work.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        retention_seconds: float = RETENTION_SECONDS,
    ):
        self.clock = clock
        self.retention_seconds = retention_seconds
        self.usage: List[UsageRecord] = []

    def track(self, endpoint: str, tokens: int, cost: Optional[float] = None):
        """Record a usage event and prune records outside the window"""
        tokens = max(int(tokens or 0), 0)
        if cost is None:
            cost = tokens / 1_000_000 * FALLBACK_COST_PER_MILLION

        now = self.clock()
        self.usage.append(
            UsageRecord(endpoint=endpoint, tokens=tokens, cost=max(cost, 0.0), timestamp=now)
        )

        cutoff = now - self.retention_seconds
        self.usage = [u for u in self.usage if u.timestamp > cutoff]

        logger.debug("Tracked %s tokens=%d cost=$%.6f", endpoint, tokens, cost)

    def get_todays_usage(self) -> Dict[str, float]:
        """Sum of today's records (UTC day)"""
        today = day_key(self.clock())
        totals = UsageTotals()
        for record in self.usage:
            if day_key(record.timestamp) == today:
                totals.add(record)
        return totals.model_dump()

    def check_daily_limits(
        self,
        max_daily_cost: float = 10.0,
        max_daily_tokens: int = 1_000_000,
    ) -> DailyLimitStatus:
        """Reaching a limit exactly counts as exceeding it"""
        today = self.get_todays_usage()
        return DailyLimitStatus(
            cost_exceeded=today["cost"] >= max_daily_cost,
            tokens_exceeded=today["tokens"] >= max_daily_tokens,
        )

    def get_stats(self) -> UsageStats:
        """Aggregate totals with day and endpoint breakdowns"""
        stats = UsageStats()
        for record in self.usage:
            stats.total_tokens += record.tokens
            stats.total_cost += record.cost
            stats.request_count += 1
            stats.daily_usage.setdefault(day_key(record.timestamp), UsageTotals()).add(record)
            stats.endpoint_breakdown.setdefault(record.endpoint, UsageTotals()).add(record)

        if stats.request_count:
            stats.average_tokens_per_request = stats.total_tokens / stats.request_count
        return stats

    def clear_stats(self):
        self.usage = []
