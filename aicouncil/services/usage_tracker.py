"""
Usage Tracker — Per-user request, token and cost tracking with an hourly
rate limit.

Records live in process memory only: a restart resets every counter and all
history. Tracking is advisory, not billing-grade.

Rate limiting counts requests in a bucket keyed by (user_id, hour of day).
A bucket is only valid during the wall-clock hour it was opened in, so the
count restarts at zero when the hour changes. This is a clock-hour bucket,
not a sliding window: a user can spend up to twice the limit across an hour
boundary (e.g. 20 requests at 10:59 and 20 more at 11:00 on FREE). Hours are
local wall-clock time with no timezone normalization.

Usage:
    tracker = UsageTracker()
    tracker.record("user-1", "gpt-4", tokens=512, cost=0.023, endpoint=EndpointCategory.TEST)
    result = tracker.check_limit("user-1", Tier.FREE)
    if not result.allowed:
        ...
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from starlette.requests import HTTPConnection

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    FREE = "FREE"
    PRO = "PRO"
    BUSINESS = "BUSINESS"


class EndpointCategory(str, Enum):
    CHAT = "chat"
    RECOMMENDATION = "recommendation"
    TEST = "test"


DEFAULT_TIER_LIMITS: Dict[str, int] = {
    Tier.FREE.value: 20,
    Tier.PRO.value: 100,
    Tier.BUSINESS.value: 500,
}


@dataclass
class UsageRecord:
    """A single tracked API call."""
    user_id: str
    model: str
    tokens_used: int
    estimated_cost: float
    timestamp: datetime
    endpoint: EndpointCategory

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "model": self.model,
            "tokensUsed": self.tokens_used,
            "estimatedCost": self.estimated_cost,
            "timestamp": self.timestamp.isoformat(),
            "endpointType": self.endpoint.value,
        }


@dataclass
class UsageStats:
    total_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    requests_this_hour: int = 0
    last_request_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
            "requestsThisHour": self.requests_this_hour,
            "lastRequest": self.last_request_time.isoformat() if self.last_request_time else None,
        }


@dataclass
class RateLimitResult:
    allowed: bool
    requests_this_hour: int
    limit: int
    reason: Optional[str] = None


@dataclass
class _HourBucket:
    opened_at: datetime  # Truncated to the hour
    count: int = 0


@dataclass
class _UserUsage:
    records: List[UsageRecord] = field(default_factory=list)


def _hour_start(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


class UsageTracker:
    """
    In-process usage store.

    One instance is owned by the application (app.state.usage_tracker) and
    handed to request handlers through a dependency; tests build their own.
    A lock guards all mutation so threaded servers see consistent counts.
    """

    def __init__(
        self,
        tier_limits: Optional[Dict[str, int]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._limits = dict(tier_limits or DEFAULT_TIER_LIMITS)
        self._clock = clock
        self._usage: Dict[str, _UserUsage] = {}
        self._buckets: Dict[Tuple[str, int], _HourBucket] = {}
        self._lock = threading.Lock()

    # ── Recording ────────────────────────────────────────

    def record(
        self,
        user_id: str,
        model: str,
        tokens: int,
        cost: float,
        endpoint: Union[EndpointCategory, str] = EndpointCategory.CHAT,
    ) -> UsageRecord:
        """Append a usage record and bump the current hour's bucket."""
        now = self._clock()
        record = UsageRecord(
            user_id=user_id,
            model=model,
            tokens_used=tokens,
            estimated_cost=cost,
            timestamp=now,
            endpoint=EndpointCategory(endpoint),
        )
        with self._lock:
            self._usage.setdefault(user_id, _UserUsage()).records.append(record)

            key = (user_id, now.hour)
            bucket = self._buckets.get(key)
            if bucket is None or bucket.opened_at != _hour_start(now):
                bucket = _HourBucket(opened_at=_hour_start(now))
                self._buckets[key] = bucket
            bucket.count += 1

        logger.info(
            f"[USAGE] user={user_id} endpoint={record.endpoint.value} model={model} "
            f"tokens={tokens} cost=${cost:.4f}"
        )
        return record

    # ── Queries ──────────────────────────────────────────

    def _requests_this_hour(self, user_id: str, now: datetime) -> int:
        bucket = self._buckets.get((user_id, now.hour))
        if bucket is None or bucket.opened_at != _hour_start(now):
            return 0
        return bucket.count

    def limit_for(self, tier: Union[Tier, str]) -> int:
        return self._limits[Tier(tier).value]

    def check_limit(self, user_id: str, tier: Union[Tier, str]) -> RateLimitResult:
        """Compare the current hour's request count against the tier ceiling."""
        tier = Tier(tier)
        limit = self.limit_for(tier)
        with self._lock:
            requests_this_hour = self._requests_this_hour(user_id, self._clock())

        if requests_this_hour >= limit:
            return RateLimitResult(
                allowed=False,
                requests_this_hour=requests_this_hour,
                limit=limit,
                reason=(
                    f"Rate limit exceeded. You have {requests_this_hour} requests this hour. "
                    f"Limit: {limit} requests/hour for {tier.value} tier."
                ),
            )
        return RateLimitResult(allowed=True, requests_this_hour=requests_this_hour, limit=limit)

    def stats_for(self, user_id: str) -> UsageStats:
        with self._lock:
            records = list(self._usage.get(user_id, _UserUsage()).records)
            requests_this_hour = self._requests_this_hour(user_id, self._clock())

        return UsageStats(
            total_requests=len(records),
            total_tokens=sum(r.tokens_used for r in records),
            total_cost=sum(r.estimated_cost for r in records),
            requests_this_hour=requests_this_hour,
            last_request_time=records[-1].timestamp if records else None,
        )

    def records_for(self, user_id: str) -> List[UsageRecord]:
        with self._lock:
            return list(self._usage.get(user_id, _UserUsage()).records)

    def system_stats(self) -> Dict[str, Any]:
        """Totals across every tracked user (admin dashboard)."""
        with self._lock:
            all_records = [r for u in self._usage.values() for r in u.records]
            total_users = len(self._usage)
        return {
            "totalUsers": total_users,
            "totalRequests": len(all_records),
            "totalTokens": sum(r.tokens_used for r in all_records),
            "totalCost": sum(r.estimated_cost for r in all_records),
        }

    # ── Maintenance ──────────────────────────────────────

    def prune_stale_buckets(self) -> int:
        """Drop buckets opened in an earlier hour. Counting is unaffected."""
        current = _hour_start(self._clock())
        with self._lock:
            stale = [k for k, b in self._buckets.items() if b.opened_at != current]
            for key in stale:
                del self._buckets[key]
        if stale:
            logger.debug(f"[USAGE] Pruned {len(stale)} stale hourly bucket(s)")
        return len(stale)

    def reset_hourly_counters(self) -> None:
        with self._lock:
            self._buckets.clear()
        logger.info("[USAGE] Hourly request counters reset")

    def clear(self) -> None:
        """Drop all usage history and counters."""
        with self._lock:
            self._usage.clear()
            self._buckets.clear()
        logger.info("[USAGE] All usage data cleared")


def get_usage_tracker(conn: HTTPConnection) -> UsageTracker:
    """FastAPI dependency: the application's tracker (works for HTTP and WebSocket routes)."""
    return conn.app.state.usage_tracker
