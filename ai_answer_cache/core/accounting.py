"""
Usage accounting.

Aggregates usage events into daily and monthly buckets. Accounting is
observability only: failures are logged and never reach the caller.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from ai_answer_cache.storage.db import utc_now
from ai_answer_cache.storage.models import DAILY, MONTHLY, UsageBucket, UsageEvent
from ai_answer_cache.storage.repository import UsageRepository

from .errors import AccountingError

logger = logging.getLogger(__name__)

DAILY_RETENTION_DAYS = 90
MONTHLY_RETENTION_DAYS = 365


def day_key(timestamp: datetime) -> str:
    """``YYYY-MM-DD`` of a timestamp in UTC."""
    return _as_utc(timestamp).strftime("%Y-%m-%d")


def month_key(timestamp: datetime) -> str:
    """``YYYY-MM`` of a timestamp in UTC."""
    return _as_utc(timestamp).strftime("%Y-%m")


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class UsageAccountant:
    """Records usage events and reads back the aggregates."""

    def __init__(
        self,
        repository: UsageRepository,
        enabled: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.enabled = enabled
        self.clock = clock

    def record(self, event: UsageEvent) -> None:
        """Add an event to its day and month buckets.

        Every event counts as a request. Cached events only add a cache hit;
        the others add tokens, cost and the per-model and per-method totals.
        """
        if not self.enabled:
            return

        result = self.repository.apply_event(
            event,
            [(DAILY, day_key(event.timestamp)), (MONTHLY, month_key(event.timestamp))],
        )
        if not result.ok:
            logger.warning("%s", AccountingError(f"failed to record usage: {result.error}"))

    def _read(self, period: str, key: str) -> Optional[UsageBucket]:
        if not self.enabled:
            return None
        result = self.repository.get_bucket(period, key)
        if not result.ok:
            logger.warning("%s", AccountingError(f"failed to read {period} usage {key}: {result.error}"))
            return None
        return result.value

    def get_daily(self, date: Optional[str] = None) -> Optional[UsageBucket]:
        """Bucket for ``YYYY-MM-DD`` (default: today), or None."""
        return self._read(DAILY, date or day_key(self.clock()))

    def get_monthly(self, month: Optional[str] = None) -> Optional[UsageBucket]:
        """Bucket for ``YYYY-MM`` (default: this month), or None."""
        return self._read(MONTHLY, month or month_key(self.clock()))

    def summary(self) -> Dict[str, Optional[UsageBucket]]:
        return {"today": self.get_daily(), "this_month": self.get_monthly()}

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Delete daily buckets older than 90 days and monthly ones older than 365.

        Returns:
            Number of buckets removed
        """
        now = now or self.clock()
        removed = 0
        cutoffs = (
            (DAILY, day_key(now - timedelta(days=DAILY_RETENTION_DAYS))),
            (MONTHLY, month_key(now - timedelta(days=MONTHLY_RETENTION_DAYS))),
        )
        for period, cutoff in cutoffs:
            result = self.repository.delete_before(period, cutoff)
            if not result.ok:
                logger.warning("%s", AccountingError(f"failed to sweep {period} usage: {result.error}"))
                continue
            removed += result.value
        return removed
