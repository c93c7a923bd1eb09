"""
Data models for storage layer.

Defines cache rows, usage events and aggregate buckets.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

DAILY = "daily"
MONTHLY = "monthly"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a store operation.

    Store methods never raise for backend failures; they return a failed
    result and leave logging to the caller.
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[Exception] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "StoreResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "StoreResult[T]":
        return cls(ok=False, error=error)


@dataclass(frozen=True)
class CacheEntry:
    """A cached answer keyed by the hash of its normalized question."""
    question_hash: str
    normalized_question: str
    response: str
    metadata: Optional[Dict[str, Any]]
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    hit_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


@dataclass(frozen=True)
class UsageEvent:
    """One completion request, cached or not. Not persisted on its own."""
    timestamp: datetime
    model: str
    method: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    cached: bool = False


@dataclass
class UsageTotals:
    """Per-model or per-method sub-aggregate."""
    requests: int = 0
    tokens: int = 0
    cost: float = 0.0


@dataclass
class UsageBucket:
    """Aggregate usage for one day (``YYYY-MM-DD``) or month (``YYYY-MM``)."""
    period: str
    key: str
    total_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    cache_hits: int = 0
    by_model: Dict[str, UsageTotals] = field(default_factory=dict)
    by_method: Dict[str, UsageTotals] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "key": self.key,
            "total_requests": self.total_requests,
            "total_tokens": self.total_tokens,
            "total_cost": self.total_cost,
            "cache_hits": self.cache_hits,
            "by_model": {name: vars(totals).copy() for name, totals in self.by_model.items()},
            "by_method": {name: vars(totals).copy() for name, totals in self.by_method.items()},
        }
