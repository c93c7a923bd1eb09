"""
Response cache for generated answers.

Answers are keyed by the hash of the normalized question, expire after a
TTL and count their hits. Caching is best-effort: store failures are
logged and read as "nothing cached".
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from ai_answer_cache.storage.db import utc_now
from ai_answer_cache.storage.models import StoreResult
from ai_answer_cache.storage.repository import CacheRepository

from .errors import CacheError
from .normalizer import question_key

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 24 * 3600


@dataclass(frozen=True)
class CachedAnswer:
    """A cache hit."""
    response: str
    metadata: Dict[str, Any]


class ResponseCache:
    """TTL cache of answers over a CacheRepository."""

    def __init__(
        self,
        repository: CacheRepository,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.repository = repository
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    def _failed(self, result: StoreResult, action: str) -> bool:
        if result.ok:
            return False
        error = CacheError(f"cache {action} failed: {result.error}")
        logger.warning("%s", error)
        return True

    def get(self, question: str) -> Optional[CachedAnswer]:
        """Return the cached answer for a question, or None.

        An expired row is deleted and reported as a miss. A hit increments
        the row's hit count.
        """
        _, question_hash = question_key(question)
        now = self.clock()

        found = self.repository.get_entry(question_hash)
        if self._failed(found, "lookup"):
            return None
        entry = found.value
        if entry is None:
            return None

        if entry.is_expired(now):
            logger.debug("Cache entry %s expired at %s", question_hash[:12], entry.expires_at)
            self._failed(self.repository.delete_entry(question_hash), "delete")
            return None

        # The answer is still good even if the hit can't be counted
        self._failed(self.repository.record_hit(question_hash, now), "hit update")
        return CachedAnswer(response=entry.response, metadata=entry.metadata or {})

    def set(self, question: str, response: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Store or refresh the answer to a question with a new expiry."""
        normalized, question_hash = question_key(question)
        now = self.clock()
        result = self.repository.upsert_entry(
            question_hash=question_hash,
            normalized_question=normalized,
            response=response,
            metadata=metadata,
            now=now,
            expires_at=now + self.ttl,
        )
        self._failed(result, "write")

    def purge_expired(self) -> int:
        """Delete all expired rows. Returns the number removed (0 on failure)."""
        result = self.repository.purge_expired(self.clock())
        if self._failed(result, "purge"):
            return 0
        return result.value
