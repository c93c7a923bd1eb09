"""
Repository pattern for data access.

Handles the response cache table and the usage bucket tables. Every
repository method returns a StoreResult instead of raising on backend
failures.
"""

import json
import sqlite3
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from .db import DEFAULT_DB_PATH, from_db_timestamp, get_connection, to_db_timestamp
from .models import CacheEntry, StoreResult, UsageBucket, UsageEvent, UsageTotals

T = TypeVar("T")

DIMENSION_MODEL = "model"
DIMENSION_METHOD = "method"


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the cache and usage tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS response_cache (
                question_hash TEXT PRIMARY KEY,
                normalized_question TEXT NOT NULL,
                response TEXT NOT NULL,
                metadata TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                hit_count INTEGER NOT NULL DEFAULT 0 CHECK (hit_count >= 0)
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_response_cache_expires_at
            ON response_cache (expires_at)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_bucket (
                period TEXT NOT NULL,
                bucket_key TEXT NOT NULL,
                total_requests INTEGER NOT NULL DEFAULT 0,
                total_tokens INTEGER NOT NULL DEFAULT 0,
                total_cost REAL NOT NULL DEFAULT 0,
                cache_hits INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (period, bucket_key)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_breakdown (
                period TEXT NOT NULL,
                bucket_key TEXT NOT NULL,
                dimension TEXT NOT NULL,
                name TEXT NOT NULL,
                requests INTEGER NOT NULL DEFAULT 0,
                tokens INTEGER NOT NULL DEFAULT 0,
                cost REAL NOT NULL DEFAULT 0,
                PRIMARY KEY (period, bucket_key, dimension, name)
            )
        """)
        conn.commit()
    finally:
        conn.close()


def ensure_schema(db_path: str = DEFAULT_DB_PATH) -> StoreResult[None]:
    """Like initialize_schema, but reports failure as a StoreResult."""
    try:
        initialize_schema(db_path)
    except sqlite3.Error as e:
        return StoreResult.failure(e)
    return StoreResult.success()


class _SQLiteRepository:
    """Shared connection handling for the repositories."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def _run(self, work: Callable[[sqlite3.Connection], T]) -> StoreResult[T]:
        """Run ``work`` in its own connection and transaction."""
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            return StoreResult.failure(e)
        try:
            value = work(conn)
            conn.commit()
            return StoreResult.success(value)
        except Exception as e:
            try:
                conn.rollback()
            except sqlite3.Error:
                pass  # the original failure is the one reported
            return StoreResult.failure(e)
        finally:
            conn.close()


class CacheRepository(_SQLiteRepository):
    """Rows of the ``response_cache`` table keyed by question hash."""

    def get_entry(self, question_hash: str) -> StoreResult[Optional[CacheEntry]]:
        def work(conn):
            row = conn.execute("""
                SELECT question_hash, normalized_question, response, metadata,
                       created_at, updated_at, expires_at, hit_count
                FROM response_cache
                WHERE question_hash = ?
            """, (question_hash,)).fetchone()
            if row is None:
                return None
            return CacheEntry(
                question_hash=row[0],
                normalized_question=row[1],
                response=row[2],
                metadata=json.loads(row[3]) if row[3] else None,
                created_at=from_db_timestamp(row[4]),
                updated_at=from_db_timestamp(row[5]),
                expires_at=from_db_timestamp(row[6]),
                hit_count=row[7],
            )
        return self._run(work)

    def record_hit(self, question_hash: str, now: datetime) -> StoreResult[Optional[int]]:
        """Increment the hit count in place and return the new count."""
        def work(conn):
            conn.execute("""
                UPDATE response_cache
                SET hit_count = hit_count + 1, updated_at = ?
                WHERE question_hash = ?
            """, (to_db_timestamp(now), question_hash))
            row = conn.execute(
                "SELECT hit_count FROM response_cache WHERE question_hash = ?",
                (question_hash,),
            ).fetchone()
            return row[0] if row else None
        return self._run(work)

    def upsert_entry(
        self,
        question_hash: str,
        normalized_question: str,
        response: str,
        metadata: Optional[dict],
        now: datetime,
        expires_at: datetime,
    ) -> StoreResult[None]:
        """Insert a row, or refresh response/metadata/expiry of an existing one.

        The hit count starts at 0 and is never touched by a write.
        """
        def work(conn):
            conn.execute("""
                INSERT INTO response_cache
                (question_hash, normalized_question, response, metadata,
                 created_at, updated_at, expires_at, hit_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, 0)
                ON CONFLICT(question_hash) DO UPDATE SET
                    normalized_question = excluded.normalized_question,
                    response = excluded.response,
                    metadata = excluded.metadata,
                    updated_at = excluded.updated_at,
                    expires_at = excluded.expires_at
            """, (
                question_hash,
                normalized_question,
                response,
                json.dumps(metadata, ensure_ascii=False) if metadata is not None else None,
                to_db_timestamp(now),
                to_db_timestamp(now),
                to_db_timestamp(expires_at),
            ))
        return self._run(work)

    def delete_entry(self, question_hash: str) -> StoreResult[bool]:
        def work(conn):
            cursor = conn.execute(
                "DELETE FROM response_cache WHERE question_hash = ?", (question_hash,)
            )
            return cursor.rowcount > 0
        return self._run(work)

    def purge_expired(self, now: datetime) -> StoreResult[int]:
        """Delete every row whose expiry is before ``now``."""
        def work(conn):
            cursor = conn.execute(
                "DELETE FROM response_cache WHERE expires_at < ?", (to_db_timestamp(now),)
            )
            return cursor.rowcount
        return self._run(work)

    def stats(self) -> StoreResult[Tuple[int, int]]:
        """Return ``(entry_count, total_hits)``."""
        def work(conn):
            row = conn.execute(
                "SELECT COUNT(*), SUM(hit_count) FROM response_cache"
            ).fetchone()
            return row[0] or 0, row[1] or 0
        return self._run(work)


class UsageRepository(_SQLiteRepository):
    """Daily and monthly usage aggregates.

    Increments are applied with SQL upserts in a single transaction, so
    concurrent writers to the same bucket never lose updates.
    """

    def apply_event(
        self,
        event: UsageEvent,
        buckets: Iterable[Tuple[str, str]],
    ) -> StoreResult[None]:
        """Add one event to each ``(period, bucket_key)`` bucket."""
        tokens = 0 if event.cached else event.total_tokens
        cost = 0.0 if event.cached else event.estimated_cost
        cache_hits = 1 if event.cached else 0
        updated_at = to_db_timestamp(event.timestamp)

        def work(conn):
            for period, key in buckets:
                conn.execute("""
                    INSERT INTO usage_bucket
                    (period, bucket_key, total_requests, total_tokens,
                     total_cost, cache_hits, updated_at)
                    VALUES (?, ?, 1, ?, ?, ?, ?)
                    ON CONFLICT(period, bucket_key) DO UPDATE SET
                        total_requests = total_requests + 1,
                        total_tokens = total_tokens + excluded.total_tokens,
                        total_cost = total_cost + excluded.total_cost,
                        cache_hits = cache_hits + excluded.cache_hits,
                        updated_at = excluded.updated_at
                """, (period, key, tokens, cost, cache_hits, updated_at))

                if event.cached:
                    continue

                for dimension, name in (
                    (DIMENSION_MODEL, event.model),
                    (DIMENSION_METHOD, event.method),
                ):
                    conn.execute("""
                        INSERT INTO usage_breakdown
                        (period, bucket_key, dimension, name, requests, tokens, cost)
                        VALUES (?, ?, ?, ?, 1, ?, ?)
                        ON CONFLICT(period, bucket_key, dimension, name) DO UPDATE SET
                            requests = requests + 1,
                            tokens = tokens + excluded.tokens,
                            cost = cost + excluded.cost
                    """, (period, key, dimension, name, tokens, cost))
        return self._run(work)

    def get_bucket(self, period: str, key: str) -> StoreResult[Optional[UsageBucket]]:
        def work(conn):
            row = conn.execute("""
                SELECT total_requests, total_tokens, total_cost, cache_hits
                FROM usage_bucket
                WHERE period = ? AND bucket_key = ?
            """, (period, key)).fetchone()
            if row is None:
                return None

            bucket = UsageBucket(
                period=period,
                key=key,
                total_requests=row[0],
                total_tokens=row[1],
                total_cost=row[2],
                cache_hits=row[3],
            )
            cursor = conn.execute("""
                SELECT dimension, name, requests, tokens, cost
                FROM usage_breakdown
                WHERE period = ? AND bucket_key = ?
                ORDER BY dimension, name
            """, (period, key))
            for dimension, name, requests, tokens, cost in cursor.fetchall():
                totals = UsageTotals(requests=requests, tokens=tokens, cost=cost)
                if dimension == DIMENSION_MODEL:
                    bucket.by_model[name] = totals
                else:
                    bucket.by_method[name] = totals
            return bucket
        return self._run(work)

    def list_keys(self, period: str) -> StoreResult[List[str]]:
        """All bucket keys of a period, newest first."""
        def work(conn):
            cursor = conn.execute(
                "SELECT bucket_key FROM usage_bucket WHERE period = ? ORDER BY bucket_key DESC",
                (period,),
            )
            return [row[0] for row in cursor.fetchall()]
        return self._run(work)

    def delete_before(self, period: str, cutoff_key: str) -> StoreResult[int]:
        """Delete buckets of ``period`` whose key sorts before ``cutoff_key``."""
        def work(conn):
            conn.execute(
                "DELETE FROM usage_breakdown WHERE period = ? AND bucket_key < ?",
                (period, cutoff_key),
            )
            cursor = conn.execute(
                "DELETE FROM usage_bucket WHERE period = ? AND bucket_key < ?",
                (period, cutoff_key),
            )
            return cursor.rowcount
        return self._run(work)
