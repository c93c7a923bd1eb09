"""
Database connection management.

Provides SQLite connections and timestamp encoding for persistence.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_DB_PATH = "ai_answer_cache.db"

# Fixed-width UTC text so stored timestamps compare correctly as strings
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def get_connection(db_path: str = DEFAULT_DB_PATH, timeout: float = 5.0) -> sqlite3.Connection:
    """Create and return a SQLite database connection.

    Each store operation opens its own connection, so callers on different
    threads never share one. ``timeout`` is how long a writer waits on a
    locked database.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait for a database lock

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=timeout)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def to_db_timestamp(value: datetime) -> str:
    """Encode a datetime as UTC text. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def from_db_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
