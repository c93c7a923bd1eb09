"""
Question normalization and hashing.

Derives the deterministic cache key for a question.
"""

import hashlib
import re
from typing import Tuple

_WHITESPACE = re.compile(r"\s+")


def normalize_question(question: str) -> str:
    """Canonicalize a question: lowercase, trim, collapse whitespace runs.

    Idempotent: ``normalize_question(normalize_question(s)) == normalize_question(s)``.
    """
    return _WHITESPACE.sub(" ", question.lower().strip())


def hash_question(question: str) -> str:
    """Return the SHA-256 hex digest of the normalized question."""
    normalized = normalize_question(question)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def question_key(question: str) -> Tuple[str, str]:
    """Return ``(normalized_question, question_hash)`` for a raw question."""
    normalized = normalize_question(question)
    return normalized, hashlib.sha256(normalized.encode("utf-8")).hexdigest()
