"""
Unit tests for question normalization and hashing.
"""

import hashlib

from ai_answer_cache.core.normalizer import hash_question, normalize_question, question_key


class TestNormalizeQuestion:
    """Test question canonicalization."""

    def test_lowercases_trims_and_collapses_whitespace(self):
        """Verify case, edges and inner whitespace are canonicalized."""
        assert normalize_question("  Foo   Bar\t\nBaz  ") == "foo bar baz"

    def test_idempotent(self):
        """Normalizing twice gives the same result as once."""
        for text in ["  2+2=?  ", "What IS   x²?", "", "\n\t", "Phương   Trình"]:
            once = normalize_question(text)
            assert normalize_question(once) == once

    def test_unicode_lowercase(self):
        """Verify non-ASCII letters are lowercased too."""
        assert normalize_question("GIẢI Phương Trình") == "giải phương trình"


class TestHashQuestion:
    """Test cache key derivation."""

    def test_case_and_whitespace_insensitive(self):
        """Questions differing only in case/whitespace share a hash."""
        assert hash_question("  Foo   Bar") == hash_question("foo bar")

    def test_is_sha256_of_normalized_text(self):
        """Verify the digest is SHA-256 hex of the normalized string."""
        expected = hashlib.sha256("2+2=?".encode("utf-8")).hexdigest()
        assert hash_question("  2+2=?  ") == expected
        assert len(expected) == 64

    def test_different_questions_differ(self):
        """Verify distinct questions get distinct keys."""
        assert hash_question("2+2=?") != hash_question("2+3=?")

    def test_question_key_pairs_normalized_and_hash(self):
        """Verify question_key returns both parts consistently."""
        normalized, digest = question_key("  What is   2 + 2? ")
        assert normalized == "what is 2 + 2?"
        assert digest == hash_question(normalized)
