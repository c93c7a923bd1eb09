"""
AI Answer Cache.

Caches tutoring answers from a pay-per-token language model API and
accounts for token usage and cost.
"""

__version__ = "0.1.0"
