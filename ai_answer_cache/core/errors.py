"""
Error taxonomy for the answer cache.

Configuration and upstream failures are raised to the caller. Cache and
accounting failures are described by their own types but are only ever
logged, never raised, by the components that own them.
"""


class AnswerCacheError(Exception):
    """Base class for all package errors."""


class ConfigurationError(AnswerCacheError):
    """Raised when a required setting (e.g. the API credential) is missing."""


class UpstreamError(AnswerCacheError):
    """Raised when the completion API call fails or returns a malformed response."""

    def __init__(self, message: str, model: str = None):
        super().__init__(message)
        self.model = model


class CacheError(AnswerCacheError):
    """Backing store failure during a cache read or write."""


class AccountingError(AnswerCacheError):
    """Backing store failure while recording usage."""


class SerializationError(AnswerCacheError):
    """Structured output could not be parsed in the expected format."""

    def __init__(self, message: str, content: str = ""):
        super().__init__(message)
        self.content = content
