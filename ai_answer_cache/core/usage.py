"""
Token usage reported by the completion API.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class TokenUsage:
    """Token counts for a single completion.

    ``reported_total`` keeps the provider's own total when it sends one;
    otherwise the total is prompt + completion.
    """
    prompt_tokens: int
    completion_tokens: int
    reported_total: Optional[int] = None

    @property
    def total_tokens(self) -> int:
        """Total tokens billed for the call."""
        if self.reported_total is not None:
            return self.reported_total
        return self.prompt_tokens + self.completion_tokens

    @classmethod
    def from_response(cls, usage: Any) -> "TokenUsage":
        """Build from the ``usage`` object of an OpenAI response (may be None)."""
        if usage is None:
            return cls(prompt_tokens=0, completion_tokens=0)
        return cls(
            prompt_tokens=getattr(usage, "prompt_tokens", None) or 0,
            completion_tokens=getattr(usage, "completion_tokens", None) or 0,
            reported_total=getattr(usage, "total_tokens", None),
        )

    def to_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }
