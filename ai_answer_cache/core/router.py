"""
Model tier routing.

Chooses between the cheap and the capable model from the shape of a request,
and derives the generation parameters that go with it.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .prompts import ResponseConfig

# Short questions under this many characters may use the cheap tier
SHORT_QUESTION_LENGTH = 100
MAX_TOKENS_CAP = 3000

STRUCTURED_FORMATS = frozenset({"json_object", "json_schema"})

COMPLEX_KEYWORDS = re.compile(
    r"(calculate|solve|prove|derive|analyze|explain in detail"
    r"|giải|chứng minh|phân tích|tính toán)",
    re.IGNORECASE,
)

DETAIL_KEYWORDS = re.compile(
    r"(explain in detail|phân tích chi tiết|giải thích đầy đủ)",
    re.IGNORECASE,
)


def is_structured(response_format: Optional[str]) -> bool:
    """Whether a response format asks for structured (JSON) output."""
    return response_format in STRUCTURED_FORMATS


def is_complex(question: str) -> bool:
    return bool(COMPLEX_KEYWORDS.search(question))


@dataclass(frozen=True)
class ModelRouter:
    """Picks a model tier for a request. Pure and deterministic."""
    capable_model: str
    cheap_model: str

    def select_model(
        self,
        question: str,
        has_images: bool = False,
        response_format: Optional[str] = None,
    ) -> str:
        """Select a model id. First matching rule wins.

        1. Images present -> capable model (vision quality)
        2. Structured output requested -> capable model (precision)
        3. Short question without complexity markers -> cheap model
        4. Anything else -> capable model
        """
        if has_images:
            return self.capable_model
        if is_structured(response_format):
            return self.capable_model
        if len(question) < SHORT_QUESTION_LENGTH and not is_complex(question):
            return self.cheap_model
        return self.capable_model


def calculate_max_tokens(question: str, config: Optional[ResponseConfig] = None) -> int:
    """Completion budget grown by each enabled response feature, capped at 3000."""
    tokens = 500
    if config is not None:
        if config.include_definition:
            tokens += 200
        if config.include_examples:
            tokens += 300
        if config.include_steps:
            tokens += 400
        if config.include_analogy:
            tokens += 200
        if config.custom_prompt:
            tokens += 200
        if is_structured(config.response_format):
            tokens = max(tokens, 1500)

    if DETAIL_KEYWORDS.search(question):
        tokens = max(tokens, 2000)

    return min(tokens, MAX_TOKENS_CAP)


def select_temperature(response_format: Optional[str] = None) -> float:
    """Lower temperature for structured output, conversational otherwise."""
    return 0.3 if is_structured(response_format) else 0.7
