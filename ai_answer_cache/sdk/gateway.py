"""
Completion gateway over the OpenAI chat completions API.

Issues one call per request and reports content plus token usage. It does
not retry, cache or record usage; callers own those policies.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from openai import OpenAI, OpenAIError

from ..core.errors import ConfigurationError, UpstreamError
from ..core.usage import TokenUsage

logger = logging.getLogger(__name__)

MessageContent = Union[str, List[Dict[str, Any]]]


@dataclass(frozen=True)
class CompletionResult:
    """Content and accounting data of one completion."""
    content: str
    usage: TokenUsage
    finish_reason: Optional[str]
    model: str


class CompletionGateway:
    """Thin wrapper around ``OpenAI().chat.completions.create``."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 60.0,
        base_url: str = "http://localhost:3000",
        client: Any = None,
    ):
        """Initialize the gateway.

        Args:
            api_key: OpenAI API key (required unless ``client`` is given)
            timeout: Seconds before a completion request is abandoned; an
                injected ``client`` keeps its own timeout
            base_url: Prefix for relative image URLs
            client: Pre-built OpenAI-compatible client

        Raises:
            ConfigurationError: If no API key and no client are supplied
        """
        if client is None:
            if not api_key or not api_key.strip():
                raise ConfigurationError("OpenAI API key is not configured")
            # Single attempt per call
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.base_url = base_url.rstrip("/")

    def resolve_image_url(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://") or url.startswith("data:"):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def build_user_content(self, text: str, images: Optional[Sequence[str]] = None) -> MessageContent:
        """Plain text, or text followed by one ``image_url`` part per image."""
        if not images:
            return text
        parts: List[Dict[str, Any]] = [{"type": "text", "text": text}]
        for url in images:
            parts.append({"type": "image_url", "image_url": {"url": self.resolve_image_url(url)}})
        return parts

    def complete(
        self,
        system_prompt: str,
        user_content: str,
        model: str,
        temperature: float,
        max_tokens: int,
        response_format: Optional[str] = None,
        images: Optional[Sequence[str]] = None,
    ) -> CompletionResult:
        """Run a chat completion.

        Args:
            system_prompt: System message
            user_content: User message text
            model: Model id
            temperature: Sampling temperature
            max_tokens: Completion token limit
            response_format: Optional format type, e.g. ``"json_object"``
            images: Optional image URLs attached to the user message

        Returns:
            CompletionResult with content, usage and finish reason

        Raises:
            UpstreamError: On any API failure or malformed response
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": self.build_user_content(user_content, images)},
        ]
        request: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            request["response_format"] = {"type": response_format}

        try:
            response = self.client.chat.completions.create(**request)
        except OpenAIError as e:
            logger.error("Completion request failed: model=%s error=%s", model, e)
            raise UpstreamError(f"Completion request failed: {e}", model=model) from e

        try:
            choice = response.choices[0]
            content = choice.message.content or ""
            finish_reason = choice.finish_reason
        except (AttributeError, IndexError, TypeError) as e:
            logger.error("Malformed completion response: model=%s error=%s", model, e)
            raise UpstreamError(f"Malformed completion response: {e}", model=model) from e

        return CompletionResult(
            content=content,
            usage=TokenUsage.from_response(getattr(response, "usage", None)),
            finish_reason=finish_reason,
            model=getattr(response, "model", None) or model,
        )
