"""
Answer service.

Ties the cache, router, prompt builder, gateway and usage accountant
together into the operations the host application calls.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence

from ..config.loader import Settings
from ..core.accounting import UsageAccountant
from ..core.cache import ResponseCache
from ..core.errors import ConfigurationError, SerializationError
from ..core.pricing import calculate_cost
from ..core.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    CHECK_ANSWER_SYSTEM_PROMPT,
    CLARIFY_SYSTEM_PROMPT,
    ResponseConfig,
    UserContext,
    build_analysis_prompt,
    build_check_answer_prompt,
    build_clarify_prompt,
    build_system_prompt,
)
from ..core.router import ModelRouter, calculate_max_tokens, is_structured, select_temperature
from ..storage.db import utc_now
from ..storage.models import UsageBucket, UsageEvent
from ..storage.repository import CacheRepository, UsageRepository, ensure_schema
from .gateway import CompletionGateway, CompletionResult

logger = logging.getLogger(__name__)

METHOD_GENERATE_ANSWER = "generate_answer"
METHOD_ANALYZE = "analyze"
METHOD_CHECK_ANSWER = "check_answer"
METHOD_CLARIFY_ANSWER = "clarify_answer"


class AnswerService:
    """Cached, cost-accounted access to the completion API.

    Cache and accounting failures degrade to extra cost, never to errors.
    Missing credentials, upstream failures and unparseable structured
    output are raised to the caller.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: Optional[CompletionGateway] = None,
        cache: Optional[ResponseCache] = None,
        accountant: Optional[UsageAccountant] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.clock = clock
        self.router = ModelRouter(
            capable_model=settings.default_model,
            cheap_model=settings.cheap_model,
        )
        self._gateway = gateway
        self.cache = cache or ResponseCache(
            CacheRepository(settings.db_path),
            ttl_seconds=settings.cache_ttl_seconds,
            clock=clock,
        )
        self.accountant = accountant or UsageAccountant(
            UsageRepository(settings.db_path),
            enabled=settings.monitoring_enabled,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnswerService":
        """Build a service on the configured SQLite file, creating tables if needed."""
        result = ensure_schema(settings.db_path)
        if not result.ok:
            logger.warning("Could not initialize store at %s: %s", settings.db_path, result.error)
        return cls(settings)

    @property
    def gateway(self) -> CompletionGateway:
        """The completion gateway, created on first use.

        Raises:
            ConfigurationError: If no API key is configured
        """
        if self._gateway is None:
            self._gateway = CompletionGateway(
                api_key=self.settings.api_key,
                timeout=self.settings.request_timeout_seconds,
                base_url=self.settings.app_url,
            )
        return self._gateway

    def _require_credentials(self) -> None:
        if self._gateway is None and not self.settings.has_credentials:
            raise ConfigurationError("OpenAI API key is not configured")

    def generate_answer(
        self,
        question: str,
        images: Optional[Sequence[str]] = None,
        user_context: Optional[UserContext] = None,
        config: Optional[ResponseConfig] = None,
        base_prompt: Optional[str] = None,
    ) -> str:
        """Answer a student's question, from cache when possible.

        Args:
            question: The question text
            images: Optional image URLs attached to the question
            user_context: What is known about the student
            config: Response style switches
            base_prompt: Extra system instructions from the host app

        Returns:
            The answer text

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamError: If the completion call fails
            SerializationError: If structured output was requested and is not valid JSON
        """
        self._require_credentials()

        response_format = config.response_format if config else None
        has_images = bool(images)
        model = self.router.select_model(question, has_images, response_format)
        # The key covers the question text only, so image and structured
        # requests never read or write the cache
        use_cache = (
            self.settings.cache_enabled
            and not has_images
            and not is_structured(response_format)
        )

        if use_cache:
            cached = self.cache.get(question)
            if cached is not None:
                logger.debug("Cache hit for answer generation")
                self._record(
                    model=cached.metadata.get("model") or model,
                    method=METHOD_GENERATE_ANSWER,
                    cached=True,
                )
                return cached.response

        system_prompt = build_system_prompt(question, user_context, config, base_prompt)
        result = self.gateway.complete(
            system_prompt=system_prompt,
            user_content=question,
            model=model,
            temperature=select_temperature(response_format),
            max_tokens=calculate_max_tokens(question, config),
            response_format=response_format,
            images=images,
        )
        cost = self._account(model, METHOD_GENERATE_ANSWER, result)
        if is_structured(response_format):
            self._parse_json(result.content, METHOD_GENERATE_ANSWER)

        if use_cache and result.content:
            self.cache.set(question, result.content, {
                "model": result.model,
                "usage": result.usage.to_dict(),
                "finish_reason": result.finish_reason,
                "estimated_cost": cost,
            })

        return result.content

    def analyze(
        self,
        question: str,
        answer: str,
        user_context: Optional[UserContext] = None,
    ) -> Dict[str, Any]:
        """Assess a question/answer pair (grade, subject, gaps, next topics).

        Returns:
            The parsed JSON assessment

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamError: If the completion call fails
            SerializationError: If the model does not return valid JSON
        """
        self._require_credentials()

        # Assessment is a simpler task; the cheap tier is enough
        model = self.settings.cheap_model
        result = self.gateway.complete(
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            user_content=build_analysis_prompt(question, answer, user_context),
            model=model,
            temperature=0.3,
            max_tokens=1500,
            response_format="json_object",
        )
        self._account(model, METHOD_ANALYZE, result)
        return self._parse_json(result.content or "{}", METHOD_ANALYZE)

    def check_answer(
        self,
        question: str,
        answer_image_url: str,
        correct_answer: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Check a photographed student answer against the question."""
        self._require_credentials()

        model = self.router.select_model(question, has_images=True)
        result = self.gateway.complete(
            system_prompt=CHECK_ANSWER_SYSTEM_PROMPT,
            user_content=build_check_answer_prompt(question, correct_answer),
            model=model,
            temperature=0.5,
            max_tokens=1500,
            response_format="json_object",
            images=[answer_image_url],
        )
        self._account(model, METHOD_CHECK_ANSWER, result)
        return self._parse_json(result.content or "{}", METHOD_CHECK_ANSWER)

    def clarify_answer(self, question: str, previous_answer: str) -> str:
        """Re-explain more simply and propose one similar practice problem."""
        self._require_credentials()

        model = self.router.select_model(question)
        result = self.gateway.complete(
            system_prompt=CLARIFY_SYSTEM_PROMPT,
            user_content=build_clarify_prompt(question, previous_answer),
            model=model,
            temperature=0.6,
            max_tokens=1500,
        )
        self._account(model, METHOD_CLARIFY_ANSWER, result)
        return result.content

    def get_usage_stats(self, date: Optional[str] = None) -> Optional[UsageBucket]:
        """Daily usage bucket for ``YYYY-MM-DD`` (default: today)."""
        return self.accountant.get_daily(date)

    def get_monthly_usage_stats(self, month: Optional[str] = None) -> Optional[UsageBucket]:
        """Monthly usage bucket for ``YYYY-MM`` (default: this month)."""
        return self.accountant.get_monthly(month)

    def get_usage_summary(self) -> Dict[str, Optional[UsageBucket]]:
        return self.accountant.summary()

    def cleanup(self) -> Dict[str, int]:
        """Purge expired cache rows and usage buckets past retention."""
        return {
            "expired_cache_entries": self.cache.purge_expired(),
            "usage_buckets": self.accountant.sweep(),
        }

    def _account(self, model: str, method: str, result: CompletionResult) -> float:
        """Price a completion, log it and record its usage event."""
        usage = result.usage
        cost = calculate_cost(
            model, usage.prompt_tokens, usage.completion_tokens, self.settings.pricing
        )
        logger.info(
            "OpenAI usage - model=%s method=%s tokens=%d (prompt=%d, completion=%d) cost=$%.6f",
            model, method, usage.total_tokens, usage.prompt_tokens,
            usage.completion_tokens, cost,
        )
        self._record(
            model=model,
            method=method,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            estimated_cost=cost,
        )
        return cost

    def _record(self, model: str, method: str, cached: bool = False, **counts: Any) -> None:
        self.accountant.record(UsageEvent(
            timestamp=self.clock(),
            model=model,
            method=method,
            cached=cached,
            **counts,
        ))

    def _parse_json(self, content: str, method: str) -> Dict[str, Any]:
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.error("Structured output from %s is not valid JSON: %s", method, e)
            raise SerializationError(
                f"{method} returned invalid JSON: {e}", content=content
            ) from e
