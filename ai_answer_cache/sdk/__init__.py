"""
SDK for the AI answer cache.

Exposes the cached, accounted answer service and its completion gateway.
"""

from .gateway import CompletionGateway, CompletionResult
from .service import AnswerService

__all__ = ["AnswerService", "CompletionGateway", "CompletionResult"]
