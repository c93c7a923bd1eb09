"""
Unit tests for pricing calculations.

Tests cost accuracy, linearity and the unknown-model fallback.
"""

from decimal import Decimal

import pytest

from ai_answer_cache.core.pricing import (
    DEFAULT_PRICING,
    ModelPricing,
    PricingTable,
    calculate_cost,
)
from ai_answer_cache.core.usage import TokenUsage


class TestTokenUsage:
    """Test TokenUsage dataclass."""

    def test_total_tokens_calculation(self):
        """Verify total_tokens is computed when the provider sends none."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        assert usage.total_tokens == 150

    def test_reported_total_wins(self):
        """Verify the provider's own total is kept."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50, reported_total=160)
        assert usage.total_tokens == 160

    def test_from_missing_usage(self):
        """Verify a response without usage counts as zero tokens."""
        usage = TokenUsage.from_response(None)
        assert usage.total_tokens == 0


class TestPricingTable:
    """Test pricing table functionality."""

    def test_get_supported_model(self):
        """Verify pricing retrieval for supported models."""
        pricing = DEFAULT_PRICING.get_pricing("gpt-4o")
        assert pricing.input_per_million == Decimal("2.50")
        assert pricing.output_per_million == Decimal("10.00")

    def test_unknown_model_uses_cheapest_tier(self):
        """Verify unknown models are priced like the cheapest known model."""
        assert DEFAULT_PRICING.cheapest_model == "gpt-3.5-turbo"
        assert DEFAULT_PRICING.get_pricing("unknown-model") == DEFAULT_PRICING.get_pricing("gpt-3.5-turbo")

    def test_cheapest_follows_injected_table(self):
        """Verify the fallback tier comes from the table in use."""
        table = PricingTable.from_mapping({
            "big": {"input": 5, "output": 15},
            "small": {"input": 0.1, "output": 0.4},
        })
        assert table.cheapest_model == "small"
        assert table.get_pricing("other").input_per_million == Decimal("0.1")

    def test_empty_table_rejected(self):
        """Verify a table needs at least one model."""
        with pytest.raises(ValueError):
            PricingTable({})


class TestCostCalculation:
    """Test cost calculation accuracy."""

    def test_exact_cost_gpt4o(self):
        """Verify exact cost calculation for gpt-4o."""
        # 1M prompt * $2.50 + 0.5M completion * $10.00 = $7.50
        assert calculate_cost("gpt-4o", 1_000_000, 500_000) == pytest.approx(7.50)

    def test_exact_cost_cheap_model(self):
        """Verify the cheap-tier cost of a small request."""
        # 20/1e6 * 0.50 + 5/1e6 * 1.50
        assert calculate_cost("gpt-3.5-turbo", 20, 5) == pytest.approx(0.0000175)

    def test_zero_tokens_cost_is_zero_for_every_model(self):
        """Verify cost(model, 0, 0) == 0, including unknown models."""
        for model in list(DEFAULT_PRICING.prices) + ["unknown-model"]:
            assert calculate_cost(model, 0, 0) == 0

    def test_unknown_model_priced_at_fallback(self):
        """Verify unknown models do not raise and use the fallback tier."""
        assert calculate_cost("mystery", 1000, 1000) == calculate_cost("gpt-3.5-turbo", 1000, 1000)

    def test_linear_in_prompt_tokens(self):
        """Verify doubling prompt tokens doubles the prompt cost."""
        single = calculate_cost("gpt-4-turbo", 1234, 0)
        assert calculate_cost("gpt-4-turbo", 2468, 0) == pytest.approx(2 * single)

    def test_linear_in_completion_tokens(self):
        """Verify cost is additive over prompt and completion parts."""
        prompt_only = calculate_cost("gpt-4o", 300, 0)
        completion_only = calculate_cost("gpt-4o", 0, 700)
        assert calculate_cost("gpt-4o", 300, 700) == pytest.approx(prompt_only + completion_only)

    def test_injected_table(self):
        """Verify a custom pricing table is honoured."""
        table = PricingTable({"m": ModelPricing(Decimal("1"), Decimal("2"))})
        assert calculate_cost("m", 1_000_000, 1_000_000, table) == pytest.approx(3.0)

    def test_negative_tokens_rejected(self):
        """Verify negative token counts raise."""
        with pytest.raises(ValueError):
            calculate_cost("gpt-4o", -1, 0)
