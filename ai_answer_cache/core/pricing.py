"""
Pricing calculations and rate management.

Handles cost computations for the supported chat models.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict

MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """USD price per one million tokens for a specific model."""
    input_per_million: Decimal
    output_per_million: Decimal

    @property
    def combined(self) -> Decimal:
        return self.input_per_million + self.output_per_million


@dataclass(frozen=True)
class PricingTable:
    """Pricing table for supported models.

    Unknown models are priced at the cheapest known tier.
    """
    prices: Dict[str, ModelPricing]

    def __post_init__(self):
        if not self.prices:
            raise ValueError("pricing table must contain at least one model")

    @property
    def cheapest_model(self) -> str:
        """Model id with the lowest combined input + output price."""
        return min(self.prices, key=lambda model: (self.prices[model].combined, model))

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a model, falling back to the cheapest tier.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model
        """
        pricing = self.prices.get(model)
        if pricing is None:
            return self.prices[self.cheapest_model]
        return pricing

    @classmethod
    def from_mapping(cls, raw: Dict[str, Dict[str, float]]) -> "PricingTable":
        """Build a table from ``{model: {"input": x, "output": y}}``."""
        prices = {}
        for model, rates in raw.items():
            prices[model] = ModelPricing(
                input_per_million=Decimal(str(rates["input"])),
                output_per_million=Decimal(str(rates["output"])),
            )
        return cls(prices)


DEFAULT_PRICING = PricingTable({
    "gpt-4o": ModelPricing(
        input_per_million=Decimal("2.50"),
        output_per_million=Decimal("10.00")
    ),
    "gpt-4-turbo": ModelPricing(
        input_per_million=Decimal("10.00"),
        output_per_million=Decimal("30.00")
    ),
    "gpt-3.5-turbo": ModelPricing(
        input_per_million=Decimal("0.50"),
        output_per_million=Decimal("1.50")
    ),
})


def calculate_cost(
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    pricing: PricingTable = DEFAULT_PRICING,
) -> float:
    """Calculate the estimated cost of a completion in USD.

    Args:
        model: Model identifier (unknown ids use the cheapest tier)
        prompt_tokens: Tokens sent to the model
        completion_tokens: Tokens generated by the model
        pricing: Pricing table to use

    Returns:
        Unrounded cost, linear in both token counts

    Raises:
        ValueError: If a token count is negative
    """
    if prompt_tokens < 0 or completion_tokens < 0:
        raise ValueError("token counts must be >= 0")

    rates = pricing.get_pricing(model)
    prompt_cost = (Decimal(prompt_tokens) / MILLION) * rates.input_per_million
    completion_cost = (Decimal(completion_tokens) / MILLION) * rates.output_per_million
    return float(prompt_cost + completion_cost)
