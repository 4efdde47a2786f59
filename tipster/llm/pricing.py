"""
Per-model token pricing and cost calculation.

Pricing is a read-only lookup injected into the ledger and the generator,
built from settings.LLM_PRICING so tests can substitute their own table.

Cost formula (USD):
    uncached_input / 1M * input_price
  + cached_input   / 1M * cached_input_price   (0 when the model has no cached rate)
  + output         / 1M * output_price          (reasoning tokens are billed as output)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional

from tipster.models import TokenUsage

logger = logging.getLogger(__name__)

_PER_MILLION = Decimal(1_000_000)


@dataclass(frozen=True)
class ModelPricing:
    """Prices in USD per 1M tokens."""

    input_price: Decimal
    output_price: Decimal
    cached_input_price: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ModelPricing":
        cached = data.get("cached_input")
        return cls(
            input_price=Decimal(str(data["input"])),
            output_price=Decimal(str(data["output"])),
            cached_input_price=Decimal(str(cached)) if cached is not None else None,
        )


@dataclass(frozen=True)
class CostBreakdown:
    uncached_input_cost: Decimal
    cached_input_cost: Decimal
    output_cost: Decimal

    @property
    def total(self) -> Decimal:
        return self.uncached_input_cost + self.cached_input_cost + self.output_cost


class PricingTable:
    """Read-only model -> ModelPricing lookup."""

    def __init__(self, pricing: Mapping[str, ModelPricing]):
        self._pricing = MappingProxyType(dict(pricing))

    @classmethod
    def from_config(cls, raw: Mapping[str, dict]) -> "PricingTable":
        return cls({model: ModelPricing.from_dict(entry) for model, entry in raw.items()})

    @classmethod
    def from_settings(cls, settings) -> "PricingTable":
        return cls.from_config(settings.LLM_PRICING)

    def get(self, model: str) -> Optional[ModelPricing]:
        return self._pricing.get(model)

    def __contains__(self, model: str) -> bool:
        return model in self._pricing

    @property
    def models(self) -> list[str]:
        return sorted(self._pricing)

    def breakdown(self, model: str, usage: TokenUsage) -> Optional[CostBreakdown]:
        """Cost components for `usage` under `model`'s pricing, None if unknown."""
        pricing = self._pricing.get(model)
        if pricing is None:
            return None

        uncached_cost = Decimal(usage.uncached_input_tokens) / _PER_MILLION * pricing.input_price
        cached_cost = Decimal("0")
        if pricing.cached_input_price is not None:
            cached_cost = Decimal(usage.cached_input_tokens) / _PER_MILLION * pricing.cached_input_price
        output_cost = Decimal(usage.output_tokens) / _PER_MILLION * pricing.output_price

        return CostBreakdown(
            uncached_input_cost=uncached_cost,
            cached_input_cost=cached_cost,
            output_cost=output_cost,
        )

    def calculate_cost(self, model: str, usage: TokenUsage) -> Optional[Decimal]:
        breakdown = self.breakdown(model, usage)
        return breakdown.total if breakdown else None


def log_cost_breakdown(pricing: PricingTable, model: str, usage: TokenUsage) -> Optional[Decimal]:
    """Log the per-component cost of one completion call and return the total."""
    model_pricing = pricing.get(model)
    breakdown = pricing.breakdown(model, usage)
    if model_pricing is None or breakdown is None:
        logger.warning(f"[LLM_COST] Pricing not found for model '{model}', cost not calculated")
        return None

    logger.info(
        f"[LLM_COST] Uncached Input Tokens: {usage.uncached_input_tokens:,} x "
        f"${model_pricing.input_price:.2f}/1M = ${breakdown.uncached_input_cost:.6f}"
    )
    if model_pricing.cached_input_price is not None:
        logger.info(
            f"[LLM_COST] Cached Input Tokens: {usage.cached_input_tokens:,} x "
            f"${model_pricing.cached_input_price:.3f}/1M = ${breakdown.cached_input_cost:.6f}"
        )
    logger.info(
        f"[LLM_COST] Output Tokens: {usage.output_tokens:,} x "
        f"${model_pricing.output_price:.2f}/1M = ${breakdown.output_cost:.6f}"
    )
    logger.info(f"[LLM_COST] Total Cost: ${breakdown.total:.6f}")
    return breakdown.total
