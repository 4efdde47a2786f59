"""
Thread-safe token usage and cost ledger for one workflow run.

Keeps two views: cumulative totals since the last reset, and the most
recent call (used for per-subject reporting and persisted with each record).
"""

import logging
import threading
from decimal import Decimal
from typing import Optional

from tipster.llm.pricing import PricingTable
from tipster.models import TokenUsage, UsageSnapshot

logger = logging.getLogger(__name__)


def _format_summary(snapshot: UsageSnapshot) -> str:
    return (
        f"{snapshot.uncached_input:,} / {snapshot.cached_input:,} / "
        f"{snapshot.reasoning_output:,} / {snapshot.output:,} / ${snapshot.cost:.4f}"
    )


class UsageLedger:
    """Accumulates token counts and cost per model call. All state behind one lock."""

    def __init__(self, pricing: PricingTable):
        self._pricing = pricing
        self._lock = threading.Lock()
        self._reset_unlocked()

    def _reset_unlocked(self) -> None:
        self._total_uncached_input = 0
        self._total_cached_input = 0
        self._total_reasoning_output = 0
        self._total_output = 0
        self._total_cost = Decimal("0")

        self._last_uncached_input = 0
        self._last_cached_input = 0
        self._last_reasoning_output = 0
        self._last_output = 0
        self._last_cost = Decimal("0")
        self._last_usage: Optional[TokenUsage] = None

    def add_usage(self, model: str, usage: TokenUsage) -> Decimal:
        """Record one call. Unknown models count tokens at zero cost."""
        cost = self._pricing.calculate_cost(model, usage)

        with self._lock:
            self._last_uncached_input = usage.uncached_input_tokens
            self._last_cached_input = usage.cached_input_tokens
            self._last_reasoning_output = usage.reasoning_tokens
            self._last_output = usage.regular_output_tokens
            self._last_usage = usage

            self._total_uncached_input += usage.uncached_input_tokens
            self._total_cached_input += usage.cached_input_tokens
            self._total_reasoning_output += usage.reasoning_tokens
            self._total_output += usage.regular_output_tokens

            self._last_cost = cost if cost is not None else Decimal("0")
            self._total_cost += self._last_cost

        if cost is None:
            logger.debug(f"Could not calculate cost for model {model} - pricing not available")
        else:
            logger.debug(
                f"Added usage for model {model}: {usage.uncached_input_tokens} uncached + "
                f"{usage.cached_input_tokens} cached + {usage.reasoning_tokens} reasoning + "
                f"{usage.regular_output_tokens} output = ${cost:.6f}"
            )
        return self._last_cost if cost is not None else Decimal("0")

    def totals(self) -> UsageSnapshot:
        with self._lock:
            return UsageSnapshot(
                uncached_input=self._total_uncached_input,
                cached_input=self._total_cached_input,
                reasoning_output=self._total_reasoning_output,
                output=self._total_output,
                cost=self._total_cost,
            )

    def last(self) -> UsageSnapshot:
        with self._lock:
            return UsageSnapshot(
                uncached_input=self._last_uncached_input,
                cached_input=self._last_cached_input,
                reasoning_output=self._last_reasoning_output,
                output=self._last_output,
                cost=self._last_cost,
            )

    def total_cost(self) -> Decimal:
        with self._lock:
            return self._total_cost

    def last_cost(self) -> Decimal:
        with self._lock:
            return self._last_cost

    def compact_summary(self) -> str:
        """"uncached / cached / reasoning / output / $cost" over the whole run."""
        return _format_summary(self.totals())

    def last_usage_summary(self) -> str:
        return _format_summary(self.last())

    def estimate_cost(self, model: str, snapshot: UsageSnapshot) -> Decimal:
        """Same token counts re-priced under another model (0 if unknown)."""
        cost = self._pricing.calculate_cost(model, snapshot.as_usage())
        return cost if cost is not None else Decimal("0")

    def compact_summary_with_estimated_costs(self, estimate_model: str) -> str:
        totals = self.totals()
        estimated = self.estimate_cost(estimate_model, totals)
        return f"{_format_summary(totals)} (est {estimate_model}: ${estimated:.4f})"

    def last_usage_summary_with_estimated_costs(self, estimate_model: str) -> str:
        last = self.last()
        estimated = self.estimate_cost(estimate_model, last)
        return f"{_format_summary(last)} (est {estimate_model}: ${estimated:.4f})"

    def last_usage_json(self) -> Optional[str]:
        """Raw counters of the most recent call as JSON, None before any call."""
        with self._lock:
            usage = self._last_usage
        return usage.to_json() if usage is not None else None

    def reset(self) -> None:
        with self._lock:
            self._reset_unlocked()
        logger.debug("Token usage ledger reset")
