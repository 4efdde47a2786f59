"""
Prometheus metrics for the prediction pipeline.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

=============================================================================
CARDINALITY CONTROL
=============================================================================

ALLOWED LABELS (bounded sets):
- model:   configured model ids, e.g. "o3", "gpt-5-mini" (max ~20)
- kind:    "match", "bonus"
- status:  "ok", "error", "cancelled", "invalid"
- source:  "store", "store+live"
- result:  "outdated", "fresh", "no_dependencies", "error"
- action:  "generate", "reuse", "at_cap"
- direction: "uncached_input", "cached_input", "reasoning_output", "output"

FORBIDDEN AS LABELS:
- team names, match keys, bonus question text
- document names, community names
- raw error messages

For debugging a specific subject, use logs, NOT metric labels.
=============================================================================
"""

import logging
from decimal import Decimal
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from tipster.config import get_settings
from tipster.models import TokenUsage

logger = logging.getLogger(__name__)

# =============================================================================
# LLM METRICS
# =============================================================================

llm_requests_total = Counter(
    "tipster_llm_requests_total",
    "Total completion requests",
    ["model", "kind", "status"],
)

llm_tokens_total = Counter(
    "tipster_llm_tokens_total",
    "Total tokens consumed by completion requests",
    ["model", "direction"],
)

llm_cost_usd_total = Counter(
    "tipster_llm_cost_usd_total",
    "Total completion cost in USD",
    ["model"],
)

llm_latency_ms = Histogram(
    "tipster_llm_latency_ms",
    "Completion request latency in milliseconds",
    ["model"],
    buckets=[500, 1000, 2500, 5000, 10000, 30000, 60000, 120000, 300000],
)

# =============================================================================
# PIPELINE DECISION METRICS
# =============================================================================

context_assembly_total = Counter(
    "tipster_context_assembly_total",
    "Context assemblies by document source",
    ["source"],
)

staleness_checks_total = Counter(
    "tipster_staleness_checks_total",
    "Staleness checks by result",
    ["result"],
)

reprediction_decisions_total = Counter(
    "tipster_reprediction_decisions_total",
    "Sequencer decisions by action",
    ["action"],
)


def _metrics_enabled() -> bool:
    return get_settings().METRICS_ENABLED


# =============================================================================
# RECORD HELPERS
# =============================================================================


def record_llm_request(
    model: str,
    kind: str,
    status: str,
    latency_ms: float = 0,
    usage: Optional[TokenUsage] = None,
    cost: Optional[Decimal] = None,
) -> None:
    """
    Record one completion request.

    Args:
        model: Model id.
        kind: "match" or "bonus".
        status: "ok", "error", "cancelled", "invalid".
        latency_ms: End-to-end latency (0 if unknown).
        usage: Token counters when the endpoint answered.
        cost: Cost in USD when pricing is known.
    """
    try:
        if not _metrics_enabled():
            return

        llm_requests_total.labels(model=model, kind=kind, status=status).inc()

        if latency_ms > 0:
            llm_latency_ms.labels(model=model).observe(latency_ms)

        if usage is not None:
            for direction, count in (
                ("uncached_input", usage.uncached_input_tokens),
                ("cached_input", usage.cached_input_tokens),
                ("reasoning_output", usage.reasoning_tokens),
                ("output", usage.regular_output_tokens),
            ):
                if count > 0:
                    llm_tokens_total.labels(model=model, direction=direction).inc(count)

        if cost is not None and cost > 0:
            llm_cost_usd_total.labels(model=model).inc(float(cost))

    except Exception as e:
        logger.warning(f"Failed to record LLM request metric: {e}")


def record_context_assembly(used_live_fetch: bool) -> None:
    try:
        if not _metrics_enabled():
            return
        source = "store+live" if used_live_fetch else "store"
        context_assembly_total.labels(source=source).inc()
    except Exception as e:
        logger.warning(f"Failed to record context assembly metric: {e}")


def record_staleness_check(result: str) -> None:
    try:
        if not _metrics_enabled():
            return
        staleness_checks_total.labels(result=result).inc()
    except Exception as e:
        logger.warning(f"Failed to record staleness metric: {e}")


def record_reprediction_decision(action: str) -> None:
    try:
        if not _metrics_enabled():
            return
        reprediction_decisions_total.labels(action=action).inc()
    except Exception as e:
        logger.warning(f"Failed to record reprediction decision metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
