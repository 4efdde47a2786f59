"""
Prediction pipeline telemetry.

Provides Prometheus metrics for:
- Completion requests (count, tokens, cost, latency)
- Context assembly source (store only vs live fallback)
- Staleness checks and reprediction decisions
"""

from tipster.telemetry.metrics import (
    # LLM
    llm_requests_total,
    llm_tokens_total,
    llm_cost_usd_total,
    llm_latency_ms,
    # Pipeline decisions
    context_assembly_total,
    staleness_checks_total,
    reprediction_decisions_total,
    # Helpers
    record_llm_request,
    record_context_assembly,
    record_staleness_check,
    record_reprediction_decision,
    get_metrics_text,
)
