"""Tests for Prometheus metric helpers."""

from decimal import Decimal
from unittest.mock import patch

from prometheus_client import REGISTRY

from tipster.models import TokenUsage
from tipster.telemetry.metrics import (
    get_metrics_text,
    record_context_assembly,
    record_llm_request,
    record_reprediction_decision,
    record_staleness_check,
)


def _value(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestRecordHelpers:
    def test_llm_request_counts_tokens_and_cost(self):
        labels = {"model": "metrics-test", "kind": "match", "status": "ok"}
        before = _value("tipster_llm_requests_total", labels)
        tokens_before = _value("tipster_llm_tokens_total", {"model": "metrics-test", "direction": "cached_input"})

        record_llm_request(
            "metrics-test",
            "match",
            "ok",
            latency_ms=1500,
            usage=TokenUsage(input_tokens=100, output_tokens=20, cached_input_tokens=40),
            cost=Decimal("0.5"),
        )

        assert _value("tipster_llm_requests_total", labels) == before + 1
        assert (
            _value("tipster_llm_tokens_total", {"model": "metrics-test", "direction": "cached_input"})
            == tokens_before + 40
        )
        assert _value("tipster_llm_cost_usd_total", {"model": "metrics-test"}) >= 0.5

    def test_decision_counters(self):
        before = _value("tipster_reprediction_decisions_total", {"action": "at_cap"})
        record_reprediction_decision("at_cap")
        record_staleness_check("fresh")
        record_context_assembly(used_live_fetch=True)

        assert _value("tipster_reprediction_decisions_total", {"action": "at_cap"}) == before + 1
        assert _value("tipster_context_assembly_total", {"source": "store+live"}) >= 1

    def test_helpers_never_raise(self):
        with patch("tipster.telemetry.metrics.get_settings", side_effect=RuntimeError("broken")):
            record_llm_request("o3", "match", "ok")
            record_staleness_check("fresh")

    def test_metrics_text(self):
        content, content_type = get_metrics_text()
        assert "tipster_llm_requests_total" in content
        assert content_type.startswith("text/plain")
