"""Tests for stored prediction cost aggregation."""

from decimal import Decimal

import pytest

from tipster.models import BonusPrediction, Prediction, PredictionRecord
from tipster.prediction.cost_report import build_cost_report, summarize_records


def _record(created_at, value, model="o3", community="league-a", cost="0.10", index=0):
    return PredictionRecord(
        subject_key=f"subject-{id(value)}",
        model=model,
        community=community,
        value=value,
        token_usage_json="{}",
        cost=Decimal(cost),
        context_document_names=(),
        created_at=created_at,
        reprediction_index=index,
    )


class TestSummarizeRecords:
    def test_groups_by_model_and_community(self, clock):
        records = [
            _record(clock(), Prediction(1, 0)),
            _record(clock(), Prediction(2, 2), index=1, cost="0.25"),
            _record(clock(), BonusPrediction("q", ("A",)), cost="0.05"),
            _record(clock(), Prediction(0, 0), model="gpt-5", cost="0.01"),
        ]

        summaries = summarize_records(records)

        assert [(s.model, s.community) for s in summaries] == [("gpt-5", "league-a"), ("o3", "league-a")]
        o3 = summaries[1]
        assert o3.match_predictions == 2
        assert o3.bonus_predictions == 1
        assert o3.repredictions == 1
        assert o3.total_cost == Decimal("0.40")
        assert o3.render() == (
            "o3 @ league-a: 3 predictions (2 match, 1 bonus, 1 repredictions) $0.4000"
        )

    def test_empty(self):
        assert summarize_records([]) == []


class TestBuildCostReport:
    @pytest.mark.asyncio
    async def test_reads_all_history_from_store(self, prediction_store, clock):
        first = _record(clock(), Prediction(1, 0))
        await prediction_store.save(first)
        await prediction_store.save_reprediction(first, 1)

        summaries = await build_cost_report(prediction_store, model="o3")

        assert len(summaries) == 1
        assert summaries[0].match_predictions == 2
        assert summaries[0].total_cost == Decimal("0.20")
