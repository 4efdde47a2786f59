"""Aggregate stored prediction costs per (model, community)."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from tipster.models import PredictionRecord
from tipster.stores.base import PredictionStore

logger = logging.getLogger(__name__)


@dataclass
class CostSummary:
    model: str
    community: str
    match_predictions: int = 0
    bonus_predictions: int = 0
    repredictions: int = 0
    total_cost: Decimal = Decimal("0")

    @property
    def total_predictions(self) -> int:
        return self.match_predictions + self.bonus_predictions

    def render(self) -> str:
        return (
            f"{self.model} @ {self.community}: {self.total_predictions} predictions "
            f"({self.match_predictions} match, {self.bonus_predictions} bonus, "
            f"{self.repredictions} repredictions) ${self.total_cost:.4f}"
        )


def summarize_records(records: list[PredictionRecord]) -> list[CostSummary]:
    """Group records by (model, community), sorted by model then community."""
    summaries: dict[tuple[str, str], CostSummary] = {}
    for record in records:
        key = (record.model, record.community)
        summary = summaries.get(key)
        if summary is None:
            summary = CostSummary(model=record.model, community=record.community)
            summaries[key] = summary

        if record.is_bonus:
            summary.bonus_predictions += 1
        else:
            summary.match_predictions += 1
        if record.reprediction_index > 0:
            summary.repredictions += 1
        summary.total_cost += record.cost

    return [summaries[key] for key in sorted(summaries)]


async def build_cost_report(
    store: PredictionStore,
    model: Optional[str] = None,
    community: Optional[str] = None,
) -> list[CostSummary]:
    records = await store.list_records(model=model, community=community)
    summaries = summarize_records(records)
    for summary in summaries:
        logger.info(f"[COST_REPORT] {summary.render()}")
    return summaries
