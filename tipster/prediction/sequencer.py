"""
Reprediction sequencing.

Each (subject, model, community) key holds a contiguous run of reprediction
indices starting at 0. The first prediction is always generated; later ones
are appended only when the stored one is outdated and the cap allows it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tipster.exceptions import PredictionPolicyError
from tipster.models import PredictionRecord
from tipster.prediction.staleness import StalenessEvaluator
from tipster.stores.base import PredictionStore
from tipster.telemetry.metrics import record_reprediction_decision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionPolicy:
    """
    How existing predictions are treated.

    repredict: append a new prediction when the stored one is outdated.
    max_repredictions: highest reprediction index allowed (None = unbounded).
        Setting it implies repredict.
    override_existing: always regenerate and replace the stored prediction.
    """

    repredict: bool = False
    max_repredictions: Optional[int] = None
    override_existing: bool = False

    @property
    def reprediction_mode(self) -> bool:
        return self.repredict or self.max_repredictions is not None

    def validate(self) -> None:
        if self.override_existing and self.reprediction_mode:
            raise PredictionPolicyError(
                "override_existing cannot be combined with reprediction mode"
            )
        if self.max_repredictions is not None and self.max_repredictions < 0:
            raise PredictionPolicyError("max_repredictions must be 0 or greater")


class Decision(str, Enum):
    GENERATE = "generate"
    REUSE = "reuse"
    AT_CAP = "at_cap"


@dataclass(frozen=True)
class SequencerDecision:
    action: Decision
    current_index: Optional[int]
    next_index: Optional[int]
    reason: str
    override: bool = False

    @property
    def should_generate(self) -> bool:
        return self.action == Decision.GENERATE


def next_index(current: Optional[int], max_repredictions: Optional[int] = None) -> Optional[int]:
    """
    Index for the next prediction.

    None (nothing stored) -> 0; n -> n+1; None when n+1 exceeds the cap.
    """
    if current is None:
        return 0
    candidate = current + 1
    if max_repredictions is not None and candidate > max_repredictions:
        return None
    return candidate


class RepredictionSequencer:
    def __init__(self, prediction_store: PredictionStore, staleness: StalenessEvaluator):
        self.prediction_store = prediction_store
        self.staleness = staleness

    async def current_index(self, subject_key: str, model: str, community: str) -> Optional[int]:
        return await self.prediction_store.get_reprediction_index(subject_key, model, community)

    async def decide(
        self,
        subject_key: str,
        model: str,
        community: str,
        policy: PredictionPolicy,
    ) -> SequencerDecision:
        """Decide whether to generate, reuse, or stop at the cap. Never writes."""
        policy.validate()
        decision = await self._decide(subject_key, model, community, policy)
        logger.info(
            f"[REPREDICT] {subject_key} ({model}, {community}): {decision.action.value} "
            f"current={decision.current_index} next={decision.next_index} - {decision.reason}"
        )
        record_reprediction_decision(decision.action.value)
        return decision

    async def _decide(
        self,
        subject_key: str,
        model: str,
        community: str,
        policy: PredictionPolicy,
    ) -> SequencerDecision:
        current = await self.current_index(subject_key, model, community)

        if policy.override_existing:
            return SequencerDecision(
                Decision.GENERATE,
                current,
                current if current is not None else 0,
                "override requested",
                override=True,
            )

        if current is None:
            return SequencerDecision(Decision.GENERATE, None, 0, "no prediction yet")

        if not policy.reprediction_mode:
            return SequencerDecision(Decision.REUSE, current, None, "prediction exists")

        candidate = next_index(current, policy.max_repredictions)
        if candidate is None:
            return SequencerDecision(
                Decision.AT_CAP,
                current,
                None,
                f"max repredictions ({policy.max_repredictions}) reached",
            )

        metadata = await self.prediction_store.get_metadata(subject_key, model, community)
        if await self.staleness.is_outdated(metadata, community):
            return SequencerDecision(Decision.GENERATE, current, candidate, "context changed")

        return SequencerDecision(Decision.REUSE, current, None, "context unchanged")

    async def record(self, decision: SequencerDecision, record: PredictionRecord) -> PredictionRecord:
        """Persist a generated prediction at the decided index."""
        if not decision.should_generate:
            raise ValueError(f"Cannot record a prediction for decision {decision.action.value}")

        if decision.override:
            return await self.prediction_store.save(record, override_created_at=True)

        if decision.current_index is None:
            return await self.prediction_store.save(record)

        return await self.prediction_store.save_reprediction(record, decision.next_index)
