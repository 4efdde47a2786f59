"""
Prediction workflow runner.

Processes subjects one after another: sequencer decision, context
assembly, generation, persistence. A failure on one subject is logged and
recorded in its outcome; the batch always continues.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from tipster.context.assembler import ContextAssembler
from tipster.llm.prediction_generator import PredictionGenerator
from tipster.llm.usage_ledger import UsageLedger
from tipster.models import (
    BonusQuestion,
    DocumentContext,
    Match,
    PredictedValue,
    PredictionRecord,
)
from tipster.prediction.sequencer import (
    Decision,
    PredictionPolicy,
    RepredictionSequencer,
    SequencerDecision,
)

logger = logging.getLogger(__name__)

Subject = Union[Match, BonusQuestion]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubjectOutcome:
    """What happened to one subject in a run."""

    subject: Subject
    action: Decision
    prediction: Optional[PredictedValue] = None
    reprediction_index: Optional[int] = None
    usage_summary: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.prediction is not None


class PredictionWorkflow:
    def __init__(
        self,
        assembler: ContextAssembler,
        sequencer: RepredictionSequencer,
        generator: PredictionGenerator,
        ledger: UsageLedger,
        community: str,
        dry_run: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.assembler = assembler
        self.sequencer = sequencer
        self.generator = generator
        self.ledger = ledger
        self.community = community
        self.dry_run = dry_run
        self._clock = clock

    @property
    def model(self) -> str:
        return self.generator.model

    async def run_matchday(
        self,
        matches: Iterable[Match],
        policy: PredictionPolicy,
        include_justification: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[SubjectOutcome]:
        """Predict every match. Raises PredictionPolicyError before any work on a bad policy."""
        policy.validate()
        self.ledger.reset()

        outcomes = []
        for match in matches:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Run cancelled, stopping before next match")
                break
            outcomes.append(await self._run_subject(match, policy, include_justification, cancel_event))

        logger.info(f"Matchday run finished: {sum(o.succeeded for o in outcomes)}/{len(outcomes)} predicted")
        return outcomes

    async def run_bonus(
        self,
        questions: Iterable[BonusQuestion],
        policy: PredictionPolicy,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[SubjectOutcome]:
        """Answer every bonus question. Same isolation rules as run_matchday."""
        policy.validate()
        self.ledger.reset()

        outcomes = []
        for question in questions:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Run cancelled, stopping before next bonus question")
                break
            outcomes.append(await self._run_subject(question, policy, False, cancel_event))

        logger.info(f"Bonus run finished: {sum(o.succeeded for o in outcomes)}/{len(outcomes)} predicted")
        return outcomes

    async def _run_subject(
        self,
        subject: Subject,
        policy: PredictionPolicy,
        include_justification: bool,
        cancel_event: Optional[asyncio.Event],
    ) -> SubjectOutcome:
        try:
            decision = await self.sequencer.decide(subject.subject_key, self.model, self.community, policy)

            if not decision.should_generate:
                existing = await self.sequencer.prediction_store.get(
                    subject.subject_key, self.model, self.community
                )
                return SubjectOutcome(
                    subject=subject,
                    action=decision.action,
                    prediction=existing.value if existing else None,
                    reprediction_index=decision.current_index,
                )

            documents = await self._documents_for(subject)
            prediction = await self._generate(subject, documents, include_justification, cancel_event)
            if prediction is None:
                return SubjectOutcome(subject=subject, action=decision.action, error="generation failed")

            stored_index = await self._persist(subject, decision, prediction, documents)
            return SubjectOutcome(
                subject=subject,
                action=decision.action,
                prediction=prediction,
                reprediction_index=stored_index,
                usage_summary=self.ledger.last_usage_summary(),
            )

        except Exception as e:
            logger.exception(f"Failed to process {subject}: {e}")
            return SubjectOutcome(subject=subject, action=Decision.GENERATE, error=str(e))

    async def _documents_for(self, subject: Subject) -> list[DocumentContext]:
        if isinstance(subject, BonusQuestion):
            return await self.assembler.get_bonus_context(subject, self.community)
        return await self.assembler.get_context(subject, self.community)

    async def _generate(
        self,
        subject: Subject,
        documents: list[DocumentContext],
        include_justification: bool,
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[PredictedValue]:
        if isinstance(subject, BonusQuestion):
            return await self.generator.predict_bonus_question(subject, documents, cancel_event=cancel_event)
        return await self.generator.predict_match(
            subject, documents, include_justification=include_justification, cancel_event=cancel_event
        )

    async def _persist(
        self,
        subject: Subject,
        decision: SequencerDecision,
        prediction: PredictedValue,
        documents: list[DocumentContext],
    ) -> Optional[int]:
        if self.dry_run:
            logger.info(f"Dry run: not storing prediction for {subject}")
            return decision.next_index

        record = PredictionRecord(
            subject_key=subject.subject_key,
            model=self.model,
            community=self.community,
            value=prediction,
            token_usage_json=self.ledger.last_usage_json() or "{}",
            cost=self.ledger.last_cost(),
            context_document_names=tuple(document.name for document in documents),
            created_at=self._clock(),
        )
        stored = await self.sequencer.record(decision, record)
        return stored.reprediction_index
