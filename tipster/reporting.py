"""Turns structured run results into log lines."""

import logging
from typing import Iterable, Optional

from tipster.llm.usage_ledger import UsageLedger
from tipster.models import BonusPrediction, BonusQuestion
from tipster.prediction.workflow import SubjectOutcome

logger = logging.getLogger(__name__)


def format_outcome(outcome: SubjectOutcome) -> str:
    subject = outcome.subject
    label = subject.text if isinstance(subject, BonusQuestion) else str(subject)

    if outcome.error:
        return f"{label}: FAILED ({outcome.error})"

    if isinstance(outcome.prediction, BonusPrediction):
        value = ", ".join(outcome.prediction.selected_option_ids)
    else:
        value = str(outcome.prediction) if outcome.prediction is not None else "-"

    index = f" #{outcome.reprediction_index}" if outcome.reprediction_index is not None else ""
    line = f"{label}: {value} [{outcome.action.value}{index}]"
    if outcome.usage_summary:
        line += f" {outcome.usage_summary}"
    return line


def log_run_summary(
    outcomes: Iterable[SubjectOutcome],
    ledger: UsageLedger,
    estimate_model: Optional[str] = None,
) -> None:
    outcomes = list(outcomes)
    for outcome in outcomes:
        if outcome.error:
            logger.warning(format_outcome(outcome))
        else:
            logger.info(format_outcome(outcome))

    failed = sum(1 for outcome in outcomes if outcome.error)
    logger.info(f"Processed {len(outcomes)} subjects, {failed} failed")

    if estimate_model:
        summary = ledger.compact_summary_with_estimated_costs(estimate_model)
    else:
        summary = ledger.compact_summary()
    logger.info(f"Token usage (uncached/cached/reasoning/output/$cost): {summary}")
