"""Staleness checks, reprediction sequencing and the workflow runner."""

from tipster.prediction.sequencer import (
    Decision,
    PredictionPolicy,
    RepredictionSequencer,
    SequencerDecision,
    next_index,
)
from tipster.prediction.staleness import StalenessEvaluator

__all__ = [
    "Decision",
    "PredictionPolicy",
    "RepredictionSequencer",
    "SequencerDecision",
    "next_index",
    "StalenessEvaluator",
]
