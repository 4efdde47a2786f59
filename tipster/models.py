"""Domain records for predictions, context documents and token usage.

All records are plain dataclasses. Stores and the completion client convert
to and from these; nothing here touches I/O.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True)
class Match:
    """A fixture. Identity within a community is (home, away, matchday)."""

    home_team: str
    away_team: str
    starts_at: datetime
    matchday: int

    @property
    def subject_key(self) -> str:
        """Stable key used by prediction stores."""
        return f"{self.home_team}|{self.away_team}|{self.matchday}"

    def __str__(self) -> str:
        return f"{self.home_team} vs {self.away_team} (matchday {self.matchday})"


@dataclass(frozen=True)
class DocumentContext:
    """A document as handed to the model.

    `name` is the canonical store key and is what gets recorded as a consumed
    dependency. `annotation` is display-only (e.g. "kpi-context").
    """

    name: str
    content: str
    annotation: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.annotation:
            return f"{self.name} ({self.annotation})"
        return self.name


@dataclass(frozen=True)
class ContextDocument:
    """A stored, versioned context document."""

    name: str
    content: str
    version: int
    created_at: datetime
    community: str

    def to_context(self, annotation: Optional[str] = None) -> DocumentContext:
        return DocumentContext(name=self.name, content=self.content, annotation=annotation)


@dataclass(frozen=True)
class JustificationSource:
    document_name: str
    details: str


@dataclass(frozen=True)
class PredictionJustification:
    """Structured reasoning returned alongside a match prediction."""

    key_reasoning: str
    most_valuable: list[JustificationSource] = field(default_factory=list)
    least_valuable: list[JustificationSource] = field(default_factory=list)
    uncertainties: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "keyReasoning": self.key_reasoning,
            "contextSources": {
                "mostValuable": [
                    {"documentName": s.document_name, "details": s.details} for s in self.most_valuable
                ],
                "leastValuable": [
                    {"documentName": s.document_name, "details": s.details} for s in self.least_valuable
                ],
            },
            "uncertainties": list(self.uncertainties),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PredictionJustification":
        sources = data.get("contextSources") or {}

        def _sources(items) -> list[JustificationSource]:
            return [
                JustificationSource(document_name=item["documentName"], details=item["details"])
                for item in (items or [])
            ]

        return cls(
            key_reasoning=data.get("keyReasoning", ""),
            most_valuable=_sources(sources.get("mostValuable")),
            least_valuable=_sources(sources.get("leastValuable")),
            uncertainties=list(data.get("uncertainties") or []),
        )


@dataclass(frozen=True)
class Prediction:
    home_goals: int
    away_goals: int
    justification: Optional[PredictionJustification] = None

    def __str__(self) -> str:
        return f"{self.home_goals}:{self.away_goals}"


@dataclass(frozen=True)
class BonusQuestionOption:
    id: str
    text: str


@dataclass(frozen=True)
class BonusQuestion:
    """A multiple-choice question answered with exactly `max_selections` options."""

    id: str
    text: str
    options: tuple[BonusQuestionOption, ...]
    max_selections: int
    deadline: Optional[datetime] = None

    @property
    def option_ids(self) -> list[str]:
        return [option.id for option in self.options]

    @property
    def subject_key(self) -> str:
        # Keyed by text: the same question can reappear under a new form id
        return self.text


@dataclass(frozen=True)
class BonusPrediction:
    question_id: str
    selected_option_ids: tuple[str, ...]


@dataclass(frozen=True)
class TokenUsage:
    """Raw counters reported by one completion call.

    `input_tokens` includes cached tokens; `output_tokens` includes reasoning tokens.
    """

    input_tokens: int
    output_tokens: int
    cached_input_tokens: int = 0
    reasoning_tokens: int = 0

    @property
    def uncached_input_tokens(self) -> int:
        return self.input_tokens - self.cached_input_tokens

    @property
    def regular_output_tokens(self) -> int:
        return self.output_tokens - self.reasoning_tokens

    @classmethod
    def from_api(cls, usage: Optional[dict]) -> "TokenUsage":
        """Build from an OpenAI-style `usage` object."""
        usage = usage or {}
        prompt_details = usage.get("prompt_tokens_details") or {}
        completion_details = usage.get("completion_tokens_details") or {}
        return cls(
            input_tokens=int(usage.get("prompt_tokens", 0) or 0),
            output_tokens=int(usage.get("completion_tokens", 0) or 0),
            cached_input_tokens=int(prompt_details.get("cached_tokens", 0) or 0),
            reasoning_tokens=int(completion_details.get("reasoning_tokens", 0) or 0),
        )

    def to_dict(self) -> dict:
        data = {
            "InputTokenCount": self.input_tokens,
            "OutputTokenCount": self.output_tokens,
            "TotalTokenCount": self.input_tokens + self.output_tokens,
        }
        if self.cached_input_tokens:
            data["InputTokenDetails"] = {"CachedTokenCount": self.cached_input_tokens}
        if self.reasoning_tokens:
            data["OutputTokenDetails"] = {"ReasoningTokenCount": self.reasoning_tokens}
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class UsageSnapshot:
    """Token counts split the way they are billed, plus their cost."""

    uncached_input: int = 0
    cached_input: int = 0
    reasoning_output: int = 0
    output: int = 0
    cost: Decimal = Decimal("0")

    @property
    def total_output(self) -> int:
        return self.reasoning_output + self.output

    def as_usage(self) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.uncached_input + self.cached_input,
            output_tokens=self.total_output,
            cached_input_tokens=self.cached_input,
            reasoning_tokens=self.reasoning_output,
        )


PredictedValue = Union[Prediction, BonusPrediction]


@dataclass(frozen=True)
class PredictionMetadata:
    """What a stored prediction depended on, for staleness checks."""

    context_document_names: tuple[str, ...]
    created_at: datetime


@dataclass(frozen=True)
class PredictionRecord:
    """One immutable stored prediction. Superseded only by a higher index."""

    subject_key: str
    model: str
    community: str
    value: PredictedValue
    token_usage_json: str
    cost: Decimal
    context_document_names: tuple[str, ...]
    created_at: datetime
    reprediction_index: int = 0

    @property
    def metadata(self) -> PredictionMetadata:
        return PredictionMetadata(
            context_document_names=self.context_document_names,
            created_at=self.created_at,
        )

    @property
    def is_bonus(self) -> bool:
        return isinstance(self.value, BonusPrediction)
