"""
Strict JSON schemas for model output, and parsing of the validated payloads.

Every object declares all of its properties as required and forbids
unlisted ones, which is what strict structured-output mode demands.
"""

import json
from typing import Iterable

from tipster.models import BonusPrediction, BonusQuestion, Prediction, PredictionJustification

MATCH_SCHEMA_NAME = "match_prediction"
BONUS_SCHEMA_NAME = "bonus_prediction"


def _strict_object(properties: dict) -> dict:
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


def _source_list_schema() -> dict:
    return {
        "type": "array",
        "items": _strict_object(
            {
                "documentName": {"type": "string"},
                "details": {"type": "string"},
            }
        ),
    }


def build_justification_schema() -> dict:
    return _strict_object(
        {
            "keyReasoning": {"type": "string"},
            "contextSources": _strict_object(
                {
                    "mostValuable": _source_list_schema(),
                    "leastValuable": _source_list_schema(),
                }
            ),
            "uncertainties": {"type": "array", "items": {"type": "string"}},
        }
    )


def build_match_schema(include_justification: bool = False) -> dict:
    properties = {
        "home": {"type": "integer", "description": "Predicted goals for the home team"},
        "away": {"type": "integer", "description": "Predicted goals for the away team"},
    }
    if include_justification:
        properties["justification"] = build_justification_schema()
    return _strict_object(properties)


def build_bonus_schema(question: BonusQuestion) -> dict:
    """Array length pinned to max_selections, items limited to the question's option ids."""
    return _strict_object(
        {
            "selectedOptionIds": {
                "type": "array",
                "items": {"type": "string", "enum": question.option_ids},
                "minItems": question.max_selections,
                "maxItems": question.max_selections,
            }
        }
    )


def response_format(name: str, schema: dict) -> dict:
    return {
        "type": "json_schema",
        "json_schema": {"name": name, "schema": schema, "strict": True},
    }


def validate_bonus_selection(question: BonusQuestion, selected_ids: Iterable[str]) -> list[str]:
    """Return the problems with a selection. Empty list means valid."""
    selected = list(selected_ids)
    valid_ids = set(question.option_ids)
    problems = []

    invalid = [option_id for option_id in selected if option_id not in valid_ids]
    if invalid:
        problems.append(f"invalid option ids: {', '.join(invalid)}")

    seen = set()
    duplicates = []
    for option_id in selected:
        if option_id in seen and option_id not in duplicates:
            duplicates.append(option_id)
        seen.add(option_id)
    if duplicates:
        problems.append(f"duplicate option ids: {', '.join(duplicates)}")

    if len(selected) != question.max_selections:
        problems.append(f"expected {question.max_selections} selections, got {len(selected)}")

    return problems


def _is_goal_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_match_response(text: str, include_justification: bool = False) -> Prediction:
    """Raises ValueError (json.JSONDecodeError included) or KeyError on malformed output."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("match prediction is not a JSON object")

    home = data["home"]
    away = data["away"]
    if not _is_goal_count(home) or not _is_goal_count(away):
        raise ValueError(f"non-integer goals: home={home!r} away={away!r}")

    justification = None
    if include_justification and data.get("justification") is not None:
        justification = PredictionJustification.from_dict(data["justification"])

    return Prediction(home_goals=home, away_goals=away, justification=justification)


def parse_bonus_response(text: str) -> list[str]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("bonus prediction is not a JSON object")
    selected = data["selectedOptionIds"]
    if not isinstance(selected, list):
        raise ValueError("selectedOptionIds is not an array")
    return [str(option_id) for option_id in selected]


def to_bonus_prediction(question: BonusQuestion, selected_ids: list[str]) -> BonusPrediction:
    return BonusPrediction(question_id=question.id, selected_option_ids=tuple(selected_ids))
