"""Tests for response schemas, bonus validation and response parsing."""

import json

import pytest

from tipster.llm.schemas import (
    build_bonus_schema,
    build_match_schema,
    parse_bonus_response,
    parse_match_response,
    response_format,
    validate_bonus_selection,
)
from tipster.models import BonusQuestion, BonusQuestionOption


def _question(option_ids, max_selections):
    return BonusQuestion(
        id="q",
        text="Question?",
        options=tuple(BonusQuestionOption(id=option_id, text=f"Option {option_id}") for option_id in option_ids),
        max_selections=max_selections,
    )


def _assert_strict(schema: dict):
    """Every object forbids extra fields and requires all declared ones."""
    if schema.get("type") == "object":
        assert schema["additionalProperties"] is False
        assert set(schema["required"]) == set(schema["properties"])
        for child in schema["properties"].values():
            _assert_strict(child)
    if schema.get("type") == "array":
        _assert_strict(schema["items"])


class TestMatchSchema:
    def test_scoreline_only(self):
        schema = build_match_schema()
        assert schema["required"] == ["home", "away"]
        assert schema["properties"]["home"]["type"] == "integer"
        _assert_strict(schema)

    def test_with_justification(self):
        schema = build_match_schema(include_justification=True)
        assert schema["required"] == ["home", "away", "justification"]

        justification = schema["properties"]["justification"]
        assert set(justification["required"]) == {"keyReasoning", "contextSources", "uncertainties"}
        sources = justification["properties"]["contextSources"]["properties"]
        assert set(sources["mostValuable"]["items"]["required"]) == {"documentName", "details"}
        _assert_strict(schema)

    def test_response_format_is_strict(self):
        fmt = response_format("match_prediction", build_match_schema())
        assert fmt["type"] == "json_schema"
        assert fmt["json_schema"]["name"] == "match_prediction"
        assert fmt["json_schema"]["strict"] is True


class TestBonusSchema:
    def test_length_pinned_and_ids_enumerated(self):
        schema = build_bonus_schema(_question(["A", "B", "C"], 2))
        selected = schema["properties"]["selectedOptionIds"]
        assert selected["minItems"] == 2
        assert selected["maxItems"] == 2
        assert selected["items"]["enum"] == ["A", "B", "C"]
        _assert_strict(schema)


class TestValidateBonusSelection:
    """Selected ids must be valid, unique and exactly max_selections."""

    def test_valid_selection(self):
        assert validate_bonus_selection(_question(["A", "B", "C"], 2), ["A", "B"]) == []

    def test_duplicate_rejected(self):
        problems = validate_bonus_selection(_question(["A", "B", "C"], 2), ["A", "A"])
        assert any("duplicate" in problem for problem in problems)

    def test_wrong_count_rejected(self):
        problems = validate_bonus_selection(_question(["A", "B", "C"], 2), ["A"])
        assert problems == ["expected 2 selections, got 1"]

    def test_invalid_id_rejected(self):
        problems = validate_bonus_selection(_question(["A", "B"], 1), ["Z"])
        assert problems == ["invalid option ids: Z"]


class TestParsing:
    def test_parse_match(self):
        prediction = parse_match_response('{"home": 2, "away": 1}')
        assert (prediction.home_goals, prediction.away_goals) == (2, 1)
        assert prediction.justification is None

    def test_parse_match_with_justification(self):
        text = json.dumps(
            {
                "home": 1,
                "away": 1,
                "justification": {
                    "keyReasoning": "Both sides in form",
                    "contextSources": {
                        "mostValuable": [{"documentName": "head-to-head-fcb-vs-bvb.csv", "details": "Many draws"}],
                        "leastValuable": [],
                    },
                    "uncertainties": ["Injuries"],
                },
            }
        )
        prediction = parse_match_response(text, include_justification=True)
        assert prediction.justification.key_reasoning == "Both sides in form"
        assert prediction.justification.most_valuable[0].document_name == "head-to-head-fcb-vs-bvb.csv"
        assert prediction.justification.uncertainties == ["Injuries"]
        assert prediction.justification.to_dict()["contextSources"]["leastValuable"] == []

    def test_parse_match_rejects_malformed(self):
        with pytest.raises(ValueError):
            parse_match_response("not json")
        with pytest.raises(KeyError):
            parse_match_response('{"home": 1}')
        with pytest.raises(ValueError):
            parse_match_response('{"home": "one", "away": 0}')

    @pytest.mark.parametrize(
        "text",
        ['{"home": true, "away": false}', '{"home": 2, "away": true}'],
    )
    def test_parse_match_rejects_booleans(self, text):
        with pytest.raises(ValueError, match="non-integer goals"):
            parse_match_response(text)

    def test_parse_bonus(self):
        assert parse_bonus_response('{"selectedOptionIds": ["A", "C"]}') == ["A", "C"]
        with pytest.raises(ValueError):
            parse_bonus_response('{"selectedOptionIds": "A"}')
