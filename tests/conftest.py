"""Shared fixtures for prediction core tests."""

from datetime import datetime, timedelta, timezone

import pytest

from tipster.context.documents import required_document_names
from tipster.llm.pricing import PricingTable
from tipster.models import BonusQuestion, BonusQuestionOption, Match
from tipster.stores.memory import InMemoryDocumentStore, InMemoryPredictionStore

COMMUNITY = "test-league"


class Clock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 1) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def document_store(clock):
    return InMemoryDocumentStore(clock=clock)


@pytest.fixture
def prediction_store():
    return InMemoryPredictionStore()


@pytest.fixture
def match():
    return Match(
        home_team="FC Bayern München",
        away_team="Borussia Dortmund",
        starts_at=datetime(2025, 9, 13, 15, 30, tzinfo=timezone.utc),
        matchday=3,
    )


@pytest.fixture
def bonus_question():
    return BonusQuestion(
        id="q1",
        text="Welche Teams belegen am Saisonende die Plätze 16-18?",
        options=(
            BonusQuestionOption(id="A", text="Hamburger SV"),
            BonusQuestionOption(id="B", text="FC St. Pauli"),
            BonusQuestionOption(id="C", text="1. FC Heidenheim 1846"),
        ),
        max_selections=2,
    )


@pytest.fixture
def pricing():
    return PricingTable.from_config(
        {
            "o3": {"input": 2.00, "cached_input": 0.50, "output": 8.00},
            "gpt-4o": {"input": 2.50, "cached_input": 1.25, "output": 10.00},
            "o1-pro": {"input": 150.00, "output": 600.00},
        }
    )


@pytest.fixture
def prompts_dir(tmp_path):
    """Template sets for o3 and gpt-5 (gpt-5 without a justification template)."""
    root = tmp_path / "prompts"
    o3 = root / "o3"
    o3.mkdir(parents=True)
    (o3 / "match.md").write_text("Predict the match.", encoding="utf-8")
    (o3 / "match.justification.md").write_text("Predict the match and justify.", encoding="utf-8")
    (o3 / "bonus.md").write_text("Answer the bonus question.", encoding="utf-8")

    gpt5 = root / "gpt-5"
    gpt5.mkdir(parents=True)
    (gpt5 / "match.md").write_text("GPT-5 match template.", encoding="utf-8")
    (gpt5 / "bonus.md").write_text("GPT-5 bonus template.", encoding="utf-8")
    return root


async def seed_required_documents(store, match: Match, community: str = COMMUNITY) -> list[str]:
    names = required_document_names(match, community)
    for name in names:
        await store.save(name, f"content of {name}", community)
    return names


@pytest.fixture
def seed_documents():
    """Coroutine that stores all seven required documents for a match."""
    return seed_required_documents
