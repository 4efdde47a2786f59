"""Tests for the in-memory document and prediction stores."""

from decimal import Decimal

import pytest

from tipster.models import BonusPrediction, PredictionRecord

COMMUNITY = "test-league"


def _record(created_at, subject_key: str = "q", model: str = "o3") -> PredictionRecord:
    return PredictionRecord(
        subject_key=subject_key,
        model=model,
        community=COMMUNITY,
        value=BonusPrediction(question_id="q", selected_option_ids=("A",)),
        token_usage_json="{}",
        cost=Decimal("0.5"),
        context_document_names=("team-data",),
        created_at=created_at,
    )


class TestInMemoryDocumentStore:
    @pytest.mark.asyncio
    async def test_versions_start_at_zero_and_increase(self, document_store):
        assert await document_store.save("a.csv", "one", COMMUNITY) == 0
        assert await document_store.save("a.csv", "two", COMMUNITY) == 1
        assert (await document_store.get_latest("a.csv", COMMUNITY)).content == "two"
        assert (await document_store.get_document("a.csv", 0, COMMUNITY)).content == "one"

    @pytest.mark.asyncio
    async def test_unchanged_content_creates_no_version(self, document_store):
        await document_store.save("a.csv", "same", COMMUNITY)

        assert await document_store.save("a.csv", "same", COMMUNITY) is None
        assert (await document_store.get_latest("a.csv", COMMUNITY)).version == 0
        assert await document_store.get_document("a.csv", 1, COMMUNITY) is None

    @pytest.mark.asyncio
    async def test_reverting_content_is_a_new_version(self, document_store):
        await document_store.save("a.csv", "x", COMMUNITY)
        await document_store.save("a.csv", "y", COMMUNITY)
        assert await document_store.save("a.csv", "x", COMMUNITY) == 2

    @pytest.mark.asyncio
    async def test_communities_are_separate(self, document_store):
        await document_store.save("a.csv", "x", COMMUNITY)
        assert await document_store.save("a.csv", "x", "other") == 0
        assert await document_store.list_document_names(COMMUNITY) == ["a.csv"]
        assert await document_store.get_latest("b.csv", COMMUNITY) is None


class TestInMemoryPredictionStore:
    @pytest.mark.asyncio
    async def test_empty_key(self, prediction_store):
        assert await prediction_store.get("q", "o3", COMMUNITY) is None
        assert await prediction_store.get_reprediction_index("q", "o3", COMMUNITY) is None
        assert await prediction_store.get_metadata("q", "o3", COMMUNITY) is None

    @pytest.mark.asyncio
    async def test_save_keeps_created_at_unless_overridden(self, prediction_store, clock):
        first = await prediction_store.save(_record(clock()))
        later = clock.advance(10)

        kept = await prediction_store.save(_record(later))
        assert kept.created_at == first.created_at

        overridden = await prediction_store.save(_record(later), override_created_at=True)
        assert overridden.created_at == later
        assert overridden.reprediction_index == 0

    @pytest.mark.asyncio
    async def test_save_reprediction_must_be_contiguous(self, prediction_store, clock):
        with pytest.raises(ValueError):
            await prediction_store.save_reprediction(_record(clock()), 1)

        await prediction_store.save_reprediction(_record(clock()), 0)
        await prediction_store.save_reprediction(_record(clock.advance(1)), 1)
        with pytest.raises(ValueError):
            await prediction_store.save_reprediction(_record(clock.advance(1)), 3)

        assert await prediction_store.get_reprediction_index("q", "o3", COMMUNITY) == 1
        metadata = await prediction_store.get_metadata("q", "o3", COMMUNITY)
        assert metadata.context_document_names == ("team-data",)

    @pytest.mark.asyncio
    async def test_list_records_filters(self, prediction_store, clock):
        await prediction_store.save(_record(clock(), subject_key="q1", model="o3"))
        await prediction_store.save_reprediction(_record(clock(), subject_key="q1", model="o3"), 1)
        await prediction_store.save(_record(clock(), subject_key="q2", model="gpt-5"))

        assert len(await prediction_store.list_records()) == 3
        assert len(await prediction_store.list_records(model="o3")) == 2
        assert await prediction_store.list_records(community="other") == []
