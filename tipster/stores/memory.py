"""In-memory stores for tests and dry runs."""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from tipster.models import ContextDocument, PredictionRecord
from tipster.stores.base import DocumentStore, PredictionStore, expected_next_index

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentStore(DocumentStore):
    """Version lists per (name, community). `clock` is injectable for tests."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._documents: dict[tuple[str, str], list[ContextDocument]] = {}

    async def get_latest(self, name: str, community: str) -> Optional[ContextDocument]:
        versions = self._documents.get((name, community))
        return versions[-1] if versions else None

    async def save(self, name: str, content: str, community: str) -> Optional[int]:
        versions = self._documents.setdefault((name, community), [])
        if versions and versions[-1].content == content:
            logger.debug(f"Document {name} unchanged for {community}")
            return None

        version = versions[-1].version + 1 if versions else 0
        versions.append(
            ContextDocument(
                name=name,
                content=content,
                version=version,
                created_at=self._clock(),
                community=community,
            )
        )
        return version

    async def get_document(self, name: str, version: int, community: str) -> Optional[ContextDocument]:
        for document in self._documents.get((name, community), []):
            if document.version == version:
                return document
        return None

    async def list_document_names(self, community: str) -> list[str]:
        return sorted(name for (name, doc_community) in self._documents if doc_community == community)


class InMemoryPredictionStore(PredictionStore):
    def __init__(self):
        self._history: dict[tuple[str, str, str], list[PredictionRecord]] = {}

    @staticmethod
    def _key(subject_key: str, model: str, community: str) -> tuple[str, str, str]:
        return (subject_key, model, community)

    async def get(self, subject_key: str, model: str, community: str) -> Optional[PredictionRecord]:
        history = self._history.get(self._key(subject_key, model, community))
        return history[-1] if history else None

    async def get_reprediction_index(self, subject_key: str, model: str, community: str) -> Optional[int]:
        history = self._history.get(self._key(subject_key, model, community))
        return history[-1].reprediction_index if history else None

    async def save(self, record: PredictionRecord, override_created_at: bool = False) -> PredictionRecord:
        history = self._history.setdefault(self._key(record.subject_key, record.model, record.community), [])
        if history:
            existing = history[-1]
            created_at = record.created_at if override_created_at else existing.created_at
            stored = replace(record, created_at=created_at, reprediction_index=existing.reprediction_index)
            history[-1] = stored
        else:
            stored = replace(record, reprediction_index=0)
            history.append(stored)
        return stored

    async def save_reprediction(self, record: PredictionRecord, reprediction_index: int) -> PredictionRecord:
        history = self._history.setdefault(self._key(record.subject_key, record.model, record.community), [])
        current = history[-1].reprediction_index if history else None
        expected = expected_next_index(current)
        if reprediction_index != expected:
            raise ValueError(
                f"Reprediction index {reprediction_index} for {record.subject_key} is not contiguous "
                f"(expected {expected})"
            )
        stored = replace(record, reprediction_index=reprediction_index)
        history.append(stored)
        return stored

    async def get_history(self, subject_key: str, model: str, community: str) -> list[PredictionRecord]:
        return list(self._history.get(self._key(subject_key, model, community), []))

    async def list_records(
        self, model: Optional[str] = None, community: Optional[str] = None
    ) -> list[PredictionRecord]:
        records = []
        for (_, record_model, record_community), history in self._history.items():
            if not history:
                continue
            if model is not None and record_model != model:
                continue
            if community is not None and record_community != community:
                continue
            records.extend(history)
        return records
