"""Abstract store interfaces consumed by the prediction core."""

from abc import ABC, abstractmethod
from typing import Optional

from tipster.models import ContextDocument, PredictionMetadata, PredictionRecord


class DocumentStore(ABC):
    """
    Versioned context documents, keyed by (name, community).

    Versions start at 0 and strictly increase. Saving content equal to the
    latest version creates nothing.
    """

    @abstractmethod
    async def get_latest(self, name: str, community: str) -> Optional[ContextDocument]:
        """Latest version of a document, or None if it was never stored."""
        pass

    @abstractmethod
    async def save(self, name: str, content: str, community: str) -> Optional[int]:
        """
        Store a new version if the content changed.

        Returns:
            The new version number, or None when content is unchanged.
        """
        pass

    @abstractmethod
    async def get_document(self, name: str, version: int, community: str) -> Optional[ContextDocument]:
        pass

    @abstractmethod
    async def list_document_names(self, community: str) -> list[str]:
        pass


class PredictionStore(ABC):
    """
    Append-mostly prediction history keyed by (subject_key, model, community).

    Reprediction indices per key are contiguous from 0.
    """

    @abstractmethod
    async def get(self, subject_key: str, model: str, community: str) -> Optional[PredictionRecord]:
        """Record with the highest reprediction index, or None."""
        pass

    @abstractmethod
    async def get_reprediction_index(self, subject_key: str, model: str, community: str) -> Optional[int]:
        """Highest stored index, or None before any prediction exists."""
        pass

    @abstractmethod
    async def save(self, record: PredictionRecord, override_created_at: bool = False) -> PredictionRecord:
        """
        Replace the latest record in place (keeping its index), or create
        index 0 when nothing is stored.

        The stored created_at of an existing record is kept unless
        override_created_at is set.
        """
        pass

    @abstractmethod
    async def save_reprediction(self, record: PredictionRecord, reprediction_index: int) -> PredictionRecord:
        """
        Append a record at `reprediction_index`.

        Raises:
            ValueError: index is not current+1 (or 0 when nothing is stored).
        """
        pass

    @abstractmethod
    async def get_history(self, subject_key: str, model: str, community: str) -> list[PredictionRecord]:
        """All records for a key ordered by reprediction index."""
        pass

    @abstractmethod
    async def list_records(
        self, model: Optional[str] = None, community: Optional[str] = None
    ) -> list[PredictionRecord]:
        """Every stored record (all reprediction indices), optionally filtered."""
        pass

    async def get_metadata(self, subject_key: str, model: str, community: str) -> Optional[PredictionMetadata]:
        record = await self.get(subject_key, model, community)
        return record.metadata if record else None


def expected_next_index(current: Optional[int]) -> int:
    return 0 if current is None else current + 1
