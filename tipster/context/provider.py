"""Abstract live-fetch context provider."""

from abc import ABC, abstractmethod
from typing import AsyncIterator

from tipster.models import DocumentContext, Match


class ContextProvider(ABC):
    """Fetches context documents for a match from the live source."""

    @abstractmethod
    def get_match_context(self, match: Match, community: str) -> AsyncIterator[DocumentContext]:
        """
        Yield documents for a match.

        Args:
            match: The fixture.
            community: Community whose rules document is wanted.

        Returns:
            Async iterator of DocumentContext. Documents are produced lazily,
            so a consumer may stop early.
        """
        pass


class StaticContextProvider(ContextProvider):
    """Serves a fixed list of documents. Used for dry runs and tests."""

    def __init__(self, documents: list[DocumentContext]):
        self.documents = list(documents)
        self.calls = 0

    async def get_match_context(self, match: Match, community: str) -> AsyncIterator[DocumentContext]:
        self.calls += 1
        for document in self.documents:
            yield document
