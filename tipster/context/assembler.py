"""
Context assembly for match and bonus predictions.

Match policy:
- All seven required documents in the store: use the store hits (required
  plus whatever optional documents exist). No live fetch.
- Any required document missing: keep the store hits, then merge in live
  documents whose name (case-insensitive) is not present yet. Store wins ties.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from tipster.context.documents import (
    KPI_CONTEXT_ANNOTATION,
    MANAGER_DATA_DOCUMENT,
    TEAM_DATA_DOCUMENT,
    optional_document_names,
    required_document_names,
)
from tipster.context.provider import ContextProvider
from tipster.models import BonusQuestion, DocumentContext, Match
from tipster.stores.base import DocumentStore
from tipster.telemetry.metrics import record_context_assembly

logger = logging.getLogger(__name__)

# Bonus questions about coaches or the relegation zone also get manager data
TRAINER_KEYWORDS = (
    "trainerwechsel",
    "trainer",
    "cheftrainer",
    "entlassung",
    "entlassen",
    "manager",
    "coach",
)
RELEGATION_KEYWORDS = (
    "16-18",
    "plätze 16-18",
    "abstieg",
    "relegation",
    "abstiegsplätze",
    "absteiger",
)


@dataclass
class AssembledContext:
    """Documents for one match plus how they were obtained."""

    documents: list[DocumentContext] = field(default_factory=list)
    required_present: int = 0
    required_total: int = 0
    used_live_fetch: bool = False
    missing_required: list[str] = field(default_factory=list)

    @property
    def document_names(self) -> list[str]:
        return [document.name for document in self.documents]


def merge_context(
    store_hits: Iterable[DocumentContext],
    live_documents: Iterable[DocumentContext],
) -> list[DocumentContext]:
    """Store documents first, then live documents with a new (case-insensitive) name."""
    merged = []
    seen = set()
    for document in store_hits:
        key = document.name.lower()
        if key in seen:
            continue
        seen.add(key)
        merged.append(document)

    for document in live_documents:
        key = document.name.lower()
        if key in seen:
            continue
        seen.add(key)
        merged.append(document)

    return merged


def bonus_document_names(question: BonusQuestion) -> list[str]:
    """KPI documents relevant to a bonus question. team-data is always included."""
    text = question.text.lower()
    names = [TEAM_DATA_DOCUMENT]
    if any(keyword in text for keyword in TRAINER_KEYWORDS + RELEGATION_KEYWORDS):
        names.append(MANAGER_DATA_DOCUMENT)
    return names


class ContextAssembler:
    """Resolves the document bundle for a subject."""

    def __init__(self, document_store: DocumentStore, live_provider: Optional[ContextProvider] = None):
        self.document_store = document_store
        self.live_provider = live_provider

    async def get_context(self, match: Match, community: str) -> list[DocumentContext]:
        assembled = await self.assemble(match, community)
        return assembled.documents

    async def assemble(self, match: Match, community: str) -> AssembledContext:
        required = required_document_names(match, community)

        store_hits = []
        missing = []
        for name in required:
            document = await self.document_store.get_latest(name, community)
            if document is None:
                missing.append(name)
            else:
                store_hits.append(document.to_context())

        for name in optional_document_names(match):
            try:
                document = await self.document_store.get_latest(name, community)
            except Exception as e:
                logger.debug(f"[CONTEXT] Optional document {name} lookup failed: {e}")
                continue
            if document is not None:
                store_hits.append(document.to_context())

        result = AssembledContext(
            required_present=len(required) - len(missing),
            required_total=len(required),
            missing_required=missing,
        )

        if not missing:
            logger.info(f"[CONTEXT] {match}: all {len(required)} required documents cached")
            result.documents = merge_context(store_hits, [])
            record_context_assembly(used_live_fetch=False)
            return result

        logger.info(
            f"[CONTEXT] {match}: {len(missing)}/{len(required)} required documents missing "
            f"({', '.join(missing)}), falling back to live fetch"
        )
        live_documents = []
        if self.live_provider is None:
            logger.warning(f"[CONTEXT] No live provider configured, using {len(store_hits)} cached documents")
        else:
            async for document in self.live_provider.get_match_context(match, community):
                live_documents.append(document)
            result.used_live_fetch = True

        result.documents = merge_context(store_hits, live_documents)
        logger.info(
            f"[CONTEXT] {match}: {len(result.documents)} documents "
            f"({len(store_hits)} cached, {len(result.documents) - len(store_hits)} live)"
        )
        record_context_assembly(used_live_fetch=result.used_live_fetch)
        return result

    async def get_bonus_context(self, question: BonusQuestion, community: str) -> list[DocumentContext]:
        """KPI documents for a bonus question, annotated for display. Missing ones are skipped."""
        documents = []
        for name in bonus_document_names(question):
            document = await self.document_store.get_latest(name, community)
            if document is None:
                logger.warning(f"[CONTEXT] KPI document {name} not found for community {community}")
                continue
            documents.append(document.to_context(annotation=KPI_CONTEXT_ANNOTATION))
        return documents
