"""
Staleness of stored predictions.

A prediction is outdated when a document it consumed has a newer latest
version than the prediction itself. Elapsed time alone never matters, and
documents on the ignore-list (standings by default) never force a reprediction.
"""

import logging
from typing import Iterable, Optional

from tipster.context.documents import STANDINGS_DOCUMENT, strip_display_suffix
from tipster.models import PredictionMetadata
from tipster.stores.base import DocumentStore
from tipster.telemetry.metrics import record_staleness_check

logger = logging.getLogger(__name__)

DEFAULT_IGNORED_DOCUMENTS = (STANDINGS_DOCUMENT,)


class StalenessEvaluator:
    def __init__(
        self,
        document_store: DocumentStore,
        ignored_documents: Iterable[str] = DEFAULT_IGNORED_DOCUMENTS,
    ):
        self.document_store = document_store
        self.ignored_documents = frozenset(name.lower() for name in ignored_documents)

    def _dependency_names(self, metadata: PredictionMetadata) -> list[str]:
        names = []
        for recorded_name in metadata.context_document_names:
            name = strip_display_suffix(recorded_name)
            if name.lower() in self.ignored_documents:
                logger.debug(f"[STALENESS] Ignoring {name}")
                continue
            names.append(name)
        return names

    async def is_outdated(self, metadata: Optional[PredictionMetadata], community: str) -> bool:
        """
        True as soon as one non-ignored dependency was updated after the prediction.

        Never raises: a failing check counts as not outdated.
        """
        if metadata is None or not metadata.context_document_names:
            record_staleness_check("no_dependencies")
            return False

        try:
            for name in self._dependency_names(metadata):
                latest = await self.document_store.get_latest(name, community)
                if latest is None:
                    logger.warning(f"[STALENESS] Dependency {name} not found in community {community}, skipping")
                    continue

                if latest.created_at > metadata.created_at:
                    logger.info(
                        f"[STALENESS] {name} v{latest.version} updated at {latest.created_at.isoformat()} "
                        f"after prediction at {metadata.created_at.isoformat()}"
                    )
                    record_staleness_check("outdated")
                    return True

        except Exception as e:
            logger.error(f"[STALENESS] Check failed, treating prediction as current: {e}")
            record_staleness_check("error")
            return False

        record_staleness_check("fresh")
        return False

    async def find_changed_documents(self, metadata: Optional[PredictionMetadata], community: str) -> list[str]:
        """All non-ignored dependencies updated after the prediction (no short-circuit)."""
        if metadata is None:
            return []

        changed = []
        for name in self._dependency_names(metadata):
            latest = await self.document_store.get_latest(name, community)
            if latest is not None and latest.created_at > metadata.created_at:
                changed.append(name)
        return changed
