# src/rentfolio/services/analysis_repository.py
from __future__ import annotations

from datetime import datetime
from typing import Callable

from loguru import logger

from rentfolio.adapters.analysis_storage import AnalysisStorage
from rentfolio.domain.analysis import (
    AnalysisChanges,
    AnalysisStatus,
    SavedAnalysis,
    apply_changes,
    utcnow,
)
from rentfolio.domain.dashboard import ActivityType, DashboardSummary, new_activity
from rentfolio.domain.errors import ForbiddenError, StorageError
from rentfolio.services.cache import AnalysisCache, list_cache_key

# Status changes only have the two "client" activity tags to choose from.
_STATUS_ACTIVITY: dict[str, ActivityType] = {
    "sent_to_client": "rental_sent",
    "published": "rental_sent",
    "client_responded": "client_response",
}

_LIST_ALL_KEY = list_cache_key({})


def _refuse_published(record: SavedAnalysis) -> None:
    if record.metadata.status == "published":
        raise ForbiddenError("Cannot delete a published analysis; archive it first")


class AnalysisRepository:
    """
    CRUD over saved analyses: cache-first reads, adapter-backed writes.

    Every confirmed write drops the touched entry and all cached lists, then
    appends to the dashboard activity log. The activity append is not atomic
    with the write; if it fails the record is still correct and only the
    dashboard feed is stale.
    """

    def __init__(
        self,
        storage: AnalysisStorage,
        cache: AnalysisCache | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.storage = storage
        self.cache = cache if cache is not None else AnalysisCache()
        self._now = clock

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def list_all(self) -> list[SavedAnalysis]:
        cached = self.cache.get_list(_LIST_ALL_KEY)
        if cached is not None:
            return cached

        # taken before the read so a write that lands meanwhile wins
        generation = self.cache.generation()
        result = self.storage.get_all()
        self.cache.set_list(_LIST_ALL_KEY, result, generation=generation)
        return result

    def get_by_id(self, analysis_id: str) -> SavedAnalysis | None:
        cached = self.cache.get_entry(analysis_id)
        if cached is not None:
            return cached

        generation = self.cache.generation()
        result = self.storage.get_by_id(analysis_id)
        if result is not None:
            self.cache.set_entry(analysis_id, result, generation=generation)
        return result

    def dashboard(self) -> DashboardSummary:
        return self.storage.get_dashboard_data()

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def _invalidate(self, analysis_id: str) -> None:
        self.cache.invalidate_entry(analysis_id)
        self.cache.invalidate_all_lists()

    def create(self, record: SavedAnalysis) -> SavedAnalysis:
        if not self.storage.save(record):
            raise StorageError(f"Failed to save analysis {record.id}")

        self._invalidate(record.id)
        generation = self.cache.generation()
        stored = self.storage.get_by_id(record.id)
        if stored is not None:
            self.cache.set_entry(record.id, stored, generation=generation)

        self.storage.add_activity(
            new_activity(
                "analysis_created",
                title="Análisis guardado",
                description=f'"{record.title}" guardado exitosamente',
                property_address=record.property.address,
                prefix="save",
            )
        )
        logger.info("Analysis saved", analysis_id=record.id)
        return stored or record

    def update(self, analysis_id: str, changes: AnalysisChanges) -> SavedAnalysis | None:
        """
        Merge `changes` into the stored record. Top-level fields replace,
        metadata merges key by key, `updated_at` is always set to now.
        The merge reads and writes under the store lock, so a concurrent
        status change is never overwritten with a stale copy.

        Raises NotFoundError for an unknown id; returns None when the store
        refuses the write.
        """
        stored = self.storage.modify(
            analysis_id,
            lambda existing: apply_changes(existing, changes, now=self._now()),
        )
        if stored is None:
            logger.warning("Analysis update was not persisted", analysis_id=analysis_id)
            return None

        self._invalidate(analysis_id)

        self.storage.add_activity(
            new_activity(
                "price_updated",
                title="Análisis actualizado",
                description=f'"{stored.title}" fue actualizado',
                property_address=stored.property.address,
                prefix="update",
            )
        )
        logger.info("Analysis updated", analysis_id=analysis_id, fields=sorted(changes.model_fields_set))
        return stored

    def update_status(self, analysis_id: str, status: AnalysisStatus) -> bool:
        if not self.storage.update_status(analysis_id, status):
            return False

        self._invalidate(analysis_id)

        record = self.storage.get_by_id(analysis_id)
        title = record.title if record else analysis_id
        self.storage.add_activity(
            new_activity(
                _STATUS_ACTIVITY.get(status, "rental_sent"),
                title=f"Estado actualizado: {status}",
                description=f'Análisis "{title}" cambió a {status}',
                property_address=record.property.address if record else None,
            )
        )
        logger.info("Analysis status changed", analysis_id=analysis_id, status=status)
        return True

    def delete(self, analysis_id: str) -> bool:
        """
        Delete unless published. The status check and the delete happen under
        one store lock, so a record published concurrently is never removed.
        Returns False for an unknown id or a failed write.
        """
        deleted = self.storage.delete_checked(analysis_id, _refuse_published)
        if deleted is None:
            return False

        self._invalidate(analysis_id)
        self.storage.add_activity(
            new_activity(
                "analysis_created",
                title="Análisis eliminado",
                description=f'"{deleted.title}" fue eliminado',
                property_address=deleted.property.address,
                prefix="delete",
            )
        )
        logger.info("Analysis deleted", analysis_id=analysis_id)
        return True

    # ------------------------------------------------------------------
    # bulk
    # ------------------------------------------------------------------
    def export_all(self) -> str:
        return self.storage.export_all()

    def import_all(self, blob: str) -> bool:
        ok = self.storage.import_all(blob)
        if ok:
            self.cache.clear()
            logger.info("Analyses imported")
        return ok

    def clear_all(self) -> bool:
        ok = self.storage.clear_all()
        if ok:
            self.cache.clear()
        return ok
