# src/rentfolio/adapters/analysis_storage.py
from __future__ import annotations

import json
import logging
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Literal

from pydantic import TypeAdapter

from rentfolio.adapters.config import config
from rentfolio.adapters.logging_utils import get_logger, log_event
from rentfolio.domain.analysis import (
    AnalysisStatus,
    SavedAnalysis,
    as_utc,
    generate_analysis_id,
    utcnow,
)
from rentfolio.domain.dashboard import (
    ActivityEntry,
    DashboardSummary,
    derive_recent_activity,
    summarize_analyses,
)
from rentfolio.domain.errors import NotFoundError
from rentfolio.domain.ports import KeyValueStore

logger = get_logger(__name__)

ANALYSES_KEY = "rental_analyses"
DASHBOARD_KEY = "dashboard_data"
_PROBE_KEY = "__rentfolio_probe__"

_analyses_adapter: TypeAdapter[list[SavedAnalysis]] = TypeAdapter(list[SavedAnalysis])


# ---------------------------------------------------------------------
# One lock per physical store, shared by every adapter wrapping it.
# Whole-collection read-modify-write must not interleave across threads.
# ---------------------------------------------------------------------
_store_locks: "weakref.WeakKeyDictionary[Any, threading.RLock]" = weakref.WeakKeyDictionary()
_store_locks_guard = threading.Lock()


def _lock_for(store: Any) -> threading.RLock:
    with _store_locks_guard:
        lock = _store_locks.get(store)
        if lock is None:
            lock = threading.RLock()
            _store_locks[store] = lock
        return lock


CommitKind = Literal["save", "delete", "status", "import"]


@dataclass(frozen=True)
class CommitEvent:
    kind: CommitKind
    analyses: list[SavedAnalysis] = field(default_factory=list)
    analysis_id: str | None = None


CommitHook = Callable[[CommitEvent], None]


class AnalysisStorage:
    """
    Persistence adapter over a key-value store.

    Every operation checks store availability first. When the store is
    missing or broken, reads return empty results and writes return False;
    nothing is raised to the caller. Stored content that fails to parse reads
    as an empty collection and makes writes fail, so a corrupt blob is never
    silently overwritten.

    A successful availability probe is remembered until an operation hits a
    store error, after which the next operation probes again.

    After each confirmed write the `post_commit_hooks` run in order. The
    default hook recomputes the dashboard summary.
    """

    def __init__(
        self,
        store: KeyValueStore | None,
        *,
        activity_limit: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.activity_limit = int(activity_limit or config.ACTIVITY_LOG_LIMIT)
        self._now = clock
        self._lock = _lock_for(store) if store is not None else threading.RLock()
        self._available = False
        self.post_commit_hooks: list[CommitHook] = [self._recompute_stats_hook]

    # ------------------------------------------------------------------
    # store plumbing
    # ------------------------------------------------------------------
    def is_available(self) -> bool:
        if self.store is None:
            return False
        if self._available:
            return True
        try:
            self.store.set(_PROBE_KEY, _PROBE_KEY)
            self.store.remove(_PROBE_KEY)
        except Exception:
            log_event(logger, logging.WARNING, "key-value store unavailable", exc_info=True)
            return False
        self._available = True
        return True

    def _store_failed(self, message: str, level: int = logging.ERROR, **context: Any) -> None:
        self._available = False
        log_event(logger, level, message, exc_info=True, **context)

    def _load(self) -> list[SavedAnalysis]:
        """Strict read: raises when the stored collection is malformed."""
        assert self.store is not None
        raw = self.store.get(ANALYSES_KEY)
        if not raw:
            return []
        return _analyses_adapter.validate_json(raw)

    def _dump(self, analyses: list[SavedAnalysis]) -> None:
        assert self.store is not None
        self.store.set(ANALYSES_KEY, _analyses_adapter.dump_json(analyses).decode("utf-8"))

    def _load_dashboard(self) -> DashboardSummary | None:
        assert self.store is not None
        raw = self.store.get(DASHBOARD_KEY)
        if not raw:
            return None
        return DashboardSummary.model_validate_json(raw)

    def _dump_dashboard(self, summary: DashboardSummary) -> None:
        assert self.store is not None
        self.store.set(DASHBOARD_KEY, summary.model_dump_json())

    def _stamp(self, record: SavedAnalysis, previous: SavedAnalysis) -> None:
        # updated_at never moves backwards
        record.metadata.updated_at = max(as_utc(self._now()), previous.metadata.updated_at)

    def _run_hooks(self, event: CommitEvent) -> None:
        for hook in self.post_commit_hooks:
            try:
                hook(event)
            except Exception:
                log_event(
                    logger,
                    logging.ERROR,
                    "post-commit hook failed",
                    exc_info=True,
                    hook=getattr(hook, "__name__", repr(hook)),
                    kind=event.kind,
                )

    def _recompute_stats_hook(self, event: CommitEvent) -> None:
        self.update_dashboard_stats(event.analyses)

    # ------------------------------------------------------------------
    # analyses
    # ------------------------------------------------------------------
    def get_all(self) -> list[SavedAnalysis]:
        if not self.is_available():
            return []
        with self._lock:
            try:
                return self._load()
            except Exception:
                self._store_failed("error loading analyses")
                return []

    def get_by_id(self, analysis_id: str) -> SavedAnalysis | None:
        for a in self.get_all():
            if a.id == analysis_id:
                return a
        return None

    def save(self, record: SavedAnalysis) -> bool:
        """
        Upsert by id. Replacing an existing record stamps `updated_at` with
        the current time regardless of what the caller sent.
        """
        if not self.is_available():
            return False

        with self._lock:
            try:
                analyses = self._load()
                stored = record.model_copy(deep=True)
                idx = next((i for i, a in enumerate(analyses) if a.id == record.id), None)
                if idx is not None:
                    self._stamp(stored, analyses[idx])
                    analyses[idx] = stored
                else:
                    analyses.append(stored)
                self._dump(analyses)
            except Exception:
                self._store_failed("error saving analysis", analysis_id=record.id)
                return False

            self._run_hooks(CommitEvent("save", analyses, record.id))
        return True

    def modify(
        self,
        analysis_id: str,
        change: Callable[[SavedAnalysis], SavedAnalysis],
    ) -> SavedAnalysis | None:
        """
        Read, change and write back one record while holding the store lock,
        so no other write can land between the read and the write.

        `change` gets a private copy of the stored record and returns its
        replacement; `updated_at` is stamped afterwards. Raises NotFoundError
        for an unknown id. Returns None when the store fails.
        """
        if not self.is_available():
            return None

        with self._lock:
            try:
                analyses = self._load()
            except Exception:
                self._store_failed("error loading analyses", analysis_id=analysis_id)
                return None

            idx = next((i for i, a in enumerate(analyses) if a.id == analysis_id), None)
            if idx is None:
                raise NotFoundError(f"Analysis not found: {analysis_id}")

            previous = analyses[idx]
            updated = change(previous.model_copy(deep=True))
            updated.id = previous.id
            updated.metadata.created_at = previous.metadata.created_at
            self._stamp(updated, previous)
            analyses[idx] = updated

            try:
                self._dump(analyses)
            except Exception:
                self._store_failed("error saving analysis", analysis_id=analysis_id)
                return None

            self._run_hooks(CommitEvent("save", analyses, analysis_id))
        return updated.model_copy(deep=True)

    def delete(self, analysis_id: str) -> bool:
        if not self.is_available():
            return False

        with self._lock:
            try:
                analyses = [a for a in self._load() if a.id != analysis_id]
                self._dump(analyses)
            except Exception:
                self._store_failed("error deleting analysis", analysis_id=analysis_id)
                return False

            self._run_hooks(CommitEvent("delete", analyses, analysis_id))
        return True

    def delete_checked(
        self,
        analysis_id: str,
        guard: Callable[[SavedAnalysis], None],
    ) -> SavedAnalysis | None:
        """
        Delete one record after `guard` has accepted its current state, all
        under the store lock. Whatever `guard` raises propagates and nothing
        is written. Returns the deleted record; None when the id is unknown
        or the store fails.
        """
        if not self.is_available():
            return None

        with self._lock:
            try:
                analyses = self._load()
            except Exception:
                self._store_failed("error loading analyses", analysis_id=analysis_id)
                return None

            target = next((a for a in analyses if a.id == analysis_id), None)
            if target is None:
                return None
            guard(target.model_copy(deep=True))

            remaining = [a for a in analyses if a.id != analysis_id]
            try:
                self._dump(remaining)
            except Exception:
                self._store_failed("error deleting analysis", analysis_id=analysis_id)
                return None

            self._run_hooks(CommitEvent("delete", remaining, analysis_id))
        return target

    def update_status(self, analysis_id: str, status: AnalysisStatus) -> bool:
        if not self.is_available():
            return False

        with self._lock:
            try:
                analyses = self._load()
                target = next((a for a in analyses if a.id == analysis_id), None)
                if target is None:
                    return False
                target.metadata.status = status
                target.metadata.updated_at = max(as_utc(self._now()), target.metadata.updated_at)
                self._dump(analyses)
            except Exception:
                self._store_failed("error updating analysis status", analysis_id=analysis_id, status=status)
                return False

            self._run_hooks(CommitEvent("status", analyses, analysis_id))
        return True

    def clear_all(self) -> bool:
        if not self.is_available():
            return False
        with self._lock:
            try:
                assert self.store is not None
                self.store.remove(ANALYSES_KEY)
                self.store.remove(DASHBOARD_KEY)
            except Exception:
                self._store_failed("error clearing store")
                return False
        return True

    # ------------------------------------------------------------------
    # bulk export / import
    # ------------------------------------------------------------------
    def export_all(self) -> str:
        data = {
            "analyses": [a.model_dump(mode="json") for a in self.get_all()],
            "dashboard_data": self.get_dashboard_data().model_dump(mode="json"),
            "exported_at": self._now().isoformat(),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def import_all(self, blob: str) -> bool:
        """
        Replace the whole collection with the snapshot's `analyses`.
        Anything but a list of valid analyses is rejected untouched.
        """
        try:
            data = json.loads(blob)
        except (TypeError, ValueError):
            log_event(logger, logging.WARNING, "import payload is not JSON")
            return False

        raw = data.get("analyses") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            log_event(logger, logging.WARNING, "import payload has no analyses list")
            return False

        try:
            analyses = _analyses_adapter.validate_python(raw)
        except ValueError:
            log_event(logger, logging.WARNING, "import payload contains invalid analyses", exc_info=True)
            return False

        if not self.is_available():
            return False

        with self._lock:
            try:
                self._dump(analyses)
            except Exception:
                self._store_failed("error importing analyses")
                return False

            self._run_hooks(CommitEvent("import", analyses))
        return True

    # ------------------------------------------------------------------
    # dashboard
    # ------------------------------------------------------------------
    def update_dashboard_stats(self, analyses: list[SavedAnalysis] | None = None) -> DashboardSummary:
        """
        Rebuild counts from the records. The activity log already on file is
        kept; when there is none yet it is derived from the records.
        """
        if analyses is None:
            analyses = self.get_all()

        if not self.is_available():
            return summarize_analyses(analyses, [])

        with self._lock:
            activity: list[ActivityEntry] | None = None
            try:
                current = self._load_dashboard()
                if current is not None:
                    activity = current.recent_activity
            except Exception:
                self._store_failed("error loading dashboard data", logging.WARNING)

            if activity is None:
                activity = derive_recent_activity(analyses, self.activity_limit)

            summary = summarize_analyses(analyses, activity[: self.activity_limit])
            try:
                self._dump_dashboard(summary)
            except Exception:
                self._store_failed("error writing dashboard data")
        return summary

    def get_dashboard_data(self) -> DashboardSummary:
        if not self.is_available():
            return DashboardSummary()

        with self._lock:
            try:
                stored = self._load_dashboard()
                if stored is not None:
                    return stored
            except Exception:
                self._store_failed("error loading dashboard data", logging.WARNING)

            return self.update_dashboard_stats()

    def add_activity(self, entry: ActivityEntry) -> bool:
        """Prepend `entry`; only the newest `activity_limit` entries are kept."""
        if not self.is_available():
            return False

        with self._lock:
            current = self.get_dashboard_data()
            activities = [entry, *current.recent_activity][: self.activity_limit]
            updated = current.model_copy(update={"recent_activity": activities})
            try:
                self._dump_dashboard(updated)
            except Exception:
                self._store_failed("error adding dashboard activity")
                return False
        return True

    @staticmethod
    def generate_id() -> str:
        return generate_analysis_id()
