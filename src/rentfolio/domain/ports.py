# src/rentfolio/domain/ports.py
from __future__ import annotations

from typing import Protocol

from rentfolio.domain.analysis import AnalysisChanges, AnalysisStatus, SavedAnalysis
from rentfolio.domain.dashboard import DashboardSummary


# ----------------------------
# Raw key-value storage
# ----------------------------

class KeyValueStore(Protocol):
    """
    String-keyed text store. Implementations may raise on any call when the
    backing medium is unavailable; callers treat that as "no store".
    """

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


# ----------------------------
# Saved analyses
# ----------------------------

class SavedAnalysisRepository(Protocol):
    def list_all(self) -> list[SavedAnalysis]:
        ...

    def get_by_id(self, analysis_id: str) -> SavedAnalysis | None:
        ...

    def create(self, record: SavedAnalysis) -> SavedAnalysis:
        ...

    def update(self, analysis_id: str, changes: AnalysisChanges) -> SavedAnalysis | None:
        ...

    def update_status(self, analysis_id: str, status: AnalysisStatus) -> bool:
        ...

    def delete(self, analysis_id: str) -> bool:
        ...

    def dashboard(self) -> DashboardSummary:
        ...
