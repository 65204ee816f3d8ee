# src/rentfolio/services/cache.py
from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Mapping, TypeVar

from rentfolio.adapters.config import config
from rentfolio.domain.analysis import SavedAnalysis

T = TypeVar("T")


@dataclass
class _Slot(Generic[T]):
    value: T
    expires_at: float


def list_cache_key(query: Mapping[str, Any] | None = None) -> str:
    """Canonical key for a list query; `{}` is the unfiltered "list all"."""
    return json.dumps(dict(query or {}), sort_keys=True, default=str)


class AnalysisCache:
    """
    Short-lived read-through copies of saved analyses.

    Expiry is lazy: a slot past its TTL is dropped on the next read and
    reported as a miss, and writes sweep out every expired slot at most once
    per TTL. A miss only means "not cached", never "not found".
    Values are deep-copied in and out so callers cannot mutate cached state.
    With `enabled=False` every read misses and every write is ignored.

    Every invalidation bumps `generation()`. A reader that takes the
    generation before loading from storage and passes it to `set_entry` /
    `set_list` never caches a snapshot that an invalidation has overtaken.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        *,
        enabled: bool | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = float(ttl_seconds if ttl_seconds is not None else config.CACHE_TTL_S)
        self.enabled = config.CACHE_ENABLED if enabled is None else bool(enabled)
        self._clock = clock
        self._entries: dict[str, _Slot[SavedAnalysis]] = {}
        self._lists: dict[str, _Slot[list[SavedAnalysis]]] = {}
        self._generation = 0
        self._next_sweep = clock() + self.ttl_seconds
        self._lock = threading.Lock()

    def _fresh(self, slot: _Slot[Any] | None) -> bool:
        return slot is not None and self._clock() < slot.expires_at

    def _accepts(self, generation: int | None) -> bool:
        return generation is None or generation == self._generation

    def _sweep(self, now: float) -> None:
        # caller holds the lock
        if now < self._next_sweep:
            return
        for slots in (self._entries, self._lists):
            for key in [k for k, slot in slots.items() if slot.expires_at <= now]:
                del slots[key]
        self._next_sweep = now + self.ttl_seconds

    def generation(self) -> int:
        with self._lock:
            return self._generation

    # ---- single records ----
    def get_entry(self, analysis_id: str) -> SavedAnalysis | None:
        if not self.enabled:
            return None
        with self._lock:
            slot = self._entries.get(analysis_id)
            if not self._fresh(slot):
                self._entries.pop(analysis_id, None)
                return None
            return slot.value.model_copy(deep=True)

    def set_entry(self, analysis_id: str, record: SavedAnalysis, *, generation: int | None = None) -> None:
        if not self.enabled:
            return
        with self._lock:
            if not self._accepts(generation):
                return
            now = self._clock()
            self._sweep(now)
            self._entries[analysis_id] = _Slot(record.model_copy(deep=True), now + self.ttl_seconds)

    def invalidate_entry(self, analysis_id: str) -> None:
        with self._lock:
            self._generation += 1
            self._entries.pop(analysis_id, None)

    # ---- list queries ----
    def get_list(self, query_key: str) -> list[SavedAnalysis] | None:
        if not self.enabled:
            return None
        with self._lock:
            slot = self._lists.get(query_key)
            if not self._fresh(slot):
                self._lists.pop(query_key, None)
                return None
            return [a.model_copy(deep=True) for a in slot.value]

    def set_list(self, query_key: str, records: list[SavedAnalysis], *, generation: int | None = None) -> None:
        if not self.enabled:
            return
        with self._lock:
            if not self._accepts(generation):
                return
            now = self._clock()
            self._sweep(now)
            self._lists[query_key] = _Slot([a.model_copy(deep=True) for a in records], now + self.ttl_seconds)

    def invalidate_all_lists(self) -> None:
        with self._lock:
            self._generation += 1
            self._lists.clear()

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()
            self._lists.clear()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "lists": len(self._lists)}
