# tests/test_analysis_storage.py
import json
from datetime import datetime, timedelta, timezone

import pytest

from rentfolio.adapters.analysis_storage import (
    ANALYSES_KEY,
    DASHBOARD_KEY,
    AnalysisStorage,
)
from rentfolio.adapters.kv_store import InMemoryKeyValueStore, SqlKeyValueStore
from rentfolio.domain.dashboard import new_activity
from rentfolio.domain.errors import ForbiddenError, NotFoundError


class BrokenStore:
    """Every call fails, like a store the runtime refuses to open."""

    def get(self, key):
        raise OSError("store unavailable")

    def set(self, key, value):
        raise OSError("store unavailable")

    def remove(self, key):
        raise OSError("store unavailable")


def test_save_appends_new_record_untouched(storage, make_analysis):
    rec = make_analysis("a1")
    assert storage.save(rec)

    stored = storage.get_by_id("a1")
    assert stored == rec
    assert [a.id for a in storage.get_all()] == ["a1"]


def test_save_existing_id_replaces_and_stamps_updated_at(storage, make_analysis):
    storage.save(make_analysis("a1", title="Original"))

    before = datetime.now(timezone.utc)
    stale = make_analysis("a1", title="Replaced", updated_at=datetime(2000, 1, 1, tzinfo=timezone.utc))
    assert storage.save(stale)

    all_ = storage.get_all()
    assert len(all_) == 1
    stored = all_[0]
    assert stored.title == "Replaced"
    assert stored.metadata.updated_at >= before
    # everything except updated_at is what the caller sent
    assert stored.model_copy(update={"metadata": stale.metadata}) == stale
    assert stored.metadata.created_at == stale.metadata.created_at


def test_save_never_moves_updated_at_backwards(kv, make_analysis):
    frozen = datetime(2024, 1, 1, tzinfo=timezone.utc)
    storage = AnalysisStorage(kv, clock=lambda: frozen)

    future = frozen + timedelta(days=30)
    storage.save(make_analysis("a1", updated_at=future))
    storage.save(make_analysis("a1", title="again"))

    assert storage.get_by_id("a1").metadata.updated_at == future


def test_delete_removes_only_that_record(storage, make_analysis):
    storage.save(make_analysis("a1"))
    storage.save(make_analysis("a2"))

    assert storage.delete("a1")
    assert storage.get_by_id("a1") is None
    assert [a.id for a in storage.get_all()] == ["a2"]


def test_update_status_changes_status_and_missing_id_fails(storage, make_analysis):
    storage.save(make_analysis("a1"))

    assert storage.update_status("a1", "sent_to_client")
    assert storage.get_by_id("a1").metadata.status == "sent_to_client"
    assert storage.update_status("missing", "archived") is False


def test_unavailable_store_degrades_without_raising(make_analysis):
    for store in (None, BrokenStore()):
        storage = AnalysisStorage(store)
        assert storage.is_available() is False
        assert storage.get_all() == []
        assert storage.get_by_id("a1") is None
        assert storage.save(make_analysis("a1")) is False
        assert storage.delete("a1") is False
        assert storage.update_status("a1", "archived") is False
        assert storage.clear_all() is False
        assert storage.get_dashboard_data().total_analyses == 0


def test_corrupt_collection_reads_empty_and_refuses_writes(make_analysis):
    kv = InMemoryKeyValueStore({ANALYSES_KEY: "{not json"})
    storage = AnalysisStorage(kv)

    assert storage.get_all() == []
    assert storage.save(make_analysis("a1")) is False
    assert storage.delete("a1") is False
    # the corrupt blob is not overwritten
    assert kv.get(ANALYSES_KEY) == "{not json"


class FlakyStore(InMemoryKeyValueStore):
    """Counts writes outside the analyses and dashboard keys; reads fail on demand."""

    def __init__(self):
        super().__init__()
        self.side_writes = 0
        self.fail_reads = False

    def get(self, key):
        if self.fail_reads:
            raise OSError("read failed")
        return super().get(key)

    def set(self, key, value):
        if key not in (ANALYSES_KEY, DASHBOARD_KEY):
            self.side_writes += 1
        super().set(key, value)


def test_availability_is_checked_once_until_a_store_error(make_analysis):
    store = FlakyStore()
    storage = AnalysisStorage(store)
    storage.save(make_analysis("a1"))
    for _ in range(5):
        assert storage.get_by_id("a1") is not None
    assert store.side_writes == 1

    store.fail_reads = True
    assert storage.get_all() == []

    store.fail_reads = False
    assert storage.get_by_id("a1") is not None
    assert store.side_writes == 2


def test_modify_merges_under_lock_and_stamps(kv, make_analysis):
    later = datetime(2024, 6, 1, tzinfo=timezone.utc)
    storage = AnalysisStorage(kv, clock=lambda: later)
    storage.save(make_analysis("a1", title="Antes"))

    def rename(record):
        record.title = "Después"
        record.id = "other"
        return record

    updated = storage.modify("a1", rename)
    assert updated.id == "a1"
    assert updated.title == "Después"
    assert updated.metadata.created_at == make_analysis("a1").metadata.created_at
    assert updated.metadata.updated_at == later
    assert storage.get_by_id("a1") == updated


def test_modify_unknown_id_raises_and_writes_nothing(storage, kv, make_analysis):
    storage.save(make_analysis("a1"))
    before = kv.get(ANALYSES_KEY)

    with pytest.raises(NotFoundError):
        storage.modify("nope", lambda record: record)
    assert kv.get(ANALYSES_KEY) == before


def test_delete_checked_guard_keeps_record(storage, make_analysis):
    storage.save(make_analysis("a1", status="published"))
    storage.save(make_analysis("a2"))

    def refuse(record):
        raise ForbiddenError(record.id)

    with pytest.raises(ForbiddenError):
        storage.delete_checked("a1", refuse)
    assert [a.id for a in storage.get_all()] == ["a1", "a2"]

    deleted = storage.delete_checked("a2", lambda record: None)
    assert deleted.id == "a2"
    assert [a.id for a in storage.get_all()] == ["a1"]
    assert storage.delete_checked("a2", lambda record: None) is None


def test_save_recomputes_dashboard(storage, kv, make_analysis):
    storage.save(make_analysis("a1", status="sent_to_client", cap_rate=6.0, rent_clp=500_000))
    storage.save(make_analysis("a2", status="draft", cap_rate=0.0, rent_clp=700_000))

    assert kv.get(DASHBOARD_KEY) is not None
    summary = storage.get_dashboard_data()
    assert summary.total_analyses == 2
    assert summary.active_rentals == 1
    assert summary.total_revenue == 1_200_000
    assert summary.average_rentability == 3.0


def test_failing_hook_does_not_fail_the_write(storage, make_analysis):
    seen = []

    def boom(event):
        raise RuntimeError("hook exploded")

    storage.post_commit_hooks.append(boom)
    storage.post_commit_hooks.append(lambda event: seen.append(event.kind))

    assert storage.save(make_analysis("a1"))
    assert storage.get_by_id("a1") is not None
    assert seen == ["save"]


def test_stats_recompute_keeps_activity_log(storage, make_analysis):
    storage.save(make_analysis("a1"))
    entry = new_activity("price_updated", title="t", description="d")
    assert storage.add_activity(entry)

    storage.save(make_analysis("a2"))

    assert storage.get_dashboard_data().recent_activity[0].id == entry.id


def test_export_then_import_restores_collection(storage, make_analysis):
    storage.save(make_analysis("a1", title="Uno"))
    storage.save(make_analysis("a2", title="Dos"))

    blob = storage.export_all()
    data = json.loads(blob)
    assert set(data) == {"analyses", "dashboard_data", "exported_at"}
    assert [a["id"] for a in data["analyses"]] == ["a1", "a2"]

    other = AnalysisStorage(InMemoryKeyValueStore())
    assert other.import_all(blob)
    assert [a.title for a in other.get_all()] == ["Uno", "Dos"]
    assert other.get_dashboard_data().total_analyses == 2


def test_import_rejects_non_list_analyses_and_keeps_collection(storage, make_analysis):
    storage.save(make_analysis("a1"))

    for payload in (
        json.dumps({"analyses": {"id": "x"}}),
        json.dumps({"analyses": "nope"}),
        json.dumps({"something_else": []}),
        json.dumps([1, 2, 3]),
        "definitely not json",
    ):
        assert storage.import_all(payload) is False

    assert [a.id for a in storage.get_all()] == ["a1"]


def test_import_rejects_invalid_records(storage, make_analysis):
    storage.save(make_analysis("a1"))

    assert storage.import_all(json.dumps({"analyses": [{"id": "broken"}]})) is False
    assert [a.id for a in storage.get_all()] == ["a1"]


def test_clear_all_drops_analyses_and_dashboard(storage, kv, make_analysis):
    storage.save(make_analysis("a1"))

    assert storage.clear_all()
    assert storage.get_all() == []
    assert kv.get(ANALYSES_KEY) is None
    assert kv.get(DASHBOARD_KEY) is None


def test_generate_id_format():
    ident = AnalysisStorage.generate_id()
    prefix, ms, suffix = ident.split("_")
    assert prefix == "analysis"
    assert ms.isdigit()
    assert len(suffix) == 9 and suffix.isalnum()


def test_sql_store_persists_across_instances(tmp_path, make_analysis):
    uri = f"sqlite:///{tmp_path / 'kv.db'}"

    first = AnalysisStorage(SqlKeyValueStore(uri))
    assert first.is_available()
    assert first.save(make_analysis("a1", title="Persistido"))

    second = AnalysisStorage(SqlKeyValueStore(uri))
    assert second.get_by_id("a1").title == "Persistido"
    assert second.delete("a1")
    assert first.get_all() == []
