# tests/test_cache.py
from rentfolio.adapters.analysis_storage import AnalysisStorage
from rentfolio.adapters.kv_store import InMemoryKeyValueStore
from rentfolio.services.analysis_repository import AnalysisRepository
from rentfolio.services.cache import AnalysisCache, list_cache_key


def test_entry_expires_after_ttl(cache, clock, make_analysis):
    cache.set_entry("a1", make_analysis("a1"))

    clock.advance(299)
    assert cache.get_entry("a1") is not None

    clock.advance(2)
    assert cache.get_entry("a1") is None
    assert cache.stats()["entries"] == 0


def test_list_expires_after_ttl(cache, clock, make_analysis):
    key = list_cache_key({})
    cache.set_list(key, [make_analysis("a1"), make_analysis("a2")])

    assert [a.id for a in cache.get_list(key)] == ["a1", "a2"]
    clock.advance(300)
    assert cache.get_list(key) is None


def test_invalidation(cache, make_analysis):
    cache.set_entry("a1", make_analysis("a1"))
    cache.set_entry("a2", make_analysis("a2"))
    cache.set_list(list_cache_key({}), [make_analysis("a1")])
    cache.set_list(list_cache_key({"status": "draft"}), [])

    cache.invalidate_entry("a1")
    assert cache.get_entry("a1") is None
    assert cache.get_entry("a2") is not None

    cache.invalidate_all_lists()
    assert cache.stats() == {"entries": 1, "lists": 0}

    cache.clear()
    assert cache.stats() == {"entries": 0, "lists": 0}


def test_cached_values_are_copies(cache, make_analysis):
    rec = make_analysis("a1")
    cache.set_entry("a1", rec)
    rec.title = "changed after caching"

    out = cache.get_entry("a1")
    assert out.title != "changed after caching"
    out.metadata.status = "archived"
    assert cache.get_entry("a1").metadata.status == "draft"


def test_list_cache_key_is_order_independent():
    assert list_cache_key({"b": 1, "a": 2}) == list_cache_key({"a": 2, "b": 1})
    assert list_cache_key(None) == list_cache_key({})


def test_disabled_cache_never_stores(make_analysis):
    cache = AnalysisCache(enabled=False)
    cache.set_entry("a1", make_analysis("a1"))
    cache.set_list(list_cache_key({}), [make_analysis("a1")])

    assert cache.get_entry("a1") is None
    assert cache.get_list(list_cache_key({})) is None
    assert cache.stats() == {"entries": 0, "lists": 0}


def test_repository_results_do_not_depend_on_cache(make_analysis):
    outcomes = []
    for enabled in (True, False):
        repo = AnalysisRepository(
            AnalysisStorage(InMemoryKeyValueStore()),
            AnalysisCache(enabled=enabled),
        )
        repo.create(make_analysis("a1"))
        repo.create(make_analysis("a2"))
        repo.list_all()
        repo.delete("a1")
        repo.update_status("a2", "published")
        outcomes.append([(a.id, a.metadata.status) for a in repo.list_all()])

    assert outcomes[0] == outcomes[1] == [("a2", "published")]


def test_stale_read_window_after_out_of_band_write(storage, cache, clock, make_analysis):
    repo = AnalysisRepository(storage, cache)
    repo.create(make_analysis("a1", title="Antes"))
    assert repo.get_by_id("a1").title == "Antes"

    # a write that bypasses the repository is invisible until the TTL runs out
    storage.save(make_analysis("a1", title="Después"))
    assert repo.get_by_id("a1").title == "Antes"

    clock.advance(301)
    assert repo.get_by_id("a1").title == "Después"


def test_expired_slots_are_swept_on_later_writes(cache, clock, make_analysis):
    cache.set_entry("a1", make_analysis("a1"))
    cache.set_list(list_cache_key({"status": "draft"}), [make_analysis("a1")])

    clock.advance(301)
    # neither slot is read again; the next write clears them out
    cache.set_entry("a2", make_analysis("a2"))

    assert cache.stats() == {"entries": 1, "lists": 0}
    assert cache.get_entry("a2") is not None


def test_set_from_before_an_invalidation_is_dropped(cache, make_analysis):
    key = list_cache_key({})
    generation = cache.generation()

    cache.invalidate_all_lists()
    cache.set_list(key, [make_analysis("a1")], generation=generation)
    cache.set_entry("a1", make_analysis("a1"), generation=generation)
    assert cache.get_list(key) is None
    assert cache.get_entry("a1") is None

    fresh = cache.generation()
    cache.set_list(key, [make_analysis("a1")], generation=fresh)
    assert [a.id for a in cache.get_list(key)] == ["a1"]
