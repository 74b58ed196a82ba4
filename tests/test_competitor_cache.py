from datetime import timedelta

from app.domain.practice_ranking import CompetitorIdentity
from app.services.competitor_cache import CompetitorCache, generate_cache_key
from tests.conftest import DEFAULT_COMPETITORS


def test_cache_key_normalization() -> None:
    assert generate_cache_key("  Orthodontist ", "Austin,   TX") == "orthodontist:austin, tx"
    assert generate_cache_key("ORTHODONTIST", "austin, tx") == generate_cache_key("orthodontist", "Austin, TX")


def test_get_returns_none_on_miss(cache: CompetitorCache) -> None:
    assert cache.get("orthodontist", "Austin, TX") is None


def test_set_then_get_preserves_order_and_identity_fields(cache: CompetitorCache, cache_store) -> None:
    cache.set("Orthodontist", "Austin, TX", DEFAULT_COMPETITORS)

    cached = cache.get("orthodontist", "austin, tx")

    assert [c.place_id for c in cached] == ["p1", "p2", "p3"]
    assert cached[0] == CompetitorIdentity(
        place_id="p1",
        name="Austin Braces Studio",
        address="p1 Main St",
        category="Orthodontist",
    )
    entry = cache_store.entries["orthodontist:austin, tx"]
    assert entry["competitors"][0] == {
        "placeId": "p1",
        "name": "Austin Braces Studio",
        "address": "p1 Main St",
        "category": "Orthodontist",
    }


def test_expired_entries_are_ignored_and_cleaned(cache: CompetitorCache, cache_store, clock) -> None:
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)

    clock.advance(hours=4320)
    assert cache.get("orthodontist", "Austin, TX") is None
    assert "orthodontist:austin, tx" in cache_store.entries

    clock.advance(seconds=1)
    assert cache.cleanup_expired() == 1
    assert cache_store.entries == {}


def test_set_overwrites_existing_entry(cache: CompetitorCache, clock) -> None:
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)
    clock.advance(days=1)
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS[:1])

    assert [c.place_id for c in cache.get("orthodontist", "Austin, TX")] == ["p1"]


def test_invalidate(cache: CompetitorCache) -> None:
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)

    assert cache.invalidate("Orthodontist", "Austin, TX") is True
    assert cache.invalidate("Orthodontist", "Austin, TX") is False
    assert cache.get("orthodontist", "Austin, TX") is None


def test_storage_failures_never_propagate(cache: CompetitorCache, cache_store) -> None:
    cache_store.fail_with = RuntimeError("database down")

    assert cache.get("orthodontist", "Austin, TX") is None
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)
    assert cache.invalidate("orthodontist", "Austin, TX") is False
    assert cache.cleanup_expired() == 0
    assert cache.stats()["total_entries"] == 0


def test_malformed_entry_reads_as_miss(cache: CompetitorCache, cache_store) -> None:
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)
    cache_store.entries["orthodontist:austin, tx"]["competitors"].append("not-a-competitor")

    assert cache.get("orthodontist", "Austin, TX") is None


def test_non_list_entry_reads_as_miss(cache: CompetitorCache, cache_store) -> None:
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)
    cache_store.entries["orthodontist:austin, tx"]["competitors"] = 42

    assert cache.get("orthodontist", "Austin, TX") is None


def test_stats(cache: CompetitorCache, clock) -> None:
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)
    clock.advance(days=200)
    cache.set("endodontist", "Dallas, TX", DEFAULT_COMPETITORS)

    stats = cache.stats()

    assert stats["total_entries"] == 2
    assert stats["expired_entries"] == 1
    assert stats["active_entries"] == 1
    assert stats["newest_entry"] - stats["oldest_entry"] == timedelta(days=200)
