"""Cache contract tests, run against both the local map and the Redis store."""

import pytest

from app.adapters.cache import LookupStatus, create_cache


@pytest.fixture
def cache(backend):
    return create_cache(backend, "event", default_ttl_seconds=60)


@pytest.fixture
def other_cache(backend):
    return create_cache(backend, "user", default_ttl_seconds=60)


@pytest.mark.asyncio
async def test_unwritten_key_is_absent(cache) -> None:
    assert await cache.get("missing") is None
    assert await cache.has("missing") is False
    assert (await cache.lookup("missing")).status is LookupStatus.MISS


@pytest.mark.asyncio
async def test_set_then_get_returns_value(cache) -> None:
    await cache.set("e1", {"title": "Spring Gala"}, ttl_seconds=30)

    assert await cache.get("e1") == {"title": "Spring Gala"}
    assert await cache.has("e1") is True
    lookup = await cache.lookup("e1")
    assert lookup.found
    assert lookup.status is LookupStatus.HIT


@pytest.mark.asyncio
async def test_entry_expires_after_ttl(cache, clock) -> None:
    await cache.set("e1", {"title": "Spring Gala"}, ttl_seconds=30)

    clock.advance(29)
    assert await cache.get("e1") == {"title": "Spring Gala"}

    clock.advance(2)
    assert await cache.get("e1") is None
    assert await cache.has("e1") is False


@pytest.mark.asyncio
async def test_namespace_default_ttl_applies(cache, clock) -> None:
    await cache.set("e1", [1, 2, 3])

    clock.advance(59)
    assert await cache.has("e1") is True

    clock.advance(2)
    assert await cache.has("e1") is False


@pytest.mark.asyncio
async def test_overwrite_replaces_value_and_ttl(cache, clock) -> None:
    await cache.set("e1", "old", ttl_seconds=5)
    await cache.set("e1", "new", ttl_seconds=100)

    clock.advance(10)
    assert await cache.get("e1") == "new"


@pytest.mark.asyncio
async def test_json_payload_survives_round_trip(cache) -> None:
    payload = {
        "id": "evt-1",
        "capacity": 120,
        "price": 12.5,
        "published": True,
        "venue": None,
        "tags": ["gala", "members"],
        "coordination": {"contacts": [{"name": "Ana", "phone": "555-0100"}]},
    }
    await cache.set("evt-1", payload)

    assert await cache.get("evt-1") == payload


@pytest.mark.asyncio
async def test_delete_reports_presence(cache) -> None:
    await cache.set("e1", "value")

    assert await cache.delete("e1") is True
    assert await cache.get("e1") is None
    assert await cache.delete("e1") is False
    assert await cache.delete("never-set") is False


@pytest.mark.asyncio
async def test_delete_of_expired_entry_reports_absent(cache, clock) -> None:
    await cache.set("e1", "value", ttl_seconds=1)
    clock.advance(5)

    assert await cache.delete("e1") is False


@pytest.mark.asyncio
async def test_clear_only_touches_own_namespace(cache, other_cache) -> None:
    await cache.set("a", 1)
    await cache.set("b", 2)
    await other_cache.set("a", "user-a")

    await cache.clear()

    assert await cache.get("a") is None
    assert await cache.get("b") is None
    assert await cache.size() == 0
    assert await other_cache.get("a") == "user-a"
    assert await other_cache.size() == 1


@pytest.mark.asyncio
async def test_same_key_in_two_namespaces_does_not_collide(cache, other_cache) -> None:
    await cache.set("42", "event-42")
    await other_cache.set("42", "user-42")

    assert await cache.get("42") == "event-42"
    assert await other_cache.get("42") == "user-42"


@pytest.mark.asyncio
async def test_size_counts_live_entries_only(cache, clock) -> None:
    await cache.set("short", 1, ttl_seconds=5)
    await cache.set("long", 2, ttl_seconds=50)
    assert await cache.size() == 2

    clock.advance(10)
    assert await cache.size() == 1


@pytest.mark.asyncio
async def test_cleanup_leaves_live_entries(cache, clock) -> None:
    await cache.set("short", 1, ttl_seconds=5)
    await cache.set("long", 2, ttl_seconds=50)
    clock.advance(10)

    removed = await cache.cleanup()

    assert removed >= 0
    assert await cache.has("short") is False
    assert await cache.get("long") == 2
    assert await cache.size() == 1


@pytest.mark.asyncio
async def test_entry_is_gone_exactly_at_ttl(cache, clock) -> None:
    await cache.set("e1", "value", ttl_seconds=30)

    clock.advance(30)

    assert await cache.get("e1") is None
    assert await cache.has("e1") is False
    assert await cache.size() == 0


@pytest.mark.asyncio
async def test_cached_value_is_a_copy(cache) -> None:
    tags = ["gala"]
    await cache.set("e1", {"tags": tags})
    tags.append("changed-after-set")

    first = await cache.get("e1")
    first["tags"].append("changed-after-get")

    assert await cache.get("e1") == {"tags": ["gala"]}


@pytest.mark.asyncio
async def test_values_come_back_as_json_types(cache) -> None:
    await cache.set("e1", {"slots": (1, 2)})

    assert await cache.get("e1") == {"slots": [1, 2]}


@pytest.mark.asyncio
async def test_unserializable_value_is_skipped(cache) -> None:
    await cache.set("e1", object())

    assert await cache.get("e1") is None
    assert await cache.has("e1") is False
