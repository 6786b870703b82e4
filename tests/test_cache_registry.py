"""Tests for the cache registry, its sweep task and the read-through helpers."""

import asyncio

import pytest

from app.adapters.cache.disabled import DisabledCache
from app.core.errors import CacheAppError
from app.services.cache_registry import NAMESPACE_TTLS, CacheRegistry, cache_api_response, cached


@pytest.fixture
def registry(backend) -> CacheRegistry:
    return CacheRegistry(backend)


def test_every_namespace_gets_its_default_ttl(registry: CacheRegistry) -> None:
    assert registry.namespaces() == list(NAMESPACE_TTLS)
    assert registry.event.default_ttl_seconds == 600
    assert registry.user.default_ttl_seconds == 300
    assert registry.image.default_ttl_seconds == 1800
    assert registry.api.default_ttl_seconds == 60


def test_unknown_namespace_raises(registry: CacheRegistry) -> None:
    with pytest.raises(CacheAppError) as exc_info:
        registry.get("gallery")
    assert exc_info.value.code == "unknown_cache_namespace"


def test_disabled_registry_hands_out_noop_caches(local_backend) -> None:
    registry = CacheRegistry(local_backend, disabled=True)

    assert all(isinstance(registry.get(name), DisabledCache) for name in registry.namespaces())
    assert registry.describe()["disabled"] is True


@pytest.mark.asyncio
async def test_sweep_evicts_expired_local_entries(local_backend, clock) -> None:
    registry = CacheRegistry(local_backend)
    await registry.event.set("old", 1, ttl_seconds=5)
    await registry.user.set("old", 1, ttl_seconds=5)
    await registry.user.set("fresh", 2, ttl_seconds=500)
    clock.advance(10)

    removed = await registry.sweep()

    assert removed == 2
    assert list(local_backend.store.entries) == ["user:fresh"]


@pytest.mark.asyncio
async def test_sweep_runs_registered_sweepers(local_backend) -> None:
    registry = CacheRegistry(local_backend)
    registry.add_sweeper(lambda: 3)

    assert await registry.sweep() == 3


@pytest.mark.asyncio
async def test_background_sweep_runs_until_stopped(local_backend, clock) -> None:
    registry = CacheRegistry(local_backend, cleanup_interval_seconds=0.01)
    await registry.event.set("old", 1, ttl_seconds=5)
    clock.advance(10)

    registry.start()
    assert registry.sweeping is True
    await asyncio.sleep(0.05)

    assert len(local_backend.store) == 0
    await registry.stop()
    assert registry.sweeping is False


@pytest.mark.asyncio
async def test_sweep_failure_keeps_task_alive(local_backend) -> None:
    registry = CacheRegistry(local_backend, cleanup_interval_seconds=0.01)
    calls = []

    def flaky() -> int:
        calls.append(1)
        raise RuntimeError("boom")

    registry.add_sweeper(flaky)
    registry.start()
    await asyncio.sleep(0.05)

    assert len(calls) >= 2
    assert registry.sweeping is True
    await registry.stop()


@pytest.mark.asyncio
async def test_stop_closes_remote_client(remote_backend, fake_redis) -> None:
    registry = CacheRegistry(remote_backend)
    registry.start()

    await registry.stop()

    assert fake_redis.closed is True


class TestCachedDecorator:
    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, registry: CacheRegistry) -> None:
        calls: list[str] = []

        async def load_event(event_id: str) -> dict:
            calls.append(event_id)
            return {"id": event_id, "title": "Members Night"}

        load = cached(registry.event, lambda event_id: f"event:{event_id}")(load_event)

        first = await load("evt-1")
        second = await load("evt-1")

        assert first == second == {"id": "evt-1", "title": "Members Night"}
        assert calls == ["evt-1"]

    @pytest.mark.asyncio
    async def test_none_results_are_not_cached(self, registry: CacheRegistry) -> None:
        calls: list[str] = []

        async def load_event(event_id: str) -> None:
            calls.append(event_id)
            return None

        load = cached(registry.event, lambda event_id: f"event:{event_id}")(load_event)
        await load("missing")
        await load("missing")

        assert calls == ["missing", "missing"]

    @pytest.mark.asyncio
    async def test_custom_ttl_is_applied(self, registry: CacheRegistry, clock) -> None:
        async def load() -> list:
            return [1]

        wrapped = cached(registry.api, lambda: "feed", ttl_seconds=2)(load)
        await wrapped()
        clock.advance(3)

        assert await registry.api.get("feed") is None

    @pytest.mark.asyncio
    async def test_store_outage_falls_through_to_function(self, remote_backend, fake_redis) -> None:
        registry = CacheRegistry(remote_backend)
        fake_redis.fail = True
        calls: list[int] = []

        async def load() -> dict:
            calls.append(1)
            return {"ok": True}

        wrapped = cached(registry.api, lambda: "status")(load)

        assert await wrapped() == {"ok": True}
        assert await wrapped() == {"ok": True}
        assert len(calls) == 2


@pytest.mark.asyncio
async def test_cache_api_response(registry: CacheRegistry) -> None:
    calls: list[int] = []

    async def produce() -> dict:
        calls.append(1)
        return {"posts": ["a", "b"]}

    first = await cache_api_response(registry.api, "instagram:club", produce)
    second = await cache_api_response(registry.api, "instagram:club", produce)

    assert first == second == {"posts": ["a", "b"]}
    assert len(calls) == 1
