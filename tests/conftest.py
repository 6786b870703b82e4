"""Pytest configuration and fixtures shared across all test modules.

Environment is pinned before any app import so settings never pick up a
developer's Redis URL. The Redis test double and the local map share one
fake clock, which lets the cache and limiter suites run unchanged against
both backends.
"""

import asyncio
import fnmatch
import os

# Set before any imports that might load settings
os.environ["APP_ENV"] = "testing"
for _var in (
    "CACHE_REDIS_URL",
    "CACHE_REDIS_TOKEN",
    "CACHE_DISABLED",
    "RATE_LIMIT_ENABLED",
    "RATE_LIMIT_INCLUDE_HEADERS",
):
    os.environ.pop(_var, None)

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.adapters.backend import LocalBackend, MemoryStore, RemoteBackend


class FakeClock:
    """Deterministic clock (UNIX seconds) used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakePipeline:
    """Queues commands and runs them back to back on ``execute``."""

    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._commands: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._commands.clear()

    def incr(self, *args, **kwargs) -> "FakePipeline":
        self._commands.append(("incr", args, kwargs))
        return self

    def pexpire(self, *args, **kwargs) -> "FakePipeline":
        self._commands.append(("pexpire", args, kwargs))
        return self

    def pttl(self, *args, **kwargs) -> "FakePipeline":
        self._commands.append(("pttl", args, kwargs))
        return self

    async def execute(self) -> list:
        await self._redis._io()
        results = []
        for name, args, kwargs in self._commands:
            results.append(getattr(self._redis, f"_{name}")(*args, **kwargs))
        self._commands.clear()
        return results


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` (decode_responses=True).

    Attributes:
        fail: When True every command raises a redis ConnectionError.
        delay: Seconds each command sleeps before answering (timeouts).
        max_page: Upper bound on SCAN page size, to force cursor paging.
    """

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.data: dict[str, tuple[str, int | None]] = {}
        self.fail = False
        self.delay = 0.0
        self.max_page = 1000
        self.scan_calls = 0
        self.closed = False

    def _now_ms(self) -> int:
        return int(self._clock.time() * 1000)

    def _purge(self, name: str) -> None:
        item = self.data.get(name)
        if item is not None and item[1] is not None and self._now_ms() >= item[1]:
            del self.data[name]

    async def _io(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RedisConnectionError("connection refused")

    # synchronous command bodies, shared with the pipeline
    def _incr(self, name: str) -> int:
        self._purge(name)
        value, expires = self.data.get(name, ("0", None))
        count = int(value) + 1
        self.data[name] = (str(count), expires)
        return count

    def _pexpire(self, name: str, time_ms: int, nx: bool = False) -> bool:
        self._purge(name)
        if name not in self.data:
            return False
        value, expires = self.data[name]
        if nx and expires is not None:
            return False
        self.data[name] = (value, self._now_ms() + int(time_ms))
        return True

    def _pttl(self, name: str) -> int:
        self._purge(name)
        if name not in self.data:
            return -2
        expires = self.data[name][1]
        if expires is None:
            return -1
        return expires - self._now_ms()

    async def get(self, name: str) -> str | None:
        await self._io()
        self._purge(name)
        item = self.data.get(name)
        return item[0] if item else None

    async def set(self, name: str, value: str, px: int | None = None) -> bool:
        await self._io()
        expires = self._now_ms() + px if px else None
        self.data[name] = (value, expires)
        return True

    async def delete(self, *names: str) -> int:
        await self._io()
        removed = 0
        for name in names:
            self._purge(name)
            if self.data.pop(name, None) is not None:
                removed += 1
        return removed

    async def scan(self, cursor: int = 0, match: str | None = None, count: int | None = None):
        await self._io()
        self.scan_calls += 1
        for name in list(self.data):
            self._purge(name)
        keys = sorted(k for k in self.data if match is None or fnmatch.fnmatchcase(k, match))
        page_size = min(count or 10, self.max_page)
        page = keys[cursor:cursor + page_size]
        next_cursor = cursor + page_size
        return (next_cursor if next_cursor < len(keys) else 0), page

    async def pttl(self, name: str) -> int:
        await self._io()
        return self._pttl(name)

    async def incr(self, name: str) -> int:
        await self._io()
        return self._incr(name)

    async def pexpire(self, name: str, time_ms: int, nx: bool = False) -> bool:
        await self._io()
        return self._pexpire(name, time_ms, nx=nx)

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def local_backend(clock: FakeClock) -> LocalBackend:
    return LocalBackend(store=MemoryStore(clock=clock.time))


@pytest.fixture
def remote_backend(fake_redis: FakeRedis) -> RemoteBackend:
    return RemoteBackend(client=fake_redis, timeout_seconds=0.5)


@pytest.fixture(params=["local", "remote"])
def backend(request: pytest.FixtureRequest):
    """Each test using this fixture runs once per backend."""
    return request.getfixturevalue(f"{request.param}_backend")
