"""Pytest configuration for tagcache tests."""

import pytest

from tagcache import CacheConfig, InMemoryStore, TaggedCache


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryStore:
    """Create an in-memory store driven by the fake clock."""
    return InMemoryStore(timer=clock)


@pytest.fixture
def cache(store: InMemoryStore) -> TaggedCache:
    """Create a tagged cache on the in-memory store."""
    return TaggedCache(store, config=CacheConfig(default_lifetime=3600))


@pytest.fixture
def assert_index_consistent(store: InMemoryStore):
    """Check that tags-of:* and idents-of:* mirror each other."""

    async def check() -> None:
        forward: set[tuple[str, str]] = set()
        for key in await store.keys("tags-of:*"):
            identifier = key[len("tags-of:"):]
            for tag in await store.smembers(key):
                forward.add((identifier, tag))

        backward: set[tuple[str, str]] = set()
        for key in await store.keys("idents-of:*"):
            tag = key[len("idents-of:"):]
            for identifier in await store.smembers(key):
                backward.add((identifier, tag))

        assert forward == backward

    return check
