"""Redis store implementation."""

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError

from tagcache.core.exceptions import (
    BatchAbortedError,
    InvalidArgumentError,
    StoreConnectionError,
    StoreOperationError,
)

logger = logging.getLogger(__name__)


@contextmanager
def _translated_errors() -> Iterator[None]:
    """Re-raise redis-py errors as tagcache store errors."""
    try:
        yield
    except WatchError as e:
        raise BatchAbortedError(f"Watched keys were modified, batch discarded: {e}") from e
    except RedisConnectionError as e:
        raise StoreConnectionError(f"Lost connection to redis server: {e}") from e
    except RedisError as e:
        raise StoreOperationError(f"Redis command failed: {e}") from e


def _decode(values: Iterable[Any]) -> list[str]:
    return [value.decode() if isinstance(value, bytes) else value for value in values]


class RedisStore:
    """Redis store for distributed deployments.

    Payloads are kept as bytes; keys and set members are returned as
    strings. Multi-key updates go through MULTI/EXEC pipelines, optionally
    guarded by WATCH.
    """

    def __init__(self, client: redis.Redis, scan_count: int = 100) -> None:
        """Initialize the Redis store.

        Args:
            client: A ``redis.asyncio`` client created with
                ``decode_responses=False``.
            scan_count: COUNT hint for SCAN while matching keys.
        """
        self._redis = client
        self._scan_count = scan_count

    @classmethod
    def from_url(cls, url: str = "redis://localhost:6379/0", **kwargs: Any) -> "RedisStore":
        """Create a store from a Redis connection URL.

        Args:
            url: Redis connection URL. The database number selects the
                namespace flushed by ``flushdb``.
            **kwargs: Extra keyword arguments for the client.

        Raises:
            InvalidArgumentError: If decoded responses are requested.
        """
        _reject_decoded_responses(kwargs)
        return cls(redis.from_url(url, **kwargs))  # type: ignore[no-untyped-call]

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "RedisStore":
        """Create a store from user supplied settings.

        Args:
            options: ``{"parameters": ..., "options": {...}}``. ``parameters``
                is a connection URL or a mapping of client keyword arguments
                (host, port, db, password, ...). ``options`` holds further
                client keyword arguments and may be omitted.

        Raises:
            InvalidArgumentError: If ``parameters`` is missing or malformed.
        """
        if "parameters" not in options:
            raise InvalidArgumentError(
                f'Invalid cache store option "parameters" for store of type "{cls.__name__}"'
            )
        parameters = options["parameters"]
        client_options = dict(options.get("options") or {})

        if isinstance(parameters, str):
            return cls.from_url(parameters, **client_options)
        if not isinstance(parameters, Mapping):
            raise InvalidArgumentError(
                f'Invalid cache store option "parameters" for store of type "{cls.__name__}": '
                f'expected a URL or a mapping, got "{type(parameters).__name__}"'
            )

        kwargs = {**parameters, **client_options}
        _reject_decoded_responses(kwargs)
        return cls(redis.Redis(**kwargs))

    async def connect(self) -> "RedisStore":
        """Check that the server answers.

        Returns:
            The store itself.

        Raises:
            StoreConnectionError: If the server cannot be reached.
        """
        try:
            await self._redis.ping()
        except RedisError as e:
            logger.error("Could not connect to redis server: %s", e)
            raise StoreConnectionError(f"Could not connect to redis server: {e}") from e
        return self

    async def get(self, key: str) -> bytes | None:
        """Retrieve a value by key.

        Args:
            key: The key to retrieve.

        Returns:
            The value as bytes, or None if not found or expired.
        """
        with _translated_errors():
            return await self._redis.get(key)

    async def setex(self, key: str, seconds: int, value: bytes) -> None:
        """Store a value with SETEX.

        Args:
            key: The key.
            seconds: Time to live, greater than zero.
            value: The value to store as bytes.
        """
        with _translated_errors():
            await self._redis.setex(key, seconds, value)

    async def exists(self, key: str) -> bool:
        """Check if key exists.

        Args:
            key: The key to check.

        Returns:
            True if the key exists, False otherwise.
        """
        with _translated_errors():
            return await self._redis.exists(key) > 0

    async def delete(self, *keys: str) -> int:
        """Delete keys.

        Args:
            *keys: Keys to delete. No command is sent without keys.

        Returns:
            Number of keys that existed.
        """
        if not keys:
            return 0
        with _translated_errors():
            return await self._redis.delete(*keys)

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set.

        Returns:
            Number of members that were not in the set before.
        """
        if not members:
            return 0
        with _translated_errors():
            return await self._redis.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> int:
        """Remove members from a set.

        Returns:
            Number of members that were removed.
        """
        if not members:
            return 0
        with _translated_errors():
            return await self._redis.srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        """Return the members of a set as strings."""
        with _translated_errors():
            return set(_decode(await self._redis.smembers(key)))

    async def sunion(self, *keys: str) -> set[str]:
        """Return the union of several sets as strings."""
        if not keys:
            return set()
        with _translated_errors():
            return set(_decode(await self._redis.sunion(list(keys))))

    async def sdiffstore(self, dest: str, *keys: str) -> int:
        """Store the first set minus all others in dest.

        Args:
            dest: Key receiving the difference; may be one of the operands.
            *keys: The first operand followed by the sets to subtract.

        Returns:
            Size of the resulting set.
        """
        with _translated_errors():
            return await self._redis.sdiffstore(dest, list(keys))

    async def keys(self, pattern: str) -> list[str]:
        """Return keys matching a pattern using SCAN.

        Uses SCAN instead of KEYS for production safety.

        Args:
            pattern: Redis glob pattern.

        Returns:
            The matching keys.
        """
        found: dict[str, None] = {}
        cursor = 0

        with _translated_errors():
            while True:
                cursor, keys = await self._redis.scan(
                    cursor, match=pattern, count=self._scan_count
                )
                # SCAN may return a key more than once
                found.update(dict.fromkeys(_decode(keys)))

                if cursor == 0:
                    break

        return list(found)

    async def ttl(self, key: str) -> int:
        """Return the remaining time to live in seconds.

        Returns:
            Seconds left, -1 for keys without expiry, -2 for missing keys.
        """
        with _translated_errors():
            return await self._redis.ttl(key)

    async def flushdb(self) -> None:
        """Delete every key of the selected database."""
        with _translated_errors():
            await self._redis.flushdb()

    def batch(self) -> "RedisBatch":
        """Start a MULTI/EXEC batch on a transactional pipeline."""
        return RedisBatch(self._redis.pipeline(transaction=True))

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._redis.aclose()

    async def __aenter__(self) -> "RedisStore":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.close()


class RedisBatch:
    """MULTI/EXEC pipeline with optional WATCH.

    After ``watch`` the pipeline runs reads immediately. Reads need a prior
    ``watch``; writes need a prior ``multi`` once something is watched.
    """

    def __init__(self, pipeline: Any) -> None:
        self._pipeline = pipeline

    async def __aenter__(self) -> "RedisBatch":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self._pipeline.reset()

    async def watch(self, *keys: str) -> None:
        """Watch keys and switch the pipeline to immediate execution.

        Args:
            *keys: Keys whose modification aborts ``execute``.
        """
        with _translated_errors():
            await self._pipeline.watch(*keys)

    async def exists(self, key: str) -> bool:
        with _translated_errors():
            return await self._pipeline.exists(key) > 0

    async def smembers(self, key: str) -> set[str]:
        with _translated_errors():
            return set(_decode(await self._pipeline.smembers(key)))

    async def sunion(self, *keys: str) -> set[str]:
        with _translated_errors():
            return set(_decode(await self._pipeline.sunion(list(keys))))

    def multi(self) -> None:
        """Start queueing commands."""
        self._pipeline.multi()

    def setex(self, key: str, seconds: int, value: bytes) -> "RedisBatch":
        self._pipeline.setex(key, seconds, value)
        return self

    def delete(self, *keys: str) -> "RedisBatch":
        self._pipeline.delete(*keys)
        return self

    def sadd(self, key: str, *members: str) -> "RedisBatch":
        self._pipeline.sadd(key, *members)
        return self

    def srem(self, key: str, *members: str) -> "RedisBatch":
        self._pipeline.srem(key, *members)
        return self

    def sdiffstore(self, dest: str, *keys: str) -> "RedisBatch":
        self._pipeline.sdiffstore(dest, list(keys))
        return self

    async def execute(self) -> list[Any]:
        """Run the queued commands with EXEC.

        Returns:
            One result per queued command.

        Raises:
            BatchAbortedError: If a watched key was modified.
            StoreOperationError: If a queued command failed.
        """
        with _translated_errors():
            return await self._pipeline.execute()


def _reject_decoded_responses(kwargs: Mapping[str, Any]) -> None:
    if kwargs.get("decode_responses"):
        raise InvalidArgumentError(
            "decode_responses must be disabled, cached payloads are binary"
        )
