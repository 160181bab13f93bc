"""In-memory store implementation."""

import fnmatch
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from cachetools import TLRUCache

from tagcache.core.exceptions import BatchAbortedError, StoreOperationError

WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"


@dataclass
class _Entry:
    value: Any
    expires: float = math.inf


@dataclass
class _Command:
    func: Callable[..., Any]
    args: tuple[Any, ...]
    writes: tuple[str, ...] = field(default_factory=tuple)


def _time_to_use(key: str, entry: _Entry, now: float) -> float:
    return entry.expires


class _ReportingCache(TLRUCache):
    """TLRUCache that reports keys it drops on its own.

    Expired and evicted keys vanish inside cachetools, without going through
    the store's commands. ``on_drop`` is called for each of them.
    """

    def __init__(
        self,
        maxsize: float,
        ttu: Callable[[str, _Entry, float], float],
        timer: Callable[[], float],
        on_drop: Callable[[str], None],
    ) -> None:
        self._on_drop = on_drop
        super().__init__(maxsize, ttu, timer=timer)

    def expire(self, time: float | None = None) -> list[tuple[str, _Entry]]:
        expired = list(super().expire(time))
        for key, _ in expired:
            self._on_drop(key)
        return expired

    def popitem(self) -> tuple[str, _Entry]:
        key, entry = super().popitem()
        self._on_drop(key)
        return key, entry


class InMemoryStore:
    """In-memory key-value store with the Redis command semantics tagcache needs.

    Suitable for single-process deployments and tests. Uses cachetools'
    TLRUCache so every key carries its own expiry; sets never expire.
    Batches run synchronously inside ``execute``, so no other coroutine
    can observe a half-applied batch.
    """

    def __init__(
        self,
        maxsize: int | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            maxsize: Maximum number of keys. None means unbounded. When the
                limit is reached the least recently used key is evicted,
                like Redis' allkeys-lru policy.
            timer: Clock used for expiry, in seconds.
        """
        self._maxsize = maxsize
        self._cache = _ReportingCache(
            maxsize=math.inf if maxsize is None else maxsize,
            ttu=_time_to_use,
            timer=timer,
            on_drop=self._touch,
        )
        # Versions exist only for keys some open batch is watching
        self._versions: dict[str, int] = {}
        self._watchers: dict[str, int] = {}
        self._counter = 0

    async def get(self, key: str) -> bytes | None:
        """Retrieve a value by key.

        Args:
            key: The key to retrieve.

        Returns:
            The value as bytes, or None if not found or expired.

        Raises:
            StoreOperationError: If key holds a set.
        """
        return self._get(key)

    async def setex(self, key: str, seconds: int, value: bytes) -> None:
        """Store a value that expires after seconds.

        Args:
            key: The key.
            seconds: Time to live, greater than zero.
            value: The value to store as bytes.

        Raises:
            StoreOperationError: If seconds is not a positive integer.
        """
        self._setex(key, seconds, value)

    async def exists(self, key: str) -> bool:
        """Check if a live key exists.

        Args:
            key: The key to check.

        Returns:
            True if the key exists, False otherwise.
        """
        return self._exists(key)

    async def delete(self, *keys: str) -> int:
        """Delete keys of any kind.

        Args:
            *keys: Keys to delete.

        Returns:
            Number of keys that existed.
        """
        return self._delete(*keys)

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set, creating it if needed.

        Returns:
            Number of members that were not in the set before.
        """
        return self._sadd(key, *members)

    async def srem(self, key: str, *members: str) -> int:
        """Remove members from a set; an emptied set is deleted.

        Returns:
            Number of members that were removed.
        """
        return self._srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        """Return a copy of a set, empty if the key does not exist."""
        return set(self._members(key))

    async def sunion(self, *keys: str) -> set[str]:
        """Return the union of several sets."""
        return self._sunion(*keys)

    async def sdiffstore(self, dest: str, *keys: str) -> int:
        """Store the first set minus all others in dest.

        dest may be one of the operands. An empty result deletes dest.

        Args:
            dest: Key receiving the difference.
            *keys: The first operand followed by the sets to subtract.

        Returns:
            Size of the resulting set.
        """
        return self._sdiffstore(dest, *keys)

    async def keys(self, pattern: str) -> list[str]:
        """Return all live keys matching a glob-style pattern.

        Args:
            pattern: Glob pattern, e.g. ``tags-of:*``.

        Returns:
            Matching keys in no particular order.
        """
        self._purge_expired()
        return [key for key in list(self._cache) if fnmatch.fnmatchcase(key, pattern)]

    async def ttl(self, key: str) -> int:
        """Return the remaining time to live in seconds.

        Returns:
            Seconds left, -1 for keys without expiry, -2 for missing keys.
        """
        entry = self._lookup(key)
        if entry is None:
            return -2
        if entry.expires == math.inf:
            return -1
        return max(0, round(entry.expires - self._now()))

    async def flushdb(self) -> None:
        """Delete every key."""
        self._cache.clear()
        for key in list(self._versions):
            self._touch(key)

    def batch(self) -> "InMemoryBatch":
        """Start a new atomic batch."""
        return InMemoryBatch(self)

    async def close(self) -> None:
        """Nothing to release."""

    def __len__(self) -> int:
        """Return the number of live keys."""
        self._purge_expired()
        return len(self._cache)

    @property
    def maxsize(self) -> int | None:
        """Return the maximum number of keys, None if unbounded."""
        return self._maxsize

    # -------------------------------------------------------------------------
    # Commands (synchronous, shared by the store and its batches)
    # -------------------------------------------------------------------------

    def _now(self) -> float:
        return self._cache.timer()

    def _lookup(self, key: str) -> _Entry | None:
        return self._cache.get(key)

    def _touch(self, key: str) -> None:
        if key in self._versions:
            self._counter += 1
            self._versions[key] = self._counter

    def _version(self, key: str) -> int:
        return self._versions[key]

    def _watch(self, key: str) -> int:
        """Register a watcher for key and return the key's current version."""
        self._watchers[key] = self._watchers.get(key, 0) + 1
        return self._versions.setdefault(key, 0)

    def _unwatch(self, keys: Iterable[str]) -> None:
        for key in keys:
            remaining = self._watchers.pop(key) - 1
            if remaining:
                self._watchers[key] = remaining
            else:
                del self._versions[key]

    def _purge_expired(self) -> None:
        self._cache.expire()

    def _get(self, key: str) -> bytes | None:
        entry = self._lookup(key)
        if entry is None:
            return None
        if not isinstance(entry.value, bytes):
            raise StoreOperationError(WRONGTYPE)
        return entry.value

    def _setex(self, key: str, seconds: int, value: bytes) -> bool:
        if not isinstance(seconds, int) or seconds <= 0:
            raise StoreOperationError("invalid expire time in 'setex' command")
        self._cache[key] = _Entry(bytes(value), self._now() + seconds)
        self._touch(key)
        return True

    def _exists(self, key: str) -> bool:
        return key in self._cache

    def _delete(self, *keys: str) -> int:
        count = 0
        for key in keys:
            if self._cache.pop(key, None) is not None:
                count += 1
                self._touch(key)
        return count

    def _members(self, key: str) -> set[str]:
        entry = self._lookup(key)
        if entry is None:
            return set()
        if not isinstance(entry.value, set):
            raise StoreOperationError(WRONGTYPE)
        return entry.value

    def _sadd(self, key: str, *members: str) -> int:
        current = self._members(key)
        added = set(members) - current
        if not added:
            return 0
        if current:
            current.update(added)
        else:
            self._cache[key] = _Entry(added)
        self._touch(key)
        return len(added)

    def _srem(self, key: str, *members: str) -> int:
        current = self._members(key)
        removed = current.intersection(members)
        if not removed:
            return 0
        current.difference_update(removed)
        if not current:
            del self._cache[key]
        self._touch(key)
        return len(removed)

    def _sunion(self, *keys: str) -> set[str]:
        result: set[str] = set()
        for key in keys:
            result.update(self._members(key))
        return result

    def _sdiffstore(self, dest: str, *keys: str) -> int:
        if not keys:
            raise StoreOperationError("wrong number of arguments for 'sdiffstore' command")
        result = set(self._members(keys[0]))
        for key in keys[1:]:
            result.difference_update(self._members(key))
        self._cache.pop(dest, None)
        if result:
            self._cache[dest] = _Entry(result)
        self._touch(dest)
        return len(result)

    def _apply(self, commands: list[_Command], watched: dict[str, int]) -> list[Any]:
        """Run queued commands as one unit.

        Either every command is applied or, when one fails, every key the
        batch wrote is restored to its previous state.

        Raises:
            BatchAbortedError: If a watched key changed since it was watched.
        """
        self._purge_expired()
        if any(self._version(key) != version for key, version in watched.items()):
            raise BatchAbortedError("Watched keys were modified, batch discarded")

        written = {key for command in commands for key in command.writes}
        snapshot = {key: self._copy_entry(key) for key in written}
        versions = {key: self._versions[key] for key in written if key in self._versions}

        results = []
        try:
            for command in commands:
                results.append(command.func(*command.args))
        except StoreOperationError:
            for key, entry in snapshot.items():
                self._cache.pop(key, None)
                if entry is not None:
                    self._cache[key] = entry
            self._versions.update(versions)
            raise
        return results

    def _copy_entry(self, key: str) -> _Entry | None:
        entry = self._lookup(key)
        if entry is None:
            return None
        value = set(entry.value) if isinstance(entry.value, set) else entry.value
        return _Entry(value, entry.expires)


class InMemoryBatch:
    """Atomic batch for ``InMemoryStore``.

    Reads run immediately until the first write is queued or ``multi`` is
    called; writes are held back until ``execute``.
    """

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self._commands: list[_Command] = []
        self._watched: dict[str, int] = {}
        self._queueing = False

    async def __aenter__(self) -> "InMemoryBatch":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.reset()

    def reset(self) -> None:
        """Drop queued commands and release watched keys."""
        self._store._unwatch(self._watched)
        self._commands = []
        self._watched = {}
        self._queueing = False

    async def watch(self, *keys: str) -> None:
        """Watch keys; ``execute`` aborts if any of them changes meanwhile.

        Args:
            *keys: Keys to watch.

        Raises:
            StoreOperationError: If called after ``multi``.
        """
        if self._queueing:
            raise StoreOperationError("WATCH inside MULTI is not allowed")
        # Keys already past their expiry count as absent, not as changed
        self._store._purge_expired()
        for key in keys:
            if key not in self._watched:
                self._watched[key] = self._store._watch(key)

    async def exists(self, key: str) -> bool:
        self._check_immediate("exists")
        return self._store._exists(key)

    async def smembers(self, key: str) -> set[str]:
        self._check_immediate("smembers")
        return set(self._store._members(key))

    async def sunion(self, *keys: str) -> set[str]:
        self._check_immediate("sunion")
        return self._store._sunion(*keys)

    def multi(self) -> None:
        if self._queueing:
            raise StoreOperationError("MULTI calls can not be nested")
        self._queueing = True

    def setex(self, key: str, seconds: int, value: bytes) -> "InMemoryBatch":
        return self._queue(self._store._setex, (key, seconds, value), (key,))

    def delete(self, *keys: str) -> "InMemoryBatch":
        return self._queue(self._store._delete, keys, keys)

    def sadd(self, key: str, *members: str) -> "InMemoryBatch":
        return self._queue(self._store._sadd, (key, *members), (key,))

    def srem(self, key: str, *members: str) -> "InMemoryBatch":
        return self._queue(self._store._srem, (key, *members), (key,))

    def sdiffstore(self, dest: str, *keys: str) -> "InMemoryBatch":
        return self._queue(self._store._sdiffstore, (dest, *keys), (dest,))

    async def execute(self) -> list[Any]:
        """Apply the queued commands atomically and release the watches.

        Returns:
            One result per queued command.

        Raises:
            BatchAbortedError: If a watched key changed since it was watched.
            StoreOperationError: If a command failed; nothing is applied.
        """
        try:
            return self._store._apply(self._commands, self._watched)
        finally:
            self.reset()

    def _queue(
        self,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        writes: tuple[str, ...],
    ) -> "InMemoryBatch":
        self._queueing = True
        self._commands.append(_Command(func, args, writes))
        return self

    def _check_immediate(self, command: str) -> None:
        if self._queueing:
            raise StoreOperationError(f"'{command}' can not be read inside MULTI")
