"""Store interfaces."""

from typing import Any, Protocol


class IBatch(Protocol):
    """Contract for an atomic batch of store commands.

    A batch starts in watch mode: ``watch`` registers keys and the read
    commands execute immediately. ``multi`` switches to queueing; the write
    commands are buffered and ``execute`` applies them as one indivisible
    unit. If a watched key was modified by anyone else between ``watch``
    and ``execute``, nothing is applied and ``BatchAbortedError`` is raised.

    Batches are async context managers; leaving the block discards any
    queued commands and watches.
    """

    async def __aenter__(self) -> "IBatch": ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...

    async def watch(self, *keys: str) -> None:
        """Watch keys for modification until the batch executes."""
        ...

    async def exists(self, key: str) -> bool:
        """Immediate read, only valid before ``multi``."""
        ...

    async def smembers(self, key: str) -> set[str]:
        """Immediate read, only valid before ``multi``."""
        ...

    async def sunion(self, *keys: str) -> set[str]:
        """Immediate read, only valid before ``multi``."""
        ...

    def multi(self) -> None:
        """Start queueing commands."""
        ...

    def setex(self, key: str, seconds: int, value: bytes) -> Any: ...

    def delete(self, *keys: str) -> Any: ...

    def sadd(self, key: str, *members: str) -> Any: ...

    def srem(self, key: str, *members: str) -> Any: ...

    def sdiffstore(self, dest: str, *keys: str) -> Any: ...

    async def execute(self) -> list[Any]:
        """Apply the queued commands atomically.

        Returns:
            One result per queued command.

        Raises:
            BatchAbortedError: If a watched key changed.
            StoreOperationError: If the batch failed at the store.
        """
        ...


class IStore(Protocol):
    """Contract for the key-value store behind a tagged cache.

    The command set mirrors Redis: plain values carry an expiry, sets are
    unordered collections of strings and disappear once empty.
    """

    async def get(self, key: str) -> bytes | None:
        """Return the value stored at key, or None."""
        ...

    async def setex(self, key: str, seconds: int, value: bytes) -> None:
        """Store value at key, expiring after the given seconds."""
        ...

    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        ...

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to the set at key, returning how many were new."""
        ...

    async def srem(self, key: str, *members: str) -> int:
        """Remove members from the set at key, returning how many were present."""
        ...

    async def smembers(self, key: str) -> set[str]:
        """Return the members of the set at key (empty if missing)."""
        ...

    async def sunion(self, *keys: str) -> set[str]:
        """Return the union of the sets at keys."""
        ...

    async def sdiffstore(self, dest: str, *keys: str) -> int:
        """Store the difference of the first set and the others at dest.

        Returns:
            The size of the resulting set.
        """
        ...

    async def keys(self, pattern: str) -> list[str]:
        """Return all keys matching a glob-style pattern."""
        ...

    async def ttl(self, key: str) -> int:
        """Return remaining seconds to live, -1 without expiry, -2 if missing."""
        ...

    async def flushdb(self) -> None:
        """Remove every key in the store's namespace."""
        ...

    def batch(self) -> IBatch:
        """Create a new atomic batch."""
        ...

    async def close(self) -> None:
        """Release the store's resources."""
        ...
