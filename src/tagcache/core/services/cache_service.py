"""Tagged cache - main orchestrator for cache operations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from tagcache.core.entities.cache_config import CacheConfig, validate_compression_level
from tagcache.core.exceptions import InvalidArgumentError, InvalidDataError
from tagcache.core.interfaces.codec import ICodec
from tagcache.core.interfaces.key_namer import IKeyNamer
from tagcache.core.interfaces.store import IStore
from tagcache.core.services.tag_index import TagIndexMaintainer
from tagcache.infrastructure.codecs.zlib import ZlibCodec
from tagcache.infrastructure.key_namers.default import DefaultKeyNamer

logger = logging.getLogger(__name__)


class TaggedCache:
    """Domain service for a tag-indexed cache on top of a key-value store.

    This is the main entry point for cache operations. Entries live under
    an identifier and may carry tags; whole groups of entries can then be
    invalidated by tag. Index bookkeeping is delegated to
    ``TagIndexMaintainer``.

    Entries always expire. A lifetime of 0 ("unlimited") is stored with
    ``CacheConfig.unlimited_lifetime``. Expiry happens inside the store and
    leaves the entry's tag relations behind until ``collect_garbage`` runs.
    """

    def __init__(
        self,
        store: IStore,
        key_namer: IKeyNamer | None = None,
        codec: ICodec | None = None,
        config: CacheConfig | None = None,
    ) -> None:
        """Initialize the tagged cache.

        Args:
            store: The store holding entries and index sets.
            key_namer: Maps identifiers and tags to store keys.
                Defaults to ``DefaultKeyNamer()``.
            codec: Payload transform applied while compression is enabled.
                Defaults to a ``ZlibCodec`` at the configured level.
            config: Optional cache configuration. Uses defaults if not provided.
        """
        self._store = store
        self._config = config or CacheConfig()
        self._key_namer = key_namer or DefaultKeyNamer()
        self._codec = codec or ZlibCodec(self._config.compression_level)
        self._compression = self._config.compression
        self._index = TagIndexMaintainer(
            store,
            self._key_namer,
            max_attempts=self._config.max_batch_attempts,
        )

        # Statistics
        self._hits = 0
        self._misses = 0

    @property
    def config(self) -> CacheConfig:
        """Get the cache configuration."""
        return self._config

    @property
    def compression(self) -> bool:
        """Whether payloads are compressed."""
        return self._compression

    @property
    def stats(self) -> dict[str, int]:
        """Get cache statistics.

        Returns:
            Dictionary with hits, misses, and total lookups.
        """
        return {
            "hits": self._hits,
            "misses": self._misses,
            "total": self._hits + self._misses,
        }

    def set_compression(self, compression: bool) -> None:
        """Enable or disable payload compression.

        Entries written while compression was off are not readable with it
        on and vice versa; flush the cache when switching.

        Raises:
            InvalidArgumentError: If compression is not a boolean.
        """
        if not isinstance(compression, bool):
            raise InvalidArgumentError(
                f'The specified compression is of type "{type(compression).__name__}" '
                "but a boolean is expected."
            )
        self._compression = compression

    def set_compression_level(self, level: int) -> None:
        """Set the zlib compression level.

        Only a ``ZlibCodec`` has a level. A custom codec passed to the
        constructor is kept as it is; the level is still validated.

        Args:
            level: -1 (zlib default) to 9.

        Raises:
            InvalidArgumentError: If level is not an integer in [-1, 9].
        """
        level = validate_compression_level(level)
        if isinstance(self._codec, ZlibCodec):
            self._codec.level = level

    async def set(
        self,
        identifier: Any,
        data: bytes,
        tags: Iterable[Any] | None = None,
        lifetime: int | None = None,
    ) -> None:
        """Store data under identifier and make tags its exact tag set.

        Tags previously associated with identifier but missing from tags
        are dropped.

        Args:
            identifier: The entry identifier, anything with a string form.
            data: The payload.
            tags: Tags for invalidation. Order and duplicates are irrelevant.
            lifetime: Lifetime in seconds. None uses the configured
                default, 0 means unlimited.

        Raises:
            InvalidArgumentError: For an invalid identifier, tag or lifetime.
            InvalidDataError: If data is not a byte payload.
        """
        identifier = _to_token(identifier, "identifier")
        payload = _to_payload(data)
        tag_set = _to_tags(tags)
        expiry = self._config.expiry_for(self._resolve_lifetime(lifetime))

        if self._compression:
            payload = self._codec.encode(payload)

        await self._store.setex(self._key_namer.data_key(identifier), expiry, payload)
        await self._index.reconcile_tags(identifier, tag_set)

    async def get(self, identifier: Any) -> bytes | None:
        """Load the payload stored under identifier.

        Returns:
            The payload, or None if there is no such entry.
        """
        identifier = _to_token(identifier, "identifier")
        stored = await self._store.get(self._key_namer.data_key(identifier))

        if stored is None:
            self._misses += 1
            return None

        self._hits += 1
        if self._compression and stored:
            stored = self._codec.decode(stored)
        return stored

    async def has(self, identifier: Any) -> bool:
        """Check if an entry exists."""
        identifier = _to_token(identifier, "identifier")
        return await self._store.exists(self._key_namer.data_key(identifier))

    async def remove(self, identifier: Any) -> bool:
        """Remove an entry and its tag relations.

        Returns:
            True if the entry existed, False otherwise.
        """
        identifier = _to_token(identifier, "identifier")
        return await self._index.remove_entry(identifier)

    async def flush(self) -> None:
        """Remove every entry of this cache.

        Without a key prefix the whole store database is cleared. With one,
        every key under the prefix is deleted in a single batch.
        """
        pattern = self._key_namer.namespace_pattern()
        if pattern is not None:
            keys = await self._store.keys(pattern)
            if keys:
                async with self._store.batch() as batch:
                    batch.delete(*keys)
                    await batch.execute()
        else:
            await self._store.flushdb()

        self._hits = 0
        self._misses = 0
        logger.debug("Flushed cache")

    async def flush_by_tag(self, tag: Any) -> None:
        """Remove every entry tagged with tag, and the tag itself."""
        tag = _to_token(tag, "tag")
        identifiers = await self._store.smembers(self._key_namer.tag_identifiers_key(tag))
        if identifiers:
            await self._index.bulk_remove(identifiers, {tag})

    async def find_identifiers_by_tag(self, tag: Any) -> set[str]:
        """Return the identifiers of all entries tagged with tag.

        Returns:
            The identifiers; empty if the tag is unknown.
        """
        tag = _to_token(tag, "tag")
        return await self._store.smembers(self._key_namer.tag_identifiers_key(tag))

    async def get_tags(self, identifier: Any) -> set[str]:
        """Return the tags currently associated with identifier."""
        identifier = _to_token(identifier, "identifier")
        return await self._store.smembers(self._key_namer.tags_key(identifier))

    async def collect_garbage(self) -> int:
        """Drop tag relations of entries that expired inside the store.

        Safe to run at any time and repeatedly; entries written again while
        the pass runs are left untouched.

        Returns:
            Number of entries whose stale relations were removed.
        """
        tags_keys = await self._store.keys(self._key_namer.tags_key_pattern())
        repaired = 0
        for tags_key in tags_keys:
            identifier = self._key_namer.identifier_from_tags_key(tags_key)
            if await self._store.exists(self._key_namer.data_key(identifier)):
                continue
            if await self._index.purge_stale(identifier):
                repaired += 1

        logger.info(
            "Garbage collection checked %d tagged entries, repaired %d",
            len(tags_keys),
            repaired,
        )
        return repaired

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()

    async def __aenter__(self) -> TaggedCache:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.close()

    def _resolve_lifetime(self, lifetime: int | None) -> int:
        if lifetime is None:
            return self._config.default_lifetime
        if not isinstance(lifetime, int) or isinstance(lifetime, bool):
            raise InvalidArgumentError(
                f'The specified lifetime is of type "{type(lifetime).__name__}" '
                "but an integer or None is expected."
            )
        if lifetime < 0:
            raise InvalidArgumentError(
                f'The specified lifetime "{lifetime}" must be greater or equal than zero.'
            )
        return lifetime


def _to_token(value: Any, kind: str) -> str:
    """Convert an identifier or tag to its string form.

    Raises:
        InvalidArgumentError: If value has no string form or it is empty.
    """
    if isinstance(value, (bytes, bytearray)) or not (
        isinstance(value, (str, int, float)) or type(value).__str__ is not object.__str__
    ):
        raise InvalidArgumentError(
            f'The specified {kind} is of type "{type(value).__name__}" '
            "which can't be converted to string."
        )
    token = str(value)
    if not token:
        raise InvalidArgumentError(f"The specified {kind} must not be empty.")
    return token


def _to_tags(tags: Iterable[Any] | None) -> set[str]:
    if tags is None:
        return set()
    if isinstance(tags, (str, bytes)) or not isinstance(tags, Iterable):
        raise InvalidArgumentError("Tags must be given as a collection of tags.")
    return {_to_token(tag, "tag") for tag in tags}


def _to_payload(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise InvalidDataError(
        f'The specified data is of type "{type(data).__name__}" but bytes are expected.'
    )
