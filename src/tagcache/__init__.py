"""tagcache - tag-indexed cache on top of a key-value store.

Entries are stored under identifiers and may carry tags. Besides access by
identifier, every entry labelled with a tag can be invalidated in one call.
The store keeps two mirrored set indices (identifier to tags and tag to
identifiers) that are only ever changed through atomic batches.

Example:
    from tagcache import CacheConfig, InMemoryStore, TaggedCache

    cache = TaggedCache(InMemoryStore(), config=CacheConfig(default_lifetime=600))

    await cache.set("page:42", b"<html>...</html>", tags={"page", "user:7"})
    await cache.get("page:42")           # b"<html>...</html>"
    await cache.flush_by_tag("user:7")   # drops page:42 and its relations

With Redis:
    from tagcache_redis import RedisStore

    store = await RedisStore.from_url("redis://localhost:6379/0").connect()
    cache = TaggedCache(store)

Expired entries leave their tag relations behind. Run
``await cache.collect_garbage()`` periodically to repair them.
"""

from tagcache.core.entities import UNLIMITED_LIFETIME, CacheConfig
from tagcache.core.exceptions import (
    BatchAbortedError,
    CodecError,
    InvalidArgumentError,
    InvalidDataError,
    StoreConnectionError,
    StoreError,
    StoreOperationError,
    TagCacheError,
)
from tagcache.core.interfaces import IBatch, ICodec, IKeyNamer, IStore
from tagcache.core.services import TaggedCache, TagIndexMaintainer
from tagcache.infrastructure import DefaultKeyNamer, InMemoryStore, ZlibCodec

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Configuration
    "CacheConfig",
    "UNLIMITED_LIFETIME",
    # Exceptions
    "TagCacheError",
    "InvalidArgumentError",
    "InvalidDataError",
    "CodecError",
    "StoreError",
    "StoreConnectionError",
    "StoreOperationError",
    "BatchAbortedError",
    # Core interfaces
    "IBatch",
    "ICodec",
    "IKeyNamer",
    "IStore",
    # Core services
    "TaggedCache",
    "TagIndexMaintainer",
    # Infrastructure implementations
    "DefaultKeyNamer",
    "InMemoryStore",
    "ZlibCodec",
]
