"""Core domain layer for tagcache."""

from tagcache.core.entities import CacheConfig
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

__all__ = [
    # Entities
    "CacheConfig",
    # Exceptions
    "TagCacheError",
    "InvalidArgumentError",
    "InvalidDataError",
    "CodecError",
    "StoreError",
    "StoreConnectionError",
    "StoreOperationError",
    "BatchAbortedError",
    # Interfaces
    "IBatch",
    "ICodec",
    "IKeyNamer",
    "IStore",
    # Services
    "TaggedCache",
    "TagIndexMaintainer",
]
