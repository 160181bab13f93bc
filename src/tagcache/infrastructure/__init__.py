"""Infrastructure layer implementations for tagcache."""

from tagcache.infrastructure.codecs import ZlibCodec
from tagcache.infrastructure.key_namers import DefaultKeyNamer
from tagcache.infrastructure.stores import InMemoryStore

__all__ = [
    "DefaultKeyNamer",
    "InMemoryStore",
    "ZlibCodec",
]
