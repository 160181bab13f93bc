"""Store implementations."""

from tagcache.infrastructure.stores.memory import InMemoryBatch, InMemoryStore

__all__ = ["InMemoryBatch", "InMemoryStore"]
