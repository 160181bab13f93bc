"""Key namer implementations."""

from tagcache.infrastructure.key_namers.default import DefaultKeyNamer

__all__ = ["DefaultKeyNamer"]
