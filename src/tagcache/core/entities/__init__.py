"""Domain entities for tagcache."""

from tagcache.core.entities.cache_config import (
    UNLIMITED_LIFETIME,
    CacheConfig,
    validate_compression_level,
)

__all__ = [
    "CacheConfig",
    "UNLIMITED_LIFETIME",
    "validate_compression_level",
]
