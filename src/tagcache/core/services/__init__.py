"""Domain services for tagcache."""

from tagcache.core.services.cache_service import TaggedCache
from tagcache.core.services.tag_index import TagIndexMaintainer

__all__ = [
    "TaggedCache",
    "TagIndexMaintainer",
]
