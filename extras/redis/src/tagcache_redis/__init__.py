"""Redis store for tagcache."""

from tagcache_redis.store import RedisBatch, RedisStore

__all__ = ["RedisBatch", "RedisStore"]
