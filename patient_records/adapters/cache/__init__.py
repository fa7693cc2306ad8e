"""Cache store adapters implementing CacheStorePort."""

from patient_records.adapters.cache.memory_cache import InMemoryCacheStore
from patient_records.adapters.cache.redis_cache import RedisCacheStore

__all__ = ["InMemoryCacheStore", "RedisCacheStore"]
