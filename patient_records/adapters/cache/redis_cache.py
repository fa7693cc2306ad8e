"""Redis cache store.

Implements CacheStorePort on redis-py. Every key is namespaced with a
configurable prefix, and every RedisError is translated into CacheError so
services can absorb cache failures uniformly.

Security Impact:
    - The connection URL (which may embed a password) is never logged
    - Cached payloads contain PHI; only keys (identifiers, hashed filters) are logged
"""

import logging
import threading
from datetime import timedelta
from typing import Dict, Optional

import redis

from patient_records.domain.ports import CacheError, CacheStorePort
from patient_records.infrastructure.config_manager import CacheConfig

logger = logging.getLogger(__name__)


class RedisCacheStore(CacheStorePort):
    """Redis-backed cache store.

    Parameters:
        client: A redis.Redis client (borrowed unless created by from_config)
        key_prefix: Prefix prepended to every key

    Example Usage:
        ```python
        store = RedisCacheStore.from_config(settings.cache_config)
        store.set("patient:id:P001", payload, timedelta(minutes=30))
        ```
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "", owns_client: bool = False):
        self._client = client
        self._key_prefix = key_prefix
        self._owns_client = owns_client
        self._stats_lock = threading.Lock()
        self._stats: Dict[str, int] = {"hits": 0, "misses": 0, "errors": 0}

    @classmethod
    def from_config(cls, config: CacheConfig) -> 'RedisCacheStore':
        """Create a store (and its own client) from CacheConfig."""
        client = redis.Redis.from_url(
            config.redis_url.get_secret_value(),
            socket_timeout=config.socket_timeout_seconds,
            socket_connect_timeout=config.socket_timeout_seconds,
        )
        logger.info("Redis cache store configured")
        return cls(client, key_prefix=config.key_prefix, owns_client=True)

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def _record(self, stat: str) -> None:
        with self._stats_lock:
            self._stats[stat] += 1

    def _fail(self, operation: str, key: Optional[str], error: redis.RedisError) -> CacheError:
        self._record("errors")
        logger.warning(f"Redis {operation} failed for key {key}: {type(error).__name__}")
        return CacheError(f"Redis {operation} failed: {error}", operation=operation, key=key)

    def get(self, key: str) -> Optional[bytes]:
        try:
            value = self._client.get(self._full_key(key))
        except redis.RedisError as e:
            raise self._fail("get", key, e) from e
        if value is None:
            self._record("misses")
            return None
        self._record("hits")
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    def set(self, key: str, value: bytes, ttl: timedelta) -> None:
        milliseconds = int(ttl.total_seconds() * 1000)
        if milliseconds <= 0:
            raise CacheError("TTL must be positive", operation="set", key=key)
        try:
            self._client.set(self._full_key(key), value, px=milliseconds)
        except redis.RedisError as e:
            raise self._fail("set", key, e) from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._full_key(key))
        except redis.RedisError as e:
            raise self._fail("delete", key, e) from e

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            raise self._fail("ping", None, e) from e

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)

    def close(self) -> None:
        if not self._owns_client:
            return
        try:
            self._client.close()
        except redis.RedisError as e:
            raise self._fail("close", None, e) from e
