"""Tests for the in-memory and Redis cache stores."""

from datetime import timedelta
from unittest.mock import Mock

import pytest
import redis

from patient_records.adapters.cache.memory_cache import InMemoryCacheStore
from patient_records.adapters.cache.redis_cache import RedisCacheStore
from patient_records.domain.ports import CacheError
from patient_records.infrastructure.config_manager import CacheConfig


class TestInMemoryCacheStore:
    """TTL, eviction and lifecycle of the in-process store."""

    def test_get_returns_stored_bytes(self, cache_store):
        cache_store.set("patient:id:P001", b"payload", timedelta(minutes=30))

        assert cache_store.get("patient:id:P001") == b"payload"
        assert cache_store.hits == 1

    def test_missing_key_is_none(self, cache_store):
        assert cache_store.get("patient:id:P404") is None
        assert cache_store.misses == 1

    def test_entry_expires_after_ttl(self, cache_store, clock):
        cache_store.set("k", b"v", timedelta(seconds=300))

        clock.advance(299)
        assert cache_store.get("k") == b"v"
        clock.advance(1)
        assert cache_store.get("k") is None
        assert len(cache_store) == 0

    def test_set_overwrites_and_resets_ttl(self, cache_store, clock):
        cache_store.set("k", b"old", timedelta(seconds=10))
        clock.advance(8)
        cache_store.set("k", b"new", timedelta(seconds=10))
        clock.advance(8)

        assert cache_store.get("k") == b"new"

    def test_delete_is_idempotent(self, cache_store):
        cache_store.set("k", b"v", timedelta(seconds=10))
        cache_store.delete("k")
        cache_store.delete("k")

        assert cache_store.get("k") is None

    def test_non_positive_ttl_rejected(self, cache_store):
        with pytest.raises(CacheError):
            cache_store.set("k", b"v", timedelta(0))

    def test_closed_store_raises(self, cache_store):
        cache_store.set("k", b"v", timedelta(seconds=10))
        cache_store.close()

        with pytest.raises(CacheError):
            cache_store.get("k")
        with pytest.raises(CacheError):
            cache_store.set("k", b"v", timedelta(seconds=10))

    def test_eviction_prefers_expired_then_soonest(self, clock):
        store = InMemoryCacheStore(clock=clock, max_entries=2)
        store.set("short", b"1", timedelta(seconds=5))
        store.set("long", b"2", timedelta(seconds=500))
        store.set("third", b"3", timedelta(seconds=50))

        assert len(store) == 2
        assert store.get("short") is None
        assert store.get("long") == b"2"
        assert store.get("third") == b"3"

    def test_purge_expired(self, cache_store, clock):
        cache_store.set("a", b"1", timedelta(seconds=5))
        cache_store.set("b", b"2", timedelta(seconds=50))
        clock.advance(10)

        assert cache_store.purge_expired() == 1
        assert len(cache_store) == 1


class TestRedisCacheStore:
    """RedisCacheStore against a mocked redis client."""

    @pytest.fixture
    def client(self):
        return Mock(spec=redis.Redis)

    @pytest.fixture
    def store(self, client):
        return RedisCacheStore(client, key_prefix="pr:")

    def test_set_uses_prefix_and_millisecond_ttl(self, store, client):
        store.set("patient:id:P001", b"payload", timedelta(minutes=5))

        client.set.assert_called_once_with("pr:patient:id:P001", b"payload", px=300000)

    def test_get_hit_and_miss_are_counted(self, store, client):
        client.get.side_effect = [b"payload", None]

        assert store.get("k") == b"payload"
        assert store.get("k") is None
        client.get.assert_called_with("pr:k")
        assert store.get_stats() == {"hits": 1, "misses": 1, "errors": 0}

    def test_delete_uses_prefix(self, store, client):
        store.delete("address:patient:P001")

        client.delete.assert_called_once_with("pr:address:patient:P001")

    @pytest.mark.parametrize("operation,args", [
        ("get", ("k",)),
        ("set", ("k", b"v", timedelta(seconds=1))),
        ("delete", ("k",)),
    ])
    def test_redis_errors_become_cache_errors(self, store, client, operation, args):
        getattr(client, operation).side_effect = redis.ConnectionError("connection refused")

        with pytest.raises(CacheError) as exc_info:
            getattr(store, operation)(*args)
        assert exc_info.value.operation == operation
        assert store.get_stats()["errors"] == 1

    def test_non_positive_ttl_rejected(self, store, client):
        with pytest.raises(CacheError):
            store.set("k", b"v", timedelta(milliseconds=0))
        client.set.assert_not_called()

    def test_close_only_closes_owned_client(self, client):
        RedisCacheStore(client).close()
        client.close.assert_not_called()

        RedisCacheStore(client, owns_client=True).close()
        client.close.assert_called_once()

    def test_from_config_does_not_connect(self):
        config = CacheConfig(backend="redis", redis_url="redis://localhost:6399/0", key_prefix="t:")

        store = RedisCacheStore.from_config(config)

        assert store._full_key("k") == "t:k"
        store.close()
