"""Cache-aside helper shared by the patient and address services.

Reads go cache first, then repository, then populate. Writes invalidate the
keys they could have staled. The cache is advisory: every cache failure is
logged and absorbed, and repository errors are never cached.

Security Impact:
    - Keys in the ``invalid:`` namespace bypass the cache entirely, so a
      crafted identifier can never read or poison a shared entry
    - Payloads that fail to decode are treated as a miss, never returned
    - Only keys (identifiers and hashed filters) are logged, never payloads
"""

import logging
from collections import Counter
from datetime import timedelta
from typing import Callable, Dict, Optional, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from patient_records.domain.cache_keys import is_invalid_key
from patient_records.domain.ports import CacheError, CacheStorePort

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheEventLogger:
    """Receives cache events and logs them.

    Event counts are kept for diagnostics; nothing in the read or write
    path ever consults them.
    """

    def __init__(self, component: str, log: Optional[logging.Logger] = None):
        self.component = component
        self._log = log or logger
        self.counts: Counter = Counter()

    def _emit(self, level: int, event: str, key: str, error: Optional[BaseException] = None) -> None:
        self.counts[event] += 1
        fields = {"component": self.component, "cache_event": event, "cache_key": key}
        if error is not None:
            fields["error_type"] = type(error).__name__
        self._log.log(level, f"cache {event}: {key}", extra={"extra_fields": fields})

    def hit(self, key: str) -> None:
        self._emit(logging.DEBUG, "hit", key)

    def miss(self, key: str) -> None:
        self._emit(logging.DEBUG, "miss", key)

    def bypass(self, key: str) -> None:
        self._emit(logging.INFO, "bypass", key)

    def decode_failure(self, key: str, error: BaseException) -> None:
        self._emit(logging.WARNING, "decode_failure", key, error)

    def read_failure(self, key: str, error: BaseException) -> None:
        self._emit(logging.WARNING, "read_failure", key, error)

    def write_failure(self, key: str, error: BaseException) -> None:
        self._emit(logging.WARNING, "write_failure", key, error)

    def delete_failure(self, key: str, error: BaseException) -> None:
        self._emit(logging.WARNING, "delete_failure", key, error)

    def snapshot(self) -> Dict[str, int]:
        return dict(self.counts)


class CacheAside:
    """Cache-aside read/invalidate logic over a CacheStorePort.

    Parameters:
        cache: Cache store, or None to disable caching
        events: Event sink for observability
    """

    def __init__(self, cache: Optional[CacheStorePort], events: CacheEventLogger):
        self.cache = cache
        self.events = events

    def _lookup(self, key: str, adapter: TypeAdapter):
        """Return (found, value) from the cache; any failure counts as a miss."""
        try:
            payload = self.cache.get(key)
        except CacheError as e:
            self.events.read_failure(key, e)
            return False, None
        if payload is None:
            self.events.miss(key)
            return False, None
        try:
            value = adapter.validate_json(payload)
        except PydanticValidationError as e:
            self.events.decode_failure(key, e)
            return False, None
        self.events.hit(key)
        return True, value

    def _populate(self, key: str, value, adapter: TypeAdapter, ttl: timedelta) -> None:
        try:
            self.cache.set(key, adapter.dump_json(value), ttl)
        except CacheError as e:
            self.events.write_failure(key, e)

    def read(self, key: str, loader: Callable[[], T], adapter: TypeAdapter, ttl: timedelta) -> T:
        """Return the cached value for key, or load, cache and return it.

        Parameters:
            key: Cache key from patient_records.domain.cache_keys
            loader: Repository call; its exceptions propagate and are not cached
            adapter: Pydantic TypeAdapter used to encode/decode the payload
            ttl: Expiry for a populated entry
        """
        if self.cache is None:
            return loader()
        if is_invalid_key(key):
            self.events.bypass(key)
            return loader()

        found, value = self._lookup(key, adapter)
        if found:
            return value

        value = loader()
        self._populate(key, value, adapter, ttl)
        return value

    def invalidate(self, *keys: str) -> None:
        """Best-effort delete of every key; failures are logged, never raised."""
        if self.cache is None:
            return
        for key in keys:
            if is_invalid_key(key):
                continue
            try:
                self.cache.delete(key)
            except CacheError as e:
                self.events.delete_failure(key, e)
