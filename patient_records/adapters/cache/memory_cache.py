"""In-process cache store with per-entry TTL.

Entries expire lazily on read; ``purge_expired`` sweeps the rest. The clock is
injectable so expiry can be tested without sleeping.
"""

import threading
import time
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

from patient_records.domain.ports import CacheError, CacheStorePort


class InMemoryCacheStore(CacheStorePort):
    """Thread-safe dict cache implementing CacheStorePort.

    Parameters:
        clock: Monotonic clock returning seconds (defaults to time.monotonic)
        max_entries: Upper bound on stored entries; expired entries are purged
            first, then the entry closest to expiry is evicted
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 10000):
        self._entries: Dict[str, Tuple[float, bytes]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._max_entries = max_entries
        self._closed = False
        self.hits = 0
        self.misses = 0

    def _check_open(self, operation: str, key: Optional[str] = None) -> None:
        if self._closed:
            raise CacheError("Cache store is closed", operation=operation, key=key)

    def get(self, key: str) -> Optional[bytes]:
        now = self._clock()
        with self._lock:
            self._check_open("get", key)
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if now >= expires_at:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def set(self, key: str, value: bytes, ttl: timedelta) -> None:
        seconds = ttl.total_seconds()
        if seconds <= 0:
            raise CacheError("TTL must be positive", operation="set", key=key)
        now = self._clock()
        with self._lock:
            self._check_open("set", key)
            if key not in self._entries and len(self._entries) >= self._max_entries:
                self._evict_locked(now)
            self._entries[key] = (now + seconds, bytes(value))

    def delete(self, key: str) -> None:
        with self._lock:
            self._check_open("delete", key)
            self._entries.pop(key, None)

    def _evict_locked(self, now: float) -> None:
        for k in [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]:
            del self._entries[k]
        if len(self._entries) >= self._max_entries:
            soonest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[soonest]

    def purge_expired(self) -> int:
        """Drop expired entries, returning how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def close(self) -> None:
        with self._lock:
            self._entries.clear()
            self._closed = True
