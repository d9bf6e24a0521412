"""
TTL Cache

In-process key/value cache with a fixed time-to-live per entry.
Expiry is checked when an entry is read; there are no background timers.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Thread-safe TTL cache.

    Entries are stored as (value, expiry). An expired entry is evicted the
    first time it is read after its expiry, or by purge_expired().
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl_seconds: Lifetime of each entry from the moment it is set
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

        # Statistics tracking
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "evictions": 0,
        }

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                return default

            value, expiry = entry
            if self._clock() >= expiry:
                del self._entries[key]
                self._stats["evictions"] += 1
                self._stats["misses"] += 1
                return default

            self._stats["hits"] += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + self.ttl_seconds)
            self._stats["sets"] += 1

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, expiry) in self._entries.items() if now >= expiry]
            for key in expired:
                del self._entries[key]
            self._stats["evictions"] += len(expired)
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {**self._stats, "size": len(self._entries)}

    def __contains__(self, key: Hashable) -> bool:
        # Membership does not count as a hit or miss
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry[1]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
