"""
In-memory TTL caches for market data.

Default TTLs by data type:
- Current price: 30 minutes
- Historical bars: 6 hours
- Analyst recommendations: 6 hours

Entries are stored with the clock reading at write time and served while
`clock() - timestamp < ttl`. Expired entries are dropped lazily on read.
"""
import time
import logging
import threading
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .models import CacheEntry

logger = logging.getLogger(__name__)

T = TypeVar('T')

PRICE_TTL_SECONDS = 30 * 60
HISTORICAL_TTL_SECONDS = 6 * 60 * 60
RECOMMENDATIONS_TTL_SECONDS = 6 * 60 * 60


def make_key(*parts) -> str:
    """'AAPL', 'US' -> 'AAPL_US'; '.NS' suffixes are kept as-is."""
    return '_'.join(str(getattr(p, 'value', p)) for p in parts)


class TTLCache(Generic[T]):
    """
    Thread-safe key/value cache with a single TTL.

    Concurrent misses on the same key may both reach the provider; the last
    writer wins.
    """

    def __init__(self, name: str, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[T]:
        """Retrieve cached value if still fresh."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._clock() - entry.timestamp < self.ttl:
                    self.hits += 1
                    logger.debug(f"Cache HIT [{self.name}]: {key}")
                    return entry.data
                del self._entries[key]

            self.misses += 1
            logger.debug(f"Cache MISS [{self.name}]: {key}")
            return None

    def set(self, key: str, data: T):
        with self._lock:
            self._entries[key] = CacheEntry(data=data, timestamp=self._clock())
        logger.debug(f"Cached [{self.name}]: {key}")

    def invalidate(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            total = self.hits + self.misses
            return {
                "entries": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / total if total > 0 else 0.0
            }
