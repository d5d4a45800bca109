"""
Read-Through Price Cache

Caches retailer prices keyed by (retailer, product) with a TTL and
least-recently-used eviction once the entry limit is exceeded.

Used by the storage collaborator, never by the matching core: a lookup
returns a price or None and only ever waits on the internal lock.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


@dataclass
class CacheEntry:
    value: int
    expires_at: float


class PriceCache:
    """
    Thread-safe TTL + LRU price cache.

    Example:
        cache = PriceCache(max_entries=1000, ttl_seconds=600)
        price = cache.get_or_load(1, 42, lambda: store.lookup_price(1, 42))
    """

    def __init__(
        self,
        max_entries: int = 10000,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @staticmethod
    def _key(retailer_id, product_id) -> CacheKey:
        return (str(retailer_id), str(product_id))

    def get(self, retailer_id, product_id) -> Optional[int]:
        """Cached price, or None when missing or expired."""
        key = self._key(retailer_id, product_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, retailer_id, product_id, price: int, ttl_seconds: Optional[float] = None):
        key = self._key(retailer_id, product_id)
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = CacheEntry(value=price, expires_at=self._clock() + ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Price cache evicted {evicted}")

    def get_or_load(self, retailer_id, product_id, loader: Callable[[], Optional[int]]) -> Optional[int]:
        """Return the cached price, loading and caching it on a miss."""
        price = self.get(retailer_id, product_id)
        if price is not None:
            return price
        price = loader()
        if price is not None:
            self.set(retailer_id, product_id, price)
        return price

    def invalidate(self, retailer_id, product_id=None) -> int:
        """Drop one entry, or every entry of a retailer when product_id is None."""
        retailer = str(retailer_id)
        with self._lock:
            if product_id is not None:
                return 0 if self._entries.pop(self._key(retailer_id, product_id), None) is None else 1
            keys = [k for k in self._entries if k[0] == retailer]
            for k in keys:
                del self._entries[k]
            return len(keys)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                'hits': self.hits,
                'misses': self.misses,
                'evictions': self.evictions,
                'size': len(self._entries),
            }
