"""
SKU Code Cache

Maps a textual SKU code to the numeric Yampi SKU id the shipping-costs
endpoint requires, so repeated quotes for the same cart skip the products
lookup.

- TTL: 10 minutes (configurable)
- Expired entries are evicted lazily on read; there is no background sweep
- No size bound: churn is bounded by the catalog size
- Safe for single-threaded async usage (no awaits inside get/set)

Usage:
    cache = SkuIdCache(ttl_seconds=600)

    sku_id = cache.get("ABC-123")
    if sku_id is None:
        sku_id = await lookup(...)
        cache.set("ABC-123", sku_id)
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


@dataclass
class SkuCacheEntry:
    code: str
    sku_id: int
    recorded_at: float


class SkuIdCache:
    """
    TTL cache for SKU code -> Yampi SKU id.

    One instance lives for the whole process and is handed to the pipeline;
    the clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, SkuCacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._expirations = 0

    def _is_fresh(self, entry: SkuCacheEntry) -> bool:
        return self._clock() - entry.recorded_at < self.ttl_seconds

    def get(self, code: str) -> Optional[int]:
        """Return the cached id, or None if absent or expired."""
        entry = self._entries.get(code)
        if entry is None:
            self._misses += 1
            return None

        if not self._is_fresh(entry):
            del self._entries[code]
            self._misses += 1
            self._expirations += 1
            logger.debug(f"[SKU_CACHE] Expired: {code}")
            return None

        self._hits += 1
        return entry.sku_id

    def set(self, code: str, sku_id: int) -> None:
        """Store or overwrite an entry with a fresh timestamp."""
        self._entries[code] = SkuCacheEntry(code=code, sku_id=sku_id, recorded_at=self._clock())
        logger.debug(f"[SKU_CACHE] Stored: {code} -> {sku_id}")

    def __contains__(self, code: str) -> bool:
        entry = self._entries.get(code)
        return entry is not None and self._is_fresh(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Clear all cached entries."""
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"[SKU_CACHE] Cleared {count} entries")

    def get_stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total > 0 else 0.0,
            "expirations": self._expirations,
            "size": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
        }
