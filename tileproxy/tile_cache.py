from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional


log = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/png"


@dataclass(frozen=True)
class CacheEntry:
    """Raw upstream tile bytes, their upstream content type and the clock reading at insertion."""
    raw: bytes
    inserted_at: float
    media_type: str = DEFAULT_MEDIA_TYPE


class TileCache:
    """
    In-memory LRU cache of raw (untransformed) upstream tiles with a TTL.

    - get() drops expired entries lazily and moves hits to the MRU end
    - put() evicts the LRU entry only when a *new* key would exceed max_entries
    - not thread-safe; the server only touches it from the event loop thread
    """
    def __init__(
        self,
        max_entries: int = 2000,
        ttl_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        if ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        self.max_entries = int(max_entries)
        self.ttl_s = float(ttl_s)
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    # -------- public API --------

    def get(self, key: str) -> Optional[bytes]:
        entry = self.lookup(key)
        return entry.raw if entry is not None else None

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Like get(), but returns the whole entry."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() - entry.inserted_at > self.ttl_s:
            del self._entries[key]
            self._expirations += 1
            self._misses += 1
            log.debug("Tile cache entry expired: %s", key)
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return entry

    def put(self, key: str, raw: bytes, media_type: str = DEFAULT_MEDIA_TYPE) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_entries:
            oldest, _ = self._entries.popitem(last=False)
            self._evictions += 1
            log.debug("Tile cache evicted: %s", oldest)
        self._entries[key] = CacheEntry(
            raw=bytes(raw), inserted_at=self._clock(), media_type=media_type or DEFAULT_MEDIA_TYPE
        )

    def keys(self):
        """Keys from least to most recently used."""
        return list(self._entries.keys())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def stats(self) -> Dict[str, float]:
        return {
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_s": self.ttl_s,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "expirations": self._expirations,
        }
