# cache.py  – bounded, short-TTL result cache (LRU eviction, lazy expiry)

import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Hashable, Optional

from config import Config

logger = logging.getLogger(__name__)

MISS = object()


class ResultCache:
    """Thread-safe TTL + LRU map. Construct one per app (or per test)."""

    def __init__(self, max_size: int = Config.CACHE_SIZE, ttl: float = Config.CACHE_TTL):
        self.max_size = max(1, max_size)
        self.ttl = ttl
        self._lock = Lock()
        self._entries = OrderedDict()        # key → (expires_at, value)

    def get(self, key: Hashable, default: Any = MISS) -> Any:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at <= now:
                del self._entries[key]
                logger.debug(f"Cache expired: {key!r}")
                return default
            self._entries.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = time.monotonic() + (self.ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = (expires_at, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache full, evicted {evicted!r}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
