"""Result cache for the object sanitizer.

The cache is an optimization only: a lookup never changes output, it just
skips recomputation. Hits return deep copies so callers cannot mutate cached
state.
"""

import copy
import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

# Values whose JSON form is larger than this are not worth hashing
MAX_CACHEABLE_KEY_BYTES = 64 * 1024


@dataclass
class CacheEntry:
    """One cached sanitization result."""
    result: Any
    inserted_at: float = 0.0
    hit_count: int = 0


def _strict_json(value: Any, depth: int = 0) -> Any:
    """Return value if it is plain JSON data, else raise TypeError."""
    if depth > 32:
        raise TypeError("too deep to key")
    if value is None or type(value) in (bool, int, str):
        return value
    if type(value) is float:
        if value != value or value in (float("inf"), float("-inf")):
            raise TypeError("non-finite float")
        return value
    if type(value) is list:
        return [_strict_json(v, depth + 1) for v in value]
    if type(value) is dict:
        if not all(type(k) is str for k in value):
            raise TypeError("non-string key")
        return {k: _strict_json(v, depth + 1) for k, v in value.items()}
    raise TypeError(f"{type(value).__name__} is not plain JSON")


def make_cache_key(value: Any, path: str, fingerprint: str) -> Optional[str]:
    """Content hash of (config fingerprint, path, value).

    Returns None when the value is not plain JSON data (tuples, sets, objects,
    cycles) or too large; such values are simply not cached.
    """
    try:
        payload = json.dumps([fingerprint, path, _strict_json(value)], sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError):
        return None
    if len(payload) > MAX_CACHEABLE_KEY_BYTES:
        return None
    return hashlib.sha256(payload.encode("utf-8", "surrogatepass")).hexdigest()


class ResultCache:
    """
    TTL and size bounded cache.

    Memory Management:
    - Entries older than ttl_seconds are treated as absent and dropped on access
    - Once max_size entries exist, the least recently inserted one is evicted

    Thread-safety: a single threading.Lock guards the entry map.
    """

    def __init__(self, ttl_seconds: float = 300.0, max_size: int = 1000):
        """
        Args:
            ttl_seconds: Entry lifetime.
            max_size: Maximum number of entries (0 disables storage).
        """
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Return a deep copy of the cached result, or None."""
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if now - entry.inserted_at > self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None
            entry.hit_count += 1
            self.hits += 1
            result = entry.result
        return copy.deepcopy(result)

    def put(self, key: str, result: Any) -> None:
        """Store a deep copy of result, evicting the oldest insert if full."""
        if self.max_size <= 0:
            return
        stored = copy.deepcopy(result)
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Sanitizer cache evicted {evicted[:12]}")
            self._entries[key] = CacheEntry(result=stored, inserted_at=time.monotonic())

    def clear(self) -> None:
        """Drop every entry and reset counters."""
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"size": len(self._entries), "hits": self.hits, "misses": self.misses}


_shared_cache: Optional[ResultCache] = None
_shared_lock = threading.Lock()


def get_shared_cache(ttl_seconds: float, max_size: int) -> ResultCache:
    """Return the process-wide cache, resizing it to the latest settings."""
    global _shared_cache
    with _shared_lock:
        if _shared_cache is None:
            _shared_cache = ResultCache(ttl_seconds=ttl_seconds, max_size=max_size)
        else:
            _shared_cache.ttl_seconds = ttl_seconds
            _shared_cache.max_size = max_size
        return _shared_cache


def reset_sanitizer_cache() -> None:
    """Empty the process-wide cache (for deterministic tests)."""
    with _shared_lock:
        if _shared_cache is not None:
            _shared_cache.clear()
