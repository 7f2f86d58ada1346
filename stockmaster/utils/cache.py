"""Simple in-memory TTL cache for forecast dashboard reads."""
import threading
import time
from typing import Any

_cache: dict[str, tuple[float, Any]] = {}
_lock = threading.Lock()
_MISS = object()


def get_cached(key: str):
    """Return cached value if still valid, else _MISS sentinel."""
    now = time.time()
    entry = _cache.get(key)
    if entry is not None:
        expires, value = entry
        if now < expires:
            return value
    return _MISS


def set_cached(key: str, value: Any, seconds: int = 300):
    """Store a value in cache with TTL."""
    with _lock:
        _cache[key] = (time.time() + seconds, value)


def clear_cache():
    """Clear all cached values."""
    with _lock:
        _cache.clear()


def clear_for_organization(organization_id: str):
    """Drop every cached read for one tenant (call after a recompute).

    Recomputes run on worker threads while reads keep filling the cache.
    """
    suffix = f"|{organization_id}"
    with _lock:
        keys_to_remove = [
            k for k in list(_cache)
            if k.endswith(suffix) or f"{suffix}|" in k
        ]
        for k in keys_to_remove:
            _cache.pop(k, None)
