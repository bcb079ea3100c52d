"""
Read-through cache with expiry for read paths.

Separate from the sync engine: reads return the same data with or without
it, only possibly staler by up to ``ttl`` seconds.
"""
from __future__ import annotations
import time
from functools import wraps
from typing import Any, Callable, Hashable, Optional


class ExpiringCache:
    """Get-or-compute store whose entries expire ``ttl`` seconds after being set."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        if self.ttl <= 0:
            return compute()
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry[0] > now:
            return entry[1]
        value = compute()
        self._entries[key] = (now + self.ttl, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None):
        """Drop one entry, or every entry when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


def ttl_cache(ttl: float, clock: Callable[[], float] = time.monotonic):
    """
    Decorator caching a function's results per argument tuple for ``ttl`` seconds.

    The wrapped function gains ``cache_clear()`` and a ``cache`` attribute.
    Arguments must be hashable.
    """

    def decorator(func):
        cache = ExpiringCache(ttl, clock)

        @wraps(func)
        def wrapper(*args, **kwargs):
            key = (args, tuple(sorted(kwargs.items())))
            return cache.get_or_compute(key, lambda: func(*args, **kwargs))

        wrapper.cache = cache
        wrapper.cache_clear = cache.invalidate
        return wrapper

    return decorator
