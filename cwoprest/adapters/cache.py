"""Key-value cache used to remember when each station last submitted."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Protocol, Tuple


class KeyValueCache(Protocol):
    """Minimal async string cache.

    Implementations must give read-your-writes consistency for a single
    key; nothing else is assumed.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str) -> None:
        ...


class MemoryCache:
    """A per-process TTL cache.

    Entries expire ``ttl`` seconds after they were written; ``ttl=None``
    keeps them until the process exits.
    """

    def __init__(
        self,
        ttl: Optional[float] = None,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._time_func = time_func
        self._storage: Dict[str, Tuple[Optional[float], str]] = {}

    async def get(self, key: str) -> Optional[str]:
        item = self._storage.get(key)
        if not item:
            return None
        expires_at, value = item
        if expires_at is not None and expires_at < self._time_func():
            self._storage.pop(key, None)
            return None
        return value

    async def put(self, key: str, value: str) -> None:
        if self.ttl is None:
            self._storage[key] = (None, value)
            return
        now = self._time_func()
        self._sweep(now)
        self._storage[key] = (now + self.ttl, value)

    def _sweep(self, now: float) -> None:
        """Drop every expired entry, read or not."""
        expired = [k for k, (expires_at, _) in self._storage.items() if expires_at < now]
        for key in expired:
            del self._storage[key]

    def __len__(self) -> int:
        return len(self._storage)
