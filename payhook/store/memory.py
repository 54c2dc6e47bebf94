"""In-memory event store with TTL expiry."""

import asyncio
import json
import time
from collections.abc import Callable

from payhook.store.base import StoreHealth


class InMemoryEventStore:
    """Dict-backed store for development and tests.

    Values expire lazily: an expired entry is dropped the next time it is
    read. All operations run under one lock, so the conditional writes are
    atomic with respect to each other, like their Redis counterparts.

    Args:
        clock: Returns the current time in seconds. Defaults to
            ``time.monotonic``; tests pass a controllable clock.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def _put(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = (value, expires_at)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._live(key)

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int = 0,
        only_if_absent: bool = False,
    ) -> bool:
        async with self._lock:
            if only_if_absent and self._live(key) is not None:
                return False
            self._put(key, value, ttl_seconds)
            return True

    async def advance(
        self,
        key: str,
        value: str,
        timestamp: float,
        ttl_seconds: int = 0,
    ) -> str | None:
        async with self._lock:
            current = self._live(key)
            if current is not None:
                try:
                    stored_ts = json.loads(current).get("timestamp")
                except (ValueError, AttributeError):
                    stored_ts = None
                if isinstance(stored_ts, (int, float)) and stored_ts > timestamp:
                    return current
            self._put(key, value, ttl_seconds)
            return None

    async def ttl(self, key: str) -> float | None:
        """Seconds until expiry, None if absent or persistent."""
        async with self._lock:
            if self._live(key) is None:
                return None
            expires_at = self._data[key][1]
            return None if expires_at is None else expires_at - self._clock()

    async def health(self) -> StoreHealth:
        return StoreHealth(healthy=True, latency_ms=0.0, details={"keys": len(self._data)})

    def keys(self) -> list[str]:
        """Return all keys, including ones that expired but were not yet read."""
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)

    async def close(self) -> None:
        self._data.clear()
