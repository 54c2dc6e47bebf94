"""Redis-backed event store.

Features:
- Lazy connection pool creation, shared by all callers
- Reconnection after connection loss
- ``SET NX`` for the dedupe write
- Lua compare-and-set for the ordering write
- Health checks and operation counters
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse, urlunparse

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from payhook.core.logging import get_logger
from payhook.store.base import StoreHealth

logger = get_logger("payhook.redis")

# KEYS[1] record key; ARGV[1] new value, ARGV[2] new timestamp, ARGV[3] ttl seconds
_ADVANCE_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current then
  local ok, record = pcall(cjson.decode, current)
  if ok and type(record) == 'table' then
    local stored = tonumber(record['timestamp'])
    if stored and stored > tonumber(ARGV[2]) then
      return current
    end
  end
end
if tonumber(ARGV[3]) > 0 then
  redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[3])
else
  redis.call('SET', KEYS[1], ARGV[1])
end
return false
"""


def _sanitize_url(url: str) -> str:
    """Mask password in Redis URL for logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = f"{parsed.username or ''}:****@{parsed.hostname}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(
                (parsed.scheme, netloc, parsed.path, parsed.params, parsed.query, parsed.fragment)
            )
        return f"{parsed.hostname}:{parsed.port or 6379}"
    except ValueError:
        return "<url>"


@dataclass
class RedisStoreMetrics:
    reads: int = 0
    writes: int = 0
    rejected_writes: int = 0
    reconnections: int = 0


class RedisEventStore:
    """Event store on a Redis server.

    Args:
        redis_url: Redis connection URL.
        pool_size: Connection pool size.
        client: Pre-built ``redis.asyncio.Redis`` client. When given, the
            store uses it as-is and never opens its own pool.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        pool_size: int = 10,
        client: Any = None,
    ) -> None:
        self._url = redis_url
        self._url_safe = _sanitize_url(redis_url)
        self._pool_size = pool_size
        self._redis: Any = client
        self._owns_client = client is None
        self._connected = client is not None
        self._advance: Any = None
        self._metrics = RedisStoreMetrics()
        self._conn_lock = asyncio.Lock()

    @property
    def metrics(self) -> RedisStoreMetrics:
        return self._metrics

    async def _get_client(self) -> Any:
        if self._redis is not None:
            return self._redis

        async with self._conn_lock:
            # Another coroutine may have connected while we waited
            if self._redis is not None:
                return self._redis

            is_reconnection = self._connected
            pool = ConnectionPool.from_url(
                self._url, max_connections=self._pool_size, decode_responses=True
            )
            self._redis = Redis(connection_pool=pool)
            self._advance = None
            self._connected = True
            if is_reconnection:
                self._metrics.reconnections += 1
                logger.info(f"Reconnected to Redis at {self._url_safe}")
            else:
                logger.info(f"Connected to Redis at {self._url_safe}")
            return self._redis

    async def _drop_client(self, error: Exception) -> None:
        """Forget a broken connection so the next call reconnects."""
        if not self._owns_client:
            return
        async with self._conn_lock:
            old, self._redis = self._redis, None
        if old is not None:
            logger.warning(f"Redis connection lost: {error}")
            try:
                await old.aclose()
            except Exception as close_err:
                logger.debug(f"Error closing old connection: {close_err}")

    async def _call(self, op: str, *args: Any, **kwargs: Any) -> Any:
        client = await self._get_client()
        try:
            return await getattr(client, op)(*args, **kwargs)
        except RedisConnectionError as e:
            await self._drop_client(e)
            raise

    async def get(self, key: str) -> str | None:
        self._metrics.reads += 1
        value = await self._call("get", key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int = 0,
        only_if_absent: bool = False,
    ) -> bool:
        written = await self._call(
            "set", key, value, ex=ttl_seconds if ttl_seconds > 0 else None, nx=only_if_absent
        )
        if written:
            self._metrics.writes += 1
        else:
            self._metrics.rejected_writes += 1
        return bool(written)

    async def advance(
        self,
        key: str,
        value: str,
        timestamp: float,
        ttl_seconds: int = 0,
    ) -> str | None:
        client = await self._get_client()
        if self._advance is None:
            self._advance = client.register_script(_ADVANCE_SCRIPT)
        try:
            conflict = await self._advance(keys=[key], args=[value, timestamp, max(ttl_seconds, 0)])
        except RedisConnectionError as e:
            await self._drop_client(e)
            raise

        if conflict is None:
            self._metrics.writes += 1
            return None
        self._metrics.rejected_writes += 1
        return conflict.decode("utf-8") if isinstance(conflict, bytes) else conflict

    async def health(self) -> StoreHealth:
        start = time.monotonic()
        try:
            await self._call("ping")
            return StoreHealth(
                healthy=True,
                latency_ms=(time.monotonic() - start) * 1000,
                details={
                    "url": self._url_safe,
                    "metrics": {
                        "reads": self._metrics.reads,
                        "writes": self._metrics.writes,
                        "rejected_writes": self._metrics.rejected_writes,
                        "reconnections": self._metrics.reconnections,
                    },
                },
            )
        except Exception as e:
            return StoreHealth(
                healthy=False,
                latency_ms=(time.monotonic() - start) * 1000,
                details={"error": str(e)},
            )

    async def close(self) -> None:
        """Close the Redis connection if this store opened it."""
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
            self._redis = None
            logger.info("Closed Redis connection")
