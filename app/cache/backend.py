from dataclasses import dataclass
from typing import Annotated, Optional, Protocol

from fastapi import Depends, Request
from redis.asyncio import Redis, RedisError
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.core.config import Settings
from app.core.errors import BackendUnavailableError

import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoveredError:
    """A cache backend failure that was absorbed instead of failing the request."""

    operation: str
    key: str
    error: Exception


class KeyValueCache(Protocol):
    """What the cache components need from a key-value backend."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: int) -> None: ...

    async def incr(self, key: str, seed: int = 0) -> int: ...


class LinearBackoff(AbstractBackoff):
    """Backoff growing by a fixed step per failure, capped."""

    def __init__(self, step: float, cap: float):
        self._step = step
        self._cap = cap

    def reset(self):
        pass

    def compute(self, failures: int) -> float:
        return min(failures * self._step, self._cap)


class RedisCache:
    """
    Redis-backed key-value cache.

    Every transport error is raised as BackendUnavailableError; callers decide
    whether to recover. Keys are namespaced automatically.
    """

    def __init__(self, settings: Settings, redis: Redis | None = None):
        self._settings = settings
        self._redis = redis
        self.stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
        }

    async def connect(self):
        """Create the connection pool and verify the server is reachable."""
        if self._redis is None:
            settings = self._settings
            self._redis = Redis.from_url(
                settings.redis_dsn,
                encoding="utf-8",
                decode_responses=True,
                max_connections=settings.redis_pool_size,
                socket_connect_timeout=settings.redis_connect_timeout_seconds,
                socket_timeout=settings.redis_socket_timeout_seconds,
                socket_keepalive=True,
                health_check_interval=30,
                retry=Retry(
                    LinearBackoff(
                        settings.redis_backoff_step_seconds,
                        settings.redis_backoff_cap_seconds,
                    ),
                    settings.redis_max_retries,
                ),
                retry_on_error=[RedisConnectionError, RedisTimeoutError],
            )

        if await self.ping():
            logger.info("Redis connection established")
        else:
            # The pool reconnects lazily; until then every call fails open.
            logger.warning("Redis unreachable at startup, serving without cache")

    def _key(self, key: str) -> str:
        return f"{self._settings.cache_namespace}{key}"

    def _client(self, operation: str, key: str) -> Redis:
        if self._redis is None:
            raise BackendUnavailableError(operation, key)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        redis = self._client("GET", key)
        try:
            raw = await redis.get(self._key(key))
        except RedisError as e:
            self.stats["errors"] += 1
            raise BackendUnavailableError("GET", key, e) from e

        if raw is None:
            self.stats["misses"] += 1
        else:
            self.stats["hits"] += 1
        return raw

    async def set(self, key: str, value: str, ttl: int) -> None:
        redis = self._client("SET", key)
        try:
            await redis.set(self._key(key), value, ex=ttl)
        except RedisError as e:
            self.stats["errors"] += 1
            raise BackendUnavailableError("SET", key, e) from e

    async def incr(self, key: str, seed: int = 0) -> int:
        """
        Atomically increment a counter.

        An absent counter is first set to ``seed`` in the same transaction,
        so the first increment returns ``seed + 1``.
        """
        redis = self._client("INCR", key)
        namespaced = self._key(key)
        try:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.set(namespaced, seed, nx=True)
                pipe.incr(namespaced)
                _, value = await pipe.execute()
        except RedisError as e:
            self.stats["errors"] += 1
            raise BackendUnavailableError("INCR", key, e) from e
        return int(value)

    async def ping(self) -> bool:
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.warning(f"Redis PING failed: {e}")
            return False

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis: {e}")
            self._redis = None

    def get_stats(self) -> dict:
        total = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "hit_rate": self.stats["hits"] / total if total > 0 else 0,
        }


def get_cache_backend(request: Request) -> KeyValueCache:
    return request.app.state.cache_backend


CacheBackendDep = Annotated[KeyValueCache, Depends(get_cache_backend)]
