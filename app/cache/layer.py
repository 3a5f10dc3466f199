import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from app.cache.backend import KeyValueCache, RecoveredError
from app.core.errors import BackendUnavailableError

import logging

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 120


@dataclass
class CacheResult:
    value: Any
    hit: bool
    recovered: list[RecoveredError] = field(default_factory=list)


class ReadThroughCache:
    """
    Read-through cache in front of the data store.

    The cache is fail-open: a backend error on lookup is treated as a miss and
    a backend error on store is dropped, so only loader (data store) errors
    ever reach the caller.
    """

    def __init__(self, backend: KeyValueCache, ttl: int = DEFAULT_TTL_SECONDS):
        self._backend = backend
        self._ttl = ttl

    def _serialize(self, value: Any) -> str:
        """Serialize value for storage."""
        return json.dumps(value, default=str)

    async def _lookup(self, key: str, recovered: list[RecoveredError]) -> tuple[bool, Any]:
        try:
            raw = await self._backend.get(key)
        except BackendUnavailableError as e:
            logger.warning(f"Cache GET failed, loading from store: {e}")
            recovered.append(RecoveredError("get", key, e))
            return False, None

        if raw is None:
            return False, None
        try:
            return True, json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            recovered.append(RecoveredError("decode", key, e))
            return False, None

    async def _store(
        self, key: str, value: Any, ttl: int, recovered: list[RecoveredError]
    ):
        try:
            await self._backend.set(key, self._serialize(value), ttl)
            logger.debug(f"Stored {key} for {ttl}s")
        except BackendUnavailableError as e:
            logger.warning(f"Cache SET failed: {e}")
            recovered.append(RecoveredError("set", key, e))

    async def read_through(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> CacheResult:
        """
        Return the cached value for ``key`` or load, store and return it.

        Args:
            key: Version-stamped cache key
            loader: Async function producing the authoritative value
            ttl: Seconds to keep the stored payload (defaults to the layer TTL)

        Returns:
            CacheResult with the value, whether it was a hit, and any backend
            errors that were recovered along the way. ``None`` loads are
            returned but never stored.
        """
        recovered: list[RecoveredError] = []

        hit, value = await self._lookup(key, recovered)
        if hit:
            logger.debug(f"Cache hit {key}")
            return CacheResult(value, True, recovered)

        logger.debug(f"Cache miss {key}")
        value = await loader()
        if value is not None:
            await self._store(key, value, ttl if ttl is not None else self._ttl, recovered)
        return CacheResult(value, False, recovered)
