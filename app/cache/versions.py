from app.cache.backend import KeyValueCache, RecoveredError
from app.core.errors import BackendUnavailableError

import logging

logger = logging.getLogger(__name__)

DEFAULT_VERSION = 1
COLLECTION_SCOPE = "collection"


def entity_scope(entity_id: int) -> str:
    return f"entity:{entity_id}"


def _counter_key(scope: str) -> str:
    return f"version:{scope}"


class VersionStore:
    """
    Generation counters per invalidation scope.

    Counters start at 1 and only ever grow by one. Neither operation raises:
    a backend failure is logged and recorded in ``recovered`` so that a
    request degrades to cache misses instead of failing.
    """

    def __init__(self, backend: KeyValueCache):
        self._backend = backend
        self.recovered: list[RecoveredError] = []

    def _recover(self, operation: str, scope: str, error: Exception) -> RecoveredError:
        logger.warning(f"Version {operation} failed for {scope}: {error}")
        recovered = RecoveredError(operation, scope, error)
        self.recovered.append(recovered)
        return recovered

    async def get_version(self, scope: str) -> int:
        try:
            raw = await self._backend.get(_counter_key(scope))
        except BackendUnavailableError as e:
            self._recover("get", scope, e)
            return DEFAULT_VERSION

        if raw is None:
            return DEFAULT_VERSION
        try:
            return int(raw)
        except ValueError as e:
            self._recover("get", scope, e)
            return DEFAULT_VERSION

    async def increment_version(self, scope: str) -> RecoveredError | None:
        try:
            version = await self._backend.incr(_counter_key(scope), seed=DEFAULT_VERSION)
        except BackendUnavailableError as e:
            return self._recover("increment", scope, e)
        logger.debug(f"Advanced {scope} to v{version}")
        return None
