from app.cache.backend import RecoveredError
from app.cache.versions import COLLECTION_SCOPE, VersionStore, entity_scope

import logging

logger = logging.getLogger(__name__)


class InvalidationCoordinator:
    """
    Invalidates cached views after a committed mutation by advancing counters.

    Nothing is deleted from the cache. The entity's own scope and the shared
    collection scope (lists and summary) are both advanced; a failure on one
    does not stop the other.
    """

    def __init__(self, versions: VersionStore):
        self._versions = versions

    async def invalidate(self, entity_id: int) -> list[RecoveredError]:
        recovered = []
        for scope in (entity_scope(entity_id), COLLECTION_SCOPE):
            error = await self._versions.increment_version(scope)
            if error is not None:
                recovered.append(error)

        if recovered:
            logger.warning(
                f"Invalidation of task {entity_id} degraded; "
                f"cached views may stay stale until their TTL expires"
            )
        return recovered
