"""
Version-stamped cache keys.

A key embeds the generation counter of the scope it belongs to. Advancing the
counter changes every key derived afterwards, which orphans the old payloads
instead of deleting them; they age out on their own TTL.

    entity:<id>:v<version>
    collection:<filter-signature>:v<version>
    summary:v<version>          (shares the collection counter)
"""

from app.cache.versions import COLLECTION_SCOPE, VersionStore, entity_scope
from app.models import Priority, TaskFilter


def filter_signature(priority: Priority | None = None, complete: bool | None = None) -> str:
    if priority is None and complete is None:
        return "all"

    parts = []
    if priority is not None:
        parts.append(f"priority:{Priority(priority).value}")
    # complete=False must not collapse into the unfiltered signature
    if complete is not None:
        parts.append(f"complete:{'true' if complete else 'false'}")
    return ":".join(parts)


def entity_key(entity_id: int, version: int) -> str:
    return f"entity:{entity_id}:v{version}"


def collection_key(signature: str, version: int) -> str:
    return f"collection:{signature}:v{version}"


def summary_key(version: int) -> str:
    return f"summary:v{version}"


class CacheKeyDeriver:
    """Derives keys from the current generation counters. Never raises."""

    def __init__(self, versions: VersionStore):
        self._versions = versions

    async def for_entity(self, entity_id: int) -> str:
        version = await self._versions.get_version(entity_scope(entity_id))
        return entity_key(entity_id, version)

    async def for_collection(self, filters: TaskFilter | None = None) -> str:
        filters = filters or TaskFilter()
        version = await self._versions.get_version(COLLECTION_SCOPE)
        return collection_key(filter_signature(filters.priority, filters.complete), version)

    async def for_summary(self) -> str:
        version = await self._versions.get_version(COLLECTION_SCOPE)
        return summary_key(version)
