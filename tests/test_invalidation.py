import pytest

from app.cache.invalidation import InvalidationCoordinator
from app.cache.keys import CacheKeyDeriver
from app.cache.versions import COLLECTION_SCOPE, VersionStore, entity_scope


@pytest.fixture
def versions(backend):
    return VersionStore(backend)


@pytest.fixture
def coordinator(versions):
    return InvalidationCoordinator(versions)


async def test_invalidate_advances_entity_and_collection(coordinator, versions):
    assert await coordinator.invalidate(4) == []

    assert await versions.get_version(entity_scope(4)) == 2
    assert await versions.get_version(COLLECTION_SCOPE) == 2


async def test_repeated_invalidation_is_monotonic(coordinator, versions):
    for _ in range(3):
        await coordinator.invalidate(1)

    assert await versions.get_version(entity_scope(1)) == 4
    assert await versions.get_version(COLLECTION_SCOPE) == 4


async def test_other_entities_keep_their_keys(coordinator, versions):
    keys = CacheKeyDeriver(versions)
    before = await keys.for_entity(2)

    await coordinator.invalidate(1)

    assert await keys.for_entity(2) == before
    assert await keys.for_summary() == "summary:v2"


async def test_nothing_is_deleted(coordinator, backend):
    backend.data["entity:1:v1"] = '{"id": 1}'

    await coordinator.invalidate(1)

    assert backend.data["entity:1:v1"] == '{"id": 1}'
    assert [op for op, _ in backend.calls] == ["INCR", "INCR"]


async def test_backend_failure_is_reported_for_both_scopes(coordinator, backend):
    backend.failing.add("INCR")

    recovered = await coordinator.invalidate(5)

    assert [error.key for error in recovered] == ["entity:5", "collection"]
    # both increments are still attempted
    assert backend.calls == [
        ("INCR", "version:entity:5"),
        ("INCR", "version:collection"),
    ]
