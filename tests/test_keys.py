import pytest

from app.cache.keys import (
    CacheKeyDeriver,
    collection_key,
    entity_key,
    filter_signature,
    summary_key,
)
from app.cache.versions import COLLECTION_SCOPE, VersionStore, entity_scope
from app.models import Priority, TaskFilter


class TestKeyFunctions:
    def test_entity_key_is_deterministic(self):
        assert entity_key(1, 1) == entity_key(1, 1) == "entity:1:v1"
        assert entity_key(1, 2) == "entity:1:v2"

    def test_unfiltered_signature(self):
        assert filter_signature() == "all"
        assert collection_key(filter_signature(), 1) == "collection:all:v1"

    def test_priority_signature(self):
        assert (
            collection_key(filter_signature(priority=Priority.HIGH), 1)
            == "collection:priority:HIGH:v1"
        )

    def test_complete_false_is_not_unfiltered(self):
        assert filter_signature(complete=False) == "complete:false"
        assert filter_signature(complete=True) == "complete:true"
        assert filter_signature(complete=False) != filter_signature()

    def test_combined_signature_has_fixed_order(self):
        assert (
            filter_signature(complete=True, priority=Priority.LOW)
            == filter_signature(priority=Priority.LOW, complete=True)
            == "priority:LOW:complete:true"
        )

    def test_summary_key(self):
        assert summary_key(3) == "summary:v3"


class TestCacheKeyDeriver:
    @pytest.fixture
    def versions(self, backend):
        return VersionStore(backend)

    @pytest.fixture
    def keys(self, versions):
        return CacheKeyDeriver(versions)

    async def test_entity_key_follows_entity_version(self, keys, versions):
        assert await keys.for_entity(1) == "entity:1:v1"

        await versions.increment_version(entity_scope(1))

        assert await keys.for_entity(1) == "entity:1:v2"

    async def test_filter_field_order_does_not_matter(self, keys):
        first = TaskFilter(priority="MED", complete=False)
        second = TaskFilter(complete=False, priority="MED")

        assert await keys.for_collection(first) == await keys.for_collection(second)

    async def test_list_views_differ_at_same_version(self, keys):
        assert await keys.for_collection() == "collection:all:v1"
        assert (
            await keys.for_collection(TaskFilter(priority=Priority.HIGH))
            == "collection:priority:HIGH:v1"
        )
        assert (
            await keys.for_collection(TaskFilter(complete=False))
            == "collection:complete:false:v1"
        )

    async def test_summary_shares_collection_version(self, keys, versions):
        await versions.increment_version(COLLECTION_SCOPE)
        await versions.increment_version(COLLECTION_SCOPE)

        assert await keys.for_summary() == "summary:v3"
        assert await keys.for_collection() == "collection:all:v3"

    async def test_derivation_survives_backend_failure(self, keys, backend):
        backend.failing.add("GET")

        assert await keys.for_entity(9) == "entity:9:v1"
        assert await keys.for_summary() == "summary:v1"
