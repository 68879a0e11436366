"""Tests for fence keys and which fences each entry point writes."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from spacenote_keys.core.modules.fence.models import attachment_fence_key, space_fence_key, space_fence_keys
from spacenote_keys.core.modules.fence.service import FenceService


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.update_one = AsyncMock()
    collection.delete_one = AsyncMock()
    collection.delete_many = AsyncMock()
    return collection


@pytest.fixture
def core():
    core = MagicMock()
    core.services.space.get_all_slugs = AsyncMock(return_value=["alpha", "beta"])
    return core


@pytest.fixture
def service(collection, core):
    database = MagicMock()
    database.get_collection.return_value = collection
    service = FenceService(database)
    service.set_core(core)
    return service


def bumped_keys(collection) -> list[str]:
    return [call.args[0]["key"] for call in collection.update_one.await_args_list]


class TestFenceKeys:
    def test_payload_and_attachment_fences_differ(self):
        assert space_fence_key("proj") != attachment_fence_key("proj")
        assert space_fence_keys("proj") == (space_fence_key("proj"), attachment_fence_key("proj"))

    def test_keys_of_different_spaces_differ(self):
        assert set(space_fence_keys("proj")).isdisjoint(space_fence_keys("proj-attachment"))


class TestEntryPoints:
    @pytest.mark.asyncio
    async def test_payload_writers_skip_attachment_fence(self, service, collection):
        await service.enter_space("proj", MagicMock())
        assert bumped_keys(collection) == [space_fence_key("proj")]

    @pytest.mark.asyncio
    async def test_attachment_writers_skip_payload_fence(self, service, collection):
        await service.enter_space_attachments("proj", MagicMock())
        assert bumped_keys(collection) == [attachment_fence_key("proj")]

    @pytest.mark.asyncio
    async def test_exclusive_writes_both(self, service, collection):
        await service.enter_space_exclusive("proj", MagicMock())
        assert bumped_keys(collection) == list(space_fence_keys("proj"))

    @pytest.mark.asyncio
    async def test_all_spaces_fences_registry_and_both_kinds(self, service, collection):
        slugs = await service.enter_all_spaces(MagicMock())
        assert slugs == ["alpha", "beta"]
        assert bumped_keys(collection) == ["spaces", *space_fence_keys("alpha"), *space_fence_keys("beta")]

    @pytest.mark.asyncio
    async def test_delete_space_fence_drops_both(self, service, collection):
        await service.delete_space_fence("proj", MagicMock())
        query = collection.delete_many.await_args.args[0]
        assert sorted(query["key"]["$in"]) == sorted(space_fence_keys("proj"))
