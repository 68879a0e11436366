"""Fixtures for tests against a real MongoDB replica set.

Set SPACENOTE_TEST_DATABASE_URL (for example
mongodb://localhost:27017/?replicaSet=rs0) to run them. Each test gets a
fresh database that is dropped afterwards.
"""

import os
import uuid
from urllib.parse import urlparse

import pytest
import pytest_asyncio

from spacenote_keys.config import Config
from spacenote_keys.core.core import Core
from spacenote_keys.core.modules.field.models import FieldType, SpaceField

TEST_DATABASE_URL = os.environ.get("SPACENOTE_TEST_DATABASE_URL")


def pytest_collection_modifyitems(config, items):
    if TEST_DATABASE_URL is not None:
        return
    skip = pytest.mark.skip(reason="SPACENOTE_TEST_DATABASE_URL is not set")
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(skip)


def make_database_url(base_url: str) -> str:
    parsed = urlparse(base_url)
    return parsed._replace(path=f"/spacenote_keys_test_{uuid.uuid4().hex[:12]}").geturl()


@pytest_asyncio.fixture
async def core():
    config = Config(database_url=make_database_url(TEST_DATABASE_URL or ""))
    core = Core(config)
    async with core.lifespan():
        try:
            yield core
        finally:
            await core.mongo_client.drop_database(core.database.name)


@pytest_asyncio.fixture
async def project(core):
    """Users john and alice, and space 'proj' with both as members."""
    services = core.services
    await services.user.create_user("john", "secret1")
    await services.user.create_user("alice", "secret2")
    await services.space.create_space("proj", "Project", "", owner="john")
    await services.space.add_member("proj", "alice")
    await services.field.add_field_to_space("proj", SpaceField(id="title", type=FieldType.STRING))
    await services.field.add_field_to_space("proj", SpaceField(id="assigned_to", type=FieldType.USER))
    await services.field.add_field_to_space("proj", SpaceField(id="thumbnail", type=FieldType.ATTACHMENT))
    return await services.space.get_space("proj")
