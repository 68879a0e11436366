from typing import Any

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.fence.models import (
    SPACE_REGISTRY_FENCE,
    attachment_fence_key,
    space_fence_key,
    space_fence_keys,
    user_fence_key,
)

logger = structlog.get_logger(__name__)


class FenceService(Service):
    """Coarse write exclusion built on transactional write conflicts."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("fences")

    async def on_start(self) -> None:
        await self._collection.create_index([("key", 1)], unique=True)

    async def bump(self, key: str, session: AsyncClientSession) -> None:
        """Write the fence inside the caller's transaction."""
        await self._collection.update_one({"key": key}, {"$inc": {"version": 1}}, upsert=True, session=session)

    async def enter_space(self, space_slug: str, session: AsyncClientSession) -> None:
        """Exclude other note payload writers of this space for the rest of the transaction."""
        await self.bump(space_fence_key(space_slug), session)

    async def enter_space_attachments(self, space_slug: str, session: AsyncClientSession) -> None:
        """Exclude other attachment record writers of this space for the rest of the transaction."""
        await self.bump(attachment_fence_key(space_slug), session)

    async def enter_space_exclusive(self, space_slug: str, session: AsyncClientSession) -> None:
        """Exclude every writer of this space: renames, deletes and membership removal."""
        for key in space_fence_keys(space_slug):
            await self.bump(key, session)

    async def enter_user(self, username: str, session: AsyncClientSession) -> None:
        """Exclude renames and deletion of this user for the rest of the transaction."""
        await self.bump(user_fence_key(username), session)

    async def enter_space_registry(self, session: AsyncClientSession) -> None:
        """Exclude operations that need a stable set of spaces."""
        await self.bump(SPACE_REGISTRY_FENCE, session)

    async def enter_all_spaces(self, session: AsyncClientSession) -> list[str]:
        """Fence the space registry and every existing space exclusively.

        Used by username renames and user deletion, since a username can
        appear in notes and attachments of any space. Returns the slugs that
        were fenced.
        """
        await self.enter_space_registry(session)
        slugs = await self.core.services.space.get_all_slugs(session=session)
        for slug in slugs:
            await self.enter_space_exclusive(slug, session)
        logger.debug("all_spaces_fenced", space_count=len(slugs))
        return slugs

    async def rename_space_fence(self, old_slug: str, new_slug: str, session: AsyncClientSession) -> None:
        for old_key, new_key in zip(space_fence_keys(old_slug), space_fence_keys(new_slug), strict=True):
            await self._collection.delete_one({"key": new_key}, session=session)
            await self._collection.update_one(
                {"key": old_key}, {"$set": {"key": new_key}, "$inc": {"version": 1}}, upsert=True, session=session
            )

    async def delete_space_fence(self, space_slug: str, session: AsyncClientSession) -> None:
        await self._collection.delete_many({"key": {"$in": list(space_fence_keys(space_slug))}}, session=session)

    async def retire_user_fence(self, username: str, session: AsyncClientSession) -> None:
        """Drop the fence of a username that no longer exists. Call after enter_user."""
        await self._collection.delete_one({"key": user_fence_key(username)}, session=session)
