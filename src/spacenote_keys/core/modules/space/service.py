from typing import Any

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.field.models import SpaceField
from spacenote_keys.core.modules.identifier.validators import validate_slug, validate_username
from spacenote_keys.core.modules.integrity.models import EntityKind
from spacenote_keys.core.modules.space.models import Space, SpaceMember
from spacenote_keys.errors import ConflictError, NotFoundError, ValidationError
from spacenote_keys.utils import now

logger = structlog.get_logger(__name__)


class SpaceService(Service):
    """Service for managing spaces and their memberships."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("spaces")
        self._members = database.get_collection("space_members")

    async def on_start(self) -> None:
        await self._collection.create_index([("slug", 1)], unique=True)
        await self._members.create_index([("space_slug", 1), ("username", 1)], unique=True)
        await self._members.create_index([("username", 1)])
        logger.debug("space_service_started", space_count=await self._collection.count_documents({}))

    async def get_space(self, slug: str, session: AsyncClientSession | None = None) -> Space:
        """Get a space by slug."""
        doc = await self._collection.find_one({"slug": slug}, session=session)
        if doc is None:
            raise NotFoundError(f"Space with slug '{slug}' not found")
        return Space.model_validate(doc)

    async def has_slug(self, slug: str, session: AsyncClientSession | None = None) -> bool:
        """Check if a space exists by slug."""
        return await self._collection.count_documents({"slug": slug}, limit=1, session=session) > 0

    async def get_all_spaces(self, session: AsyncClientSession | None = None) -> list[Space]:
        return await Space.list_cursor(self._collection.find(session=session).sort("slug", 1))

    async def get_all_slugs(self, session: AsyncClientSession | None = None) -> list[str]:
        cursor = self._collection.find({}, {"slug": 1}, session=session).sort("slug", 1)
        return [doc["slug"] async for doc in cursor]

    async def get_members(self, slug: str) -> list[SpaceMember]:
        """Get memberships of a space, oldest first."""
        await self.get_space(slug)
        return await SpaceMember.list_cursor(self._members.find({"space_slug": slug}).sort("added_at", 1))

    async def get_spaces_by_member(self, username: str) -> list[Space]:
        """Get all spaces where the user is a member."""
        slugs = [doc["space_slug"] async for doc in self._members.find({"username": username}, {"space_slug": 1})]
        return await Space.list_cursor(self._collection.find({"slug": {"$in": slugs}}).sort("slug", 1))

    async def is_member(self, slug: str, username: str, session: AsyncClientSession | None = None) -> bool:
        query = {"space_slug": slug, "username": username}
        return await self._members.count_documents(query, limit=1, session=session) > 0

    async def count_memberships_by_user(self, username: str, session: AsyncClientSession | None = None) -> int:
        return await self._members.count_documents({"username": username}, session=session)

    async def create_space(self, slug: str, title: str, description: str, owner: str) -> Space:
        """Create a new space with the owner as its first member.

        Raises:
            InvalidIdentifierError: If slug or owner is malformed
            ConflictError: If the slug is taken
            NotFoundError: If owner does not exist
        """
        slug = validate_slug(slug)
        owner = validate_username(owner)
        if not title.strip():
            raise ValidationError("Title cannot be empty")
        space = Space(slug=slug, title=title, description=description)

        async def _create(session: AsyncClientSession) -> None:
            await self.core.services.fence.enter_space_registry(session)
            await self.core.services.fence.enter_user(owner, session)
            await self.core.services.user.get_user(owner, session=session)
            if await self.has_slug(slug, session=session):
                raise ConflictError(f"Space with slug '{slug}' already exists")
            try:
                await self._collection.insert_one(space.to_mongo(), session=session)
            except DuplicateKeyError as e:
                raise ConflictError(f"Space with slug '{slug}' already exists") from e
            await self._members.insert_one(SpaceMember(space_slug=slug, username=owner).to_mongo(), session=session)
            await self.core.services.fence.enter_space_exclusive(slug, session)

        await self.core.run_transaction(_create)
        logger.info("space_created", slug=slug, owner=owner)
        return space

    async def add_member(self, slug: str, username: str) -> SpaceMember:
        """Add a member to a space.

        Raises:
            NotFoundError: If space or user not found
            ConflictError: If the user is already a member
        """
        slug = validate_slug(slug)
        username = validate_username(username)
        member = SpaceMember(space_slug=slug, username=username)

        async def _add(session: AsyncClientSession) -> None:
            await self.core.services.fence.enter_space(slug, session)
            await self.core.services.fence.enter_user(username, session)
            await self.get_space(slug, session=session)
            await self.core.services.user.get_user(username, session=session)
            if await self.is_member(slug, username, session=session):
                raise ConflictError(f"User '{username}' is already a member of this space")
            await self._members.insert_one(member.to_mongo(), session=session)

        await self.core.run_transaction(_add)
        logger.info("space_member_added", slug=slug, username=username)
        return member

    async def remove_member(self, slug: str, username: str) -> None:
        """Remove a member from a space.

        Raises:
            NotFoundError: If the user is not a member
            ValidationError: If it is the last member
        """
        slug = validate_slug(slug)
        username = validate_username(username)

        async def _remove(session: AsyncClientSession) -> None:
            await self.core.services.fence.enter_space_exclusive(slug, session)
            await self.core.services.fence.enter_user(username, session)
            await self.get_space(slug, session=session)
            if not await self.is_member(slug, username, session=session):
                raise NotFoundError(f"User '{username}' is not a member of this space")
            if await self._members.count_documents({"space_slug": slug}, session=session) == 1:
                raise ValidationError("Cannot remove the last member from a space")
            await self._members.delete_one({"space_slug": slug, "username": username}, session=session)

        await self.core.run_transaction(_remove)
        logger.info("space_member_removed", slug=slug, username=username)

    async def update_title(self, slug: str, title: str) -> Space:
        """Update the title of a space."""
        if not title.strip():
            raise ValidationError("Title cannot be empty")
        await self._set(slug, {"title": title})
        return await self.get_space(slug)

    async def update_description(self, slug: str, description: str) -> Space:
        """Update the description of a space."""
        await self._set(slug, {"description": description})
        return await self.get_space(slug)

    async def push_field(self, slug: str, field: SpaceField, session: AsyncClientSession) -> Space:
        await self._collection.update_one(
            {"slug": slug}, {"$push": {"fields": field.model_dump()}, "$set": {"updated_at": now()}}, session=session
        )
        return await self.get_space(slug, session=session)

    async def pull_field(self, slug: str, field_id: str, session: AsyncClientSession) -> Space:
        await self._collection.update_one(
            {"slug": slug}, {"$pull": {"fields": {"id": field_id}}, "$set": {"updated_at": now()}}, session=session
        )
        return await self.get_space(slug, session=session)

    async def replace_fields(self, slug: str, fields: list[SpaceField], session: AsyncClientSession) -> None:
        await self._set(slug, {"fields": [f.model_dump() for f in fields]}, session=session)

    async def rename_space_document(self, old_slug: str, new_slug: str, session: AsyncClientSession) -> None:
        """Change the primary key of the space document. Dependents are handled by RenameService."""
        try:
            await self._set(old_slug, {"slug": new_slug}, session=session)
        except DuplicateKeyError as e:
            raise ConflictError(f"Space with slug '{new_slug}' already exists") from e

    async def rename_space_memberships(self, old_slug: str, new_slug: str, session: AsyncClientSession) -> int:
        result = await self._members.update_many(
            {"space_slug": old_slug}, {"$set": {"space_slug": new_slug}}, session=session
        )
        return result.modified_count

    async def rename_user_memberships(self, old_username: str, new_username: str, session: AsyncClientSession) -> int:
        result = await self._members.update_many(
            {"username": old_username}, {"$set": {"username": new_username}}, session=session
        )
        return result.modified_count

    async def delete_space(self, slug: str) -> None:
        """Delete a space with its memberships, notes, attachments and counters.

        Raises:
            NotFoundError: If space not found
        """
        slug = validate_slug(slug)

        async def _delete(session: AsyncClientSession) -> dict[str, int]:
            await self.core.services.fence.enter_space_registry(session)
            await self.core.services.fence.enter_space_exclusive(slug, session)
            await self.get_space(slug, session=session)
            await self.core.services.integrity.ensure_can_delete(EntityKind.SPACE, slug, session=session)

            services = self.core.services
            counts = {
                "members": (await self._members.delete_many({"space_slug": slug}, session=session)).deleted_count,
                "notes": await services.note.delete_notes_by_space(slug, session=session),
                "attachments": await services.attachment.delete_attachments_by_space(slug, session=session),
                "counters": await services.counter.delete_counters_by_space(slug, session=session),
            }
            await services.fence.delete_space_fence(slug, session)
            await self._collection.delete_one({"slug": slug}, session=session)
            return counts

        counts = await self.core.run_transaction(_delete)
        logger.info("space_deleted", slug=slug, **counts)

    async def count_spaces(self) -> int:
        return await self._collection.count_documents({})

    async def _set(self, slug: str, values: dict[str, Any], session: AsyncClientSession | None = None) -> None:
        result = await self._collection.update_one(
            {"slug": slug}, {"$set": {**values, "updated_at": now()}}, session=session
        )
        if result.matched_count == 0:
            raise NotFoundError(f"Space with slug '{slug}' not found")
