from collections.abc import Iterable
from typing import Any

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.attachment.models import Attachment, AttachmentMetadata
from spacenote_keys.core.modules.counter.models import CounterType
from spacenote_keys.core.modules.identifier.validators import validate_sequence_number, validate_slug, validate_username
from spacenote_keys.core.modules.integrity.models import EntityKind
from spacenote_keys.errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class AttachmentService(Service):
    """Manages attachment metadata and numbering for spaces and notes."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("attachments")

    async def on_start(self) -> None:
        """Create indexes for attachment lookup."""
        await self._collection.create_index([("space_slug", 1), ("number", 1)], unique=True)
        await self._collection.create_index([("space_slug", 1), ("note_number", 1)])
        await self._collection.create_index([("uploaded_by", 1)])
        await self._collection.create_index([("created_at", -1)])

    async def get_attachment(self, space_slug: str, number: int, session: AsyncClientSession | None = None) -> Attachment:
        """Get attachment by space and sequential number.

        Raises:
            NotFoundError: If attachment not found
        """
        number = validate_sequence_number(number)
        doc = await self._collection.find_one({"space_slug": space_slug, "number": number}, session=session)
        if not doc:
            raise NotFoundError(f"Attachment not found: space_slug={space_slug}, number={number}")
        return Attachment.model_validate(doc)

    async def get_attachments_by_numbers(
        self, space_slug: str, numbers: Iterable[int], session: AsyncClientSession | None = None
    ) -> dict[int, Attachment]:
        """Fetch the attachments of one space that exist among numbers, keyed by number."""
        cursor = self._collection.find({"space_slug": space_slug, "number": {"$in": list(numbers)}}, session=session)
        return {attachment.number: attachment for attachment in await Attachment.list_cursor(cursor)}

    async def list_note_attachments(self, space_slug: str, note_number: int) -> list[Attachment]:
        """List attachments linked to a note, newest first."""
        cursor = self._collection.find({"space_slug": space_slug, "note_number": note_number}).sort("created_at", -1)
        return await Attachment.list_cursor(cursor)

    async def create_attachment(
        self, space_slug: str, uploaded_by: str, metadata: AttachmentMetadata, note_number: int | None = None
    ) -> Attachment:
        """Record a new attachment under the next attachment number of the space.

        Args:
            space_slug: Space slug
            uploaded_by: Username of the uploader, must be a space member
            metadata: Filename, size and MIME type
            note_number: Note to link to (None for space-level attachments)

        Raises:
            NotFoundError: If space or note not found
            AccessDeniedError: If the uploader is not a member of the space
        """
        space_slug = validate_slug(space_slug)
        uploaded_by = validate_username(uploaded_by)
        if note_number is not None:
            note_number = validate_sequence_number(note_number)

        async def _create(session: AsyncClientSession) -> Attachment:
            await self.core.services.fence.enter_space_attachments(space_slug, session)
            space = await self.core.services.space.get_space(space_slug, session=session)
            if not await self.core.services.space.is_member(space.slug, uploaded_by, session=session):
                raise AccessDeniedError(f"User '{uploaded_by}' is not a member of space '{space.slug}'")
            if note_number is not None and not await self.core.services.note.has_note(space.slug, note_number, session):
                raise NotFoundError(f"Note not found: space_slug={space.slug}, number={note_number}")

            number = await self.core.services.counter.get_next_sequence(space.slug, CounterType.ATTACHMENT, session)
            attachment = Attachment(
                space_slug=space.slug,
                number=number,
                note_number=note_number,
                uploaded_by=uploaded_by,
                filename=metadata.filename,
                size=metadata.size,
                mime_type=metadata.mime_type,
            )
            try:
                await self._collection.insert_one(attachment.to_mongo(), session=session)
            except DuplicateKeyError as e:
                raise ConflictError(f"Attachment {number} already exists in space '{space.slug}'") from e
            return attachment

        attachment = await self.core.run_transaction(_create)
        logger.info(
            "attachment_created",
            space_slug=attachment.space_slug,
            number=attachment.number,
            note_number=note_number,
            filename=attachment.filename,
        )
        return attachment

    async def attach_to_note(self, space_slug: str, number: int, note_number: int) -> Attachment:
        """Link a space-level attachment to a note.

        Raises:
            NotFoundError: If attachment or note not found
            ValidationError: If attachment already linked to a note
        """
        space_slug = validate_slug(space_slug)
        number = validate_sequence_number(number)
        note_number = validate_sequence_number(note_number)

        async def _attach(session: AsyncClientSession) -> Attachment:
            await self.core.services.fence.enter_space_attachments(space_slug, session)
            attachment = await self.get_attachment(space_slug, number, session=session)
            if attachment.note_number is not None:
                raise ValidationError(f"Attachment {number} is already attached to note {attachment.note_number}")
            note = await self.core.services.note.get_note(space_slug, note_number, session=session)

            await self._collection.update_one(
                {"space_slug": space_slug, "number": attachment.number},
                {"$set": {"note_number": note.number}},
                session=session,
            )
            return attachment.model_copy(update={"note_number": note.number})

        attachment = await self.core.run_transaction(_attach)
        logger.debug("attachment_attached", space_slug=space_slug, number=number, note_number=note_number)
        return attachment

    async def delete_attachment(self, space_slug: str, number: int) -> None:
        """Delete an attachment that no note field points at.

        Raises:
            NotFoundError: If attachment not found
            RestrictedError: If an attachment field still references it
        """
        space_slug = validate_slug(space_slug)
        number = validate_sequence_number(number)

        async def _delete(session: AsyncClientSession) -> None:
            await self.core.services.fence.enter_space(space_slug, session)
            attachment = await self.get_attachment(space_slug, number, session=session)
            await self.core.services.integrity.ensure_can_delete(
                EntityKind.ATTACHMENT, (space_slug, attachment.number), session=session
            )
            await self._collection.delete_one({"space_slug": space_slug, "number": attachment.number}, session=session)

        await self.core.run_transaction(_delete)
        logger.info("attachment_deleted", space_slug=space_slug, number=number)

    async def count_attachments_by_uploader(self, username: str, session: AsyncClientSession | None = None) -> int:
        return await self._collection.count_documents({"uploaded_by": username}, session=session)

    async def rename_space(self, old_slug: str, new_slug: str, session: AsyncClientSession) -> int:
        """Re-key attachments under a new slug; numbers are untouched."""
        result = await self._collection.update_many(
            {"space_slug": old_slug}, {"$set": {"space_slug": new_slug}}, session=session
        )
        return result.modified_count

    async def rename_uploader(self, old_username: str, new_username: str, session: AsyncClientSession) -> int:
        result = await self._collection.update_many(
            {"uploaded_by": old_username}, {"$set": {"uploaded_by": new_username}}, session=session
        )
        return result.modified_count

    async def delete_attachments_by_space(self, space_slug: str, session: AsyncClientSession) -> int:
        """Delete all attachment records for a space."""
        result = await self._collection.delete_many({"space_slug": space_slug}, session=session)
        return result.deleted_count

    async def count_attachments(self) -> int:
        return await self._collection.count_documents({})
