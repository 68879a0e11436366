from collections.abc import Mapping
from typing import Any

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.counter.models import CounterType
from spacenote_keys.core.modules.field.references import (
    attachment_reference_filter,
    field_path,
    user_reference_filter,
    user_reference_updates,
)
from spacenote_keys.core.modules.identifier.validators import validate_sequence_number, validate_slug, validate_username
from spacenote_keys.core.modules.integrity.models import EntityKind
from spacenote_keys.core.modules.note.models import Note
from spacenote_keys.core.modules.space.models import Space
from spacenote_keys.core.pagination import PaginationResult
from spacenote_keys.errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from spacenote_keys.utils import now

logger = structlog.get_logger(__name__)


class NoteService(Service):
    """Manages notes with custom fields in spaces.

    Every write of a field payload runs in a transaction that enters the
    space fence, so it cannot interleave with a rename touching that space.
    Deleting a note also enters the attachment fence, since attachments may
    be linked to the note concurrently.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("notes")

    async def on_start(self) -> None:
        """Create indexes for space/number lookup and author references."""
        await self._collection.create_index([("space_slug", 1), ("number", 1)], unique=True)
        await self._collection.create_index([("created_by", 1)])

    async def list_notes(self, space_slug: str, limit: int = 50, offset: int = 0) -> PaginationResult[Note]:
        """Get paginated notes in space, newest first."""
        space_slug = validate_slug(space_slug)
        if limit < 1:
            raise ValidationError("Limit must be at least 1")
        if offset < 0:
            raise ValidationError("Offset cannot be negative")
        await self.core.services.space.get_space(space_slug)
        query = {"space_slug": space_slug}
        total = await self._collection.count_documents(query)
        cursor = self._collection.find(query).sort("number", -1).skip(offset).limit(limit)
        items = await Note.list_cursor(cursor)

        logger.debug("list_notes", space_slug=space_slug, total=total, limit=limit, offset=offset, returned=len(items))
        return PaginationResult(items=items, total=total, limit=limit, offset=offset)

    async def get_note(self, space_slug: str, number: int, session: AsyncClientSession | None = None) -> Note:
        """Get note by space and sequential number."""
        number = validate_sequence_number(number)
        doc = await self._collection.find_one({"space_slug": space_slug, "number": number}, session=session)
        if not doc:
            raise NotFoundError(f"Note not found: space_slug={space_slug}, number={number}")
        return Note.model_validate(doc)

    async def has_note(self, space_slug: str, number: int, session: AsyncClientSession | None = None) -> bool:
        query = {"space_slug": space_slug, "number": number}
        return await self._collection.count_documents(query, limit=1, session=session) > 0

    async def create_note(self, space_slug: str, created_by: str, payload: Mapping[str, object]) -> Note:
        """Validate the payload, allocate the next number and insert, all in one transaction.

        Raises:
            NotFoundError: If space not found
            AccessDeniedError: If the author is not a member of the space
            FieldValidationError: If the payload is invalid
        """
        space_slug = validate_slug(space_slug)
        created_by = validate_username(created_by)

        async def _create(session: AsyncClientSession) -> Note:
            await self.core.services.fence.enter_space(space_slug, session)
            space = await self.core.services.space.get_space(space_slug, session=session)
            if not await self.core.services.space.is_member(space.slug, created_by, session=session):
                raise AccessDeniedError(f"User '{created_by}' is not a member of space '{space.slug}'")

            fields = await self.core.services.field.validate_fields(
                space, payload, current_username=created_by, session=session
            )
            number = await self.core.services.counter.get_next_sequence(space.slug, CounterType.NOTE, session)
            timestamp = now()
            note = Note(
                space_slug=space.slug,
                number=number,
                created_by=created_by,
                created_at=timestamp,
                activity_at=timestamp,
                fields=fields,
            )
            try:
                await self._collection.insert_one(note.to_mongo(), session=session)
            except DuplicateKeyError as e:
                raise ConflictError(f"Note {number} already exists in space '{space.slug}'") from e
            return note

        note = await self.core.run_transaction(_create)
        logger.info("note_created", space_slug=note.space_slug, number=note.number, created_by=created_by)
        return note

    async def update_note_fields(
        self, space_slug: str, number: int, payload: Mapping[str, object], current_username: str | None = None
    ) -> Note:
        """Update specific note fields with validation (partial update).

        Only the fields provided in payload are validated and written. All
        other existing fields remain unchanged.

        Raises:
            NotFoundError: If space or note not found
            FieldValidationError: If the payload is invalid
        """
        space_slug = validate_slug(space_slug)
        number = validate_sequence_number(number)
        logger.debug("update_note_fields", space_slug=space_slug, number=number, field_ids=list(payload))

        async def _update(session: AsyncClientSession) -> Note:
            await self.core.services.fence.enter_space(space_slug, session)
            space = await self.core.services.space.get_space(space_slug, session=session)
            note = await self.get_note(space.slug, number, session=session)
            fields = await self.core.services.field.validate_fields(
                space, payload, current_username=current_username, partial=True, session=session
            )

            timestamp = now()
            update_doc: dict[str, Any] = {"edited_at": timestamp, "activity_at": timestamp}
            for field_id, value in fields.items():
                update_doc[field_path(field_id)] = value
            await self._collection.update_one(
                {"space_slug": space.slug, "number": note.number}, {"$set": update_doc}, session=session
            )
            return await self.get_note(space.slug, note.number, session=session)

        return await self.core.run_transaction(_update)

    async def delete_note(self, space_slug: str, number: int) -> None:
        """Delete a single note. Its number is never handed out again.

        Raises:
            NotFoundError: If note not found
        """
        space_slug = validate_slug(space_slug)
        number = validate_sequence_number(number)

        async def _delete(session: AsyncClientSession) -> None:
            await self.core.services.fence.enter_space_exclusive(space_slug, session)
            note = await self.get_note(space_slug, number, session=session)
            await self.core.services.integrity.ensure_can_delete(
                EntityKind.NOTE, (space_slug, note.number), session=session
            )
            await self._collection.delete_one({"space_slug": space_slug, "number": note.number}, session=session)

        await self.core.run_transaction(_delete)
        logger.info("note_deleted", space_slug=space_slug, number=number)

    async def count_notes_with_field(self, space_slug: str, field_id: str, session: AsyncClientSession | None = None) -> int:
        query = {"space_slug": space_slug, field_path(field_id): {"$exists": True, "$ne": None}}
        return await self._collection.count_documents(query, session=session)

    async def count_notes_by_creator(self, username: str, session: AsyncClientSession | None = None) -> int:
        return await self._collection.count_documents({"created_by": username}, session=session)

    async def count_user_references(self, space: Space, username: str, session: AsyncClientSession | None = None) -> int:
        """Count notes of the space whose user fields name username."""
        query = user_reference_filter(space, username)
        if query is None:
            return 0
        return await self._collection.count_documents(query, session=session)

    async def count_attachment_references(self, space: Space, number: int, session: AsyncClientSession | None = None) -> int:
        """Count notes of the space whose attachment fields point at number."""
        query = attachment_reference_filter(space, number)
        if query is None:
            return 0
        return await self._collection.count_documents(query, session=session)

    async def rename_space(self, old_slug: str, new_slug: str, session: AsyncClientSession) -> int:
        """Re-key notes under a new slug; numbers are untouched."""
        result = await self._collection.update_many(
            {"space_slug": old_slug}, {"$set": {"space_slug": new_slug}}, session=session
        )
        return result.modified_count

    async def rename_creator(self, old_username: str, new_username: str, session: AsyncClientSession) -> int:
        result = await self._collection.update_many(
            {"created_by": old_username}, {"$set": {"created_by": new_username}}, session=session
        )
        return result.modified_count

    async def rewrite_user_references(
        self, space: Space, old_username: str, new_username: str, session: AsyncClientSession
    ) -> int:
        """Rewrite user-typed field values in one space. Returns the number of field values changed."""
        modified = 0
        for query, update in user_reference_updates(space, old_username, new_username):
            result = await self._collection.update_many(query, update, session=session)
            modified += result.modified_count
        return modified

    async def delete_notes_by_space(self, space_slug: str, session: AsyncClientSession) -> int:
        """Delete all notes in a space and return count of deleted notes."""
        result = await self._collection.delete_many({"space_slug": space_slug}, session=session)
        return result.deleted_count

    async def count_notes(self) -> int:
        return await self._collection.count_documents({})
