from collections.abc import Mapping

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.field.models import FieldType, FieldValueType, SpaceField, SpecialValue
from spacenote_keys.core.modules.field.validators import create_validator
from spacenote_keys.core.modules.space.models import Space
from spacenote_keys.errors import FieldError, FieldValidationError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class FieldService(Service):
    """Schema-aware validation of note field payloads and schema changes.

    This is the only place where references embedded in note payloads are
    checked; the store has no constraint that reaches into ``fields``.
    """

    async def validate_fields(
        self,
        space: Space,
        payload: Mapping[str, object],
        *,
        current_username: str | None = None,
        partial: bool = False,
        session: AsyncClientSession | None = None,
    ) -> dict[str, FieldValueType]:
        """Validate a field payload against the space schema.

        Args:
            space: The space whose schema applies
            payload: Field id to value mapping supplied by the caller
            current_username: The acting user, for '$me' (optional)
            partial: If True, only validate provided fields (for updates).
                If False, every schema field is resolved (for creation)
            session: Transaction the write runs in, so references are read
                from the same snapshot

        Returns:
            Normalized payload

        Raises:
            FieldValidationError: With every failing field, never just the first
        """
        errors: list[FieldError] = []
        parsed: dict[str, FieldValueType] = {}

        for field_id in payload:
            if space.get_field(field_id) is None:
                errors.append(FieldError(field_id, "Unknown field"))

        fields = [f for f in space.fields if f.id in payload] if partial else space.fields
        for field in fields:
            validator = create_validator(field.type, space, current_username)
            try:
                if field.id in payload:
                    parsed[field.id] = validator.parse_value(field, payload[field.id])
                else:
                    parsed[field.id] = validator.missing_value(field)
            except ValidationError as e:
                errors.append(FieldError(field.id, str(e)))

        errors.extend(await self._check_user_references(space, parsed, session))
        errors.extend(await self._check_attachment_references(space, parsed, session))

        if errors:
            logger.debug("field_validation_failed", space_slug=space.slug, field_ids=[e.field_id for e in errors])
            raise FieldValidationError(errors)
        return parsed

    async def _check_user_references(
        self, space: Space, parsed: dict[str, FieldValueType], session: AsyncClientSession | None
    ) -> list[FieldError]:
        refs: dict[str, str] = {}
        for field in space.user_fields:
            value = parsed.get(field.id)
            if isinstance(value, str):
                refs[field.id] = value
        if not refs:
            return []
        # Fresh read for every call, never a cache
        existing = await self.core.services.user.get_existing_usernames(set(refs.values()), session=session)
        return [
            FieldError(field_id, f"User '{username}' not found")
            for field_id, username in refs.items()
            if username not in existing
        ]

    async def _check_attachment_references(
        self, space: Space, parsed: dict[str, FieldValueType], session: AsyncClientSession | None
    ) -> list[FieldError]:
        refs: dict[str, int] = {}
        for field in space.attachment_fields:
            value = parsed.get(field.id)
            if isinstance(value, int):
                refs[field.id] = value
        if not refs:
            return []
        # Only this space's attachments count, the same number elsewhere is irrelevant
        attachments = await self.core.services.attachment.get_attachments_by_numbers(
            space.slug, set(refs.values()), session=session
        )
        image_fields = {f.id for f in space.attachment_fields if f.type == FieldType.IMAGE}
        errors = []
        for field_id, number in refs.items():
            attachment = attachments.get(number)
            if attachment is None:
                errors.append(FieldError(field_id, f"Attachment {number} not found in space '{space.slug}'"))
            elif field_id in image_fields and not attachment.mime_type.startswith("image/"):
                errors.append(FieldError(field_id, f"Attachment {number} is not an image (mime_type: {attachment.mime_type})"))
        return errors

    async def add_field_to_space(self, space_slug: str, field: SpaceField) -> Space:
        """Add a field to a space with validation.

        Runs inside the space fence, so a concurrent rename of the space or of
        a user named in the field default cannot miss the new definition.

        Raises:
            ValidationError: If field already exists or is invalid
            NotFoundError: If space not found
        """

        async def _add(session: AsyncClientSession) -> Space:
            space = await self.core.services.space.get_space(space_slug, session=session)
            await self.core.services.fence.enter_space(space.slug, session)
            if space.get_field(field.id) is not None:
                raise ValidationError(f"Field '{field.id}' already exists in space")

            validator = create_validator(field.type, space)
            validated_field = validator.validate_field_definition(field.model_copy(deep=True))

            if validated_field.is_user_reference and isinstance(validated_field.default, str):
                default = validated_field.default
                if default != SpecialValue.ME and not await self.core.services.user.has_username(default, session=session):
                    raise ValidationError(f"Default user '{default}' not found")

            return await self.core.services.space.push_field(space.slug, validated_field, session=session)

        space = await self.core.run_transaction(_add)
        logger.debug("field_added", space_slug=space.slug, field_id=field.id, field_type=field.type)
        return space

    async def remove_field_from_space(self, space_slug: str, field_id: str) -> Space:
        """Remove a field from a space.

        A field's type is fixed once notes use it, so a used field cannot be
        removed (and re-added with another type) either.

        Raises:
            ValidationError: If field is in use
            NotFoundError: If space or field not found
        """

        async def _remove(session: AsyncClientSession) -> Space:
            space = await self.core.services.space.get_space(space_slug, session=session)
            await self.core.services.fence.enter_space(space.slug, session)
            if space.get_field(field_id) is None:
                raise NotFoundError(f"Field '{field_id}' not found in space")

            note_count = await self.core.services.note.count_notes_with_field(space.slug, field_id, session=session)
            if note_count > 0:
                raise ValidationError(f"Cannot remove field '{field_id}' - it is used in {note_count} note(s)")

            return await self.core.services.space.pull_field(space.slug, field_id, session=session)

        return await self.core.run_transaction(_remove)
