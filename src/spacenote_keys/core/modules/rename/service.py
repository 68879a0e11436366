"""Rename cascade for natural keys.

A rename rewrites the primary document and every place the old key is
embedded, in one transaction. Structural references (membership rows,
author/uploader columns, space keys) are rewritten before the payload scan,
which only touches fields whose declared type references the renamed kind.
"""

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.field.references import rewrite_user_defaults
from spacenote_keys.core.modules.identifier.validators import validate_slug, validate_username
from spacenote_keys.core.modules.rename.models import RenameKind, RenameResult
from spacenote_keys.errors import ConflictError, ValidationError

logger = structlog.get_logger(__name__)


class RenameService(Service):
    """Rename cascade engine for usernames and space slugs."""

    async def rename(self, kind: RenameKind, old_value: str, new_value: str) -> RenameResult:
        """Rename a user or a space and everything that refers to it.

        Raises:
            InvalidIdentifierError: If either value is malformed
            NotFoundError: If old_value does not exist
            ConflictError: If new_value is already taken
            ValidationError: If old_value is the configured admin username
            TransactionAbortedError: If the transaction could not commit in time
        """
        match kind:
            case RenameKind.USERNAME:
                return await self.rename_user(old_value, new_value)
            case RenameKind.SPACE_SLUG:
                return await self.rename_space(old_value, new_value)

    async def rename_user(self, old_username: str, new_username: str) -> RenameResult:
        old_username = validate_username(old_username)
        new_username = validate_username(new_username)
        if old_username == self.core.config.admin_username:
            raise ValidationError(f"Cannot rename the configured admin user '{old_username}'")

        async def _rename(session: AsyncClientSession) -> dict[str, int]:
            services = self.core.services
            # A user field can live in any space, so no payload write may run anywhere meanwhile
            await services.fence.enter_all_spaces(session)
            await services.fence.enter_user(old_username, session)
            await services.fence.enter_user(new_username, session)

            await services.user.get_user(old_username, session=session)
            if old_username == new_username or await services.user.has_username(new_username, session=session):
                raise ConflictError(f"User '{new_username}' already exists")

            await services.user.rename_user_document(old_username, new_username, session)
            updated = {
                "sessions": await services.session.rename_user(old_username, new_username, session),
                "memberships": await services.space.rename_user_memberships(old_username, new_username, session),
                "notes_created": await services.note.rename_creator(old_username, new_username, session),
                "attachments_uploaded": await services.attachment.rename_uploader(old_username, new_username, session),
                "user_fields": 0,
                "field_defaults": 0,
            }

            for space in await services.space.get_all_spaces(session=session):
                if not space.user_fields:
                    continue
                updated["user_fields"] += await services.note.rewrite_user_references(
                    space, old_username, new_username, session
                )
                renamed = rewrite_user_defaults(space, old_username, new_username)
                if renamed is not None:
                    await services.space.replace_fields(space.slug, renamed.fields, session)
                    updated["field_defaults"] += 1

            await services.fence.retire_user_fence(old_username, session)
            return updated

        updated = await self.core.run_transaction(_rename)
        logger.info("user_renamed", old_username=old_username, new_username=new_username, **updated)
        return RenameResult(kind=RenameKind.USERNAME, old_value=old_username, new_value=new_username, updated=updated)

    async def rename_space(self, old_slug: str, new_slug: str) -> RenameResult:
        old_slug = validate_slug(old_slug)
        new_slug = validate_slug(new_slug)

        async def _rename(session: AsyncClientSession) -> dict[str, int]:
            services = self.core.services
            await services.fence.enter_space_registry(session)
            await services.fence.enter_space_exclusive(old_slug, session)

            await services.space.get_space(old_slug, session=session)
            if old_slug == new_slug or await services.space.has_slug(new_slug, session=session):
                raise ConflictError(f"Space with slug '{new_slug}' already exists")

            await services.space.rename_space_document(old_slug, new_slug, session)
            updated = {
                "memberships": await services.space.rename_space_memberships(old_slug, new_slug, session),
                "counters": await services.counter.rename_space(old_slug, new_slug, session),
                "notes": await services.note.rename_space(old_slug, new_slug, session),
                "attachments": await services.attachment.rename_space(old_slug, new_slug, session),
            }
            await services.fence.rename_space_fence(old_slug, new_slug, session)
            return updated

        updated = await self.core.run_transaction(_rename)
        logger.info("space_renamed", old_slug=old_slug, new_slug=new_slug, **updated)
        return RenameResult(kind=RenameKind.SPACE_SLUG, old_value=old_slug, new_value=new_slug, updated=updated)
