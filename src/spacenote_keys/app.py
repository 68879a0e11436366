from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager

from spacenote_keys.config import Config
from spacenote_keys.core.core import Core
from spacenote_keys.core.modules.attachment.models import Attachment, AttachmentMetadata
from spacenote_keys.core.modules.field.models import SpaceField
from spacenote_keys.core.modules.note.models import Note
from spacenote_keys.core.modules.rename.models import RenameKind, RenameResult
from spacenote_keys.core.modules.session.models import AuthToken, SessionCheck
from spacenote_keys.core.modules.space.models import Space, SpaceMember
from spacenote_keys.core.modules.user.models import UserView
from spacenote_keys.core.pagination import PaginationResult
from spacenote_keys.errors import AuthenticationError, ValidationError


class App:
    """Facade for all application operations, validates permissions before delegating to Core.

    Every identifier accepted or returned here is a natural key: a username,
    a space slug, or a (space slug, number) pair.
    """

    def __init__(self, config: Config) -> None:
        self._core = Core(config)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Sessions ===
    async def create_session(self, username: str) -> AuthToken:
        """Issue a session for an existing user without a password check."""
        return await self._core.services.session.create_session(username)

    async def validate_session(self, auth_token: str) -> SessionCheck:
        """Report whether a token is valid (with its username), expired or unknown."""
        return await self._core.services.session.validate_session(auth_token)

    async def is_auth_token_valid(self, auth_token: AuthToken) -> bool:
        """Check if authentication token is valid."""
        return await self._core.services.session.is_auth_token_valid(auth_token)

    async def login(self, username: str, password: str) -> AuthToken:
        """Authenticate user and create session."""
        if not await self._core.services.user.verify_password(username, password):
            raise AuthenticationError
        return await self._core.services.session.create_session(username)

    async def logout(self, auth_token: AuthToken) -> None:
        """Invalidate user session."""
        await self._core.services.access.ensure_authenticated(auth_token)
        await self._core.services.session.invalidate_session(auth_token)

    async def purge_expired_sessions(self, auth_token: AuthToken) -> int:
        """Delete all expired sessions (admin only)."""
        await self._core.services.access.ensure_admin(auth_token)
        return await self._core.services.session.purge_expired_sessions()

    # === Users ===
    async def get_current_user(self, auth_token: AuthToken) -> UserView:
        """Get current authenticated user profile."""
        current_user = await self._core.services.access.ensure_authenticated(auth_token)
        return UserView.from_domain(current_user)

    async def get_user(self, auth_token: AuthToken, username: str) -> UserView:
        """Get a user by username (requires authentication)."""
        await self._core.services.access.ensure_authenticated(auth_token)
        return UserView.from_domain(await self._core.services.user.get_user(username))

    async def get_all_users(self, auth_token: AuthToken) -> list[UserView]:
        """Get all users (requires authentication)."""
        await self._core.services.access.ensure_authenticated(auth_token)
        users = await self._core.services.user.get_all_users()
        return [UserView.from_domain(user) for user in users]

    async def create_user(self, auth_token: AuthToken, username: str, password: str) -> UserView:
        """Create a new user (admin only)."""
        await self._core.services.access.ensure_admin(auth_token)
        user = await self._core.services.user.create_user(username, password)
        return UserView.from_domain(user)

    async def rename_user(self, auth_token: AuthToken, old_username: str, new_username: str) -> RenameResult:
        """Rename a user everywhere the username is stored (admin only)."""
        await self._core.services.access.ensure_admin(auth_token)
        return await self._core.services.rename.rename(RenameKind.USERNAME, old_username, new_username)

    async def delete_user(self, auth_token: AuthToken, username: str) -> None:
        """Delete a user (admin only, cannot delete self or referenced users)."""
        current_user = await self._core.services.access.ensure_admin(auth_token)
        if username == current_user.username:
            raise ValidationError("Cannot delete yourself")
        await self._core.services.user.delete_user(username)

    async def change_password(self, auth_token: AuthToken, old_password: str, new_password: str) -> None:
        """Change password for current user."""
        current_user = await self._core.services.access.ensure_authenticated(auth_token)
        await self._core.services.user.change_password(current_user.username, old_password, new_password)

    # === Spaces ===
    async def get_space(self, auth_token: AuthToken, space_slug: str) -> Space:
        """Get a space by slug (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.space.get_space(space_slug)

    async def get_spaces_by_member(self, auth_token: AuthToken) -> list[Space]:
        """Get spaces where current user is a member."""
        current_user = await self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.space.get_spaces_by_member(current_user.username)

    async def create_space(self, auth_token: AuthToken, slug: str, title: str, description: str) -> Space:
        """Create new space with current user as its first member."""
        current_user = await self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.space.create_space(slug, title, description, current_user.username)

    async def rename_space(self, auth_token: AuthToken, old_slug: str, new_slug: str) -> RenameResult:
        """Change the slug of a space, keeping note and attachment numbers (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, old_slug)
        return await self._core.services.rename.rename(RenameKind.SPACE_SLUG, old_slug, new_slug)

    async def update_space_title(self, auth_token: AuthToken, space_slug: str, title: str) -> Space:
        """Update the title of a space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.space.update_title(space_slug, title)

    async def update_space_description(self, auth_token: AuthToken, space_slug: str, description: str) -> Space:
        """Update the description of a space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.space.update_description(space_slug, description)

    async def delete_space(self, auth_token: AuthToken, space_slug: str) -> None:
        """Delete a space and all its data (admin only)."""
        await self._core.services.access.ensure_admin(auth_token)
        await self._core.services.space.delete_space(space_slug)

    async def get_members(self, auth_token: AuthToken, space_slug: str) -> list[SpaceMember]:
        """List the members of a space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.space.get_members(space_slug)

    async def add_member(self, auth_token: AuthToken, space_slug: str, username: str) -> SpaceMember:
        """Add a member to a space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.space.add_member(space_slug, username)

    async def remove_member(self, auth_token: AuthToken, space_slug: str, username: str) -> None:
        """Remove a member from a space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        await self._core.services.space.remove_member(space_slug, username)

    async def add_field_to_space(self, auth_token: AuthToken, space_slug: str, field: SpaceField) -> Space:
        """Add custom field to space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.field.add_field_to_space(space_slug, field)

    async def remove_field_from_space(self, auth_token: AuthToken, space_slug: str, field_id: str) -> Space:
        """Remove field from space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.field.remove_field_from_space(space_slug, field_id)

    # === Notes ===
    async def list_notes(
        self, auth_token: AuthToken, space_slug: str, limit: int = 50, offset: int = 0
    ) -> PaginationResult[Note]:
        """Get paginated notes in space (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.note.list_notes(space_slug, limit, offset)

    async def get_note(self, auth_token: AuthToken, space_slug: str, number: int) -> Note:
        """Get specific note by number (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.note.get_note(space_slug, number)

    async def create_note(self, auth_token: AuthToken, space_slug: str, fields: Mapping[str, object]) -> int:
        """Create note with custom fields and return its number (members only)."""
        current_user = await self._core.services.access.ensure_space_member(auth_token, space_slug)
        note = await self._core.services.note.create_note(space_slug, current_user.username, fields)
        return note.number

    async def update_note_fields(
        self, auth_token: AuthToken, space_slug: str, number: int, fields: Mapping[str, object]
    ) -> Note:
        """Update specific note fields (partial update, members only)."""
        current_user = await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.note.update_note_fields(space_slug, number, fields, current_user.username)

    async def delete_note(self, auth_token: AuthToken, space_slug: str, number: int) -> None:
        """Delete a note (members only). Its number is not reused."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        await self._core.services.note.delete_note(space_slug, number)

    # === Attachments ===
    async def get_attachment(self, auth_token: AuthToken, space_slug: str, number: int) -> Attachment:
        """Get attachment metadata by number (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.attachment.get_attachment(space_slug, number)

    async def list_note_attachments(self, auth_token: AuthToken, space_slug: str, note_number: int) -> list[Attachment]:
        """List attachments linked to a note (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.attachment.list_note_attachments(space_slug, note_number)

    async def create_attachment(
        self, auth_token: AuthToken, space_slug: str, note_number: int | None, metadata: AttachmentMetadata
    ) -> int:
        """Record an attachment and return its number (members only)."""
        current_user = await self._core.services.access.ensure_space_member(auth_token, space_slug)
        attachment = await self._core.services.attachment.create_attachment(
            space_slug, current_user.username, metadata, note_number
        )
        return attachment.number

    async def attach_to_note(self, auth_token: AuthToken, space_slug: str, number: int, note_number: int) -> Attachment:
        """Link a space-level attachment to a note (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        return await self._core.services.attachment.attach_to_note(space_slug, number, note_number)

    async def delete_attachment(self, auth_token: AuthToken, space_slug: str, number: int) -> None:
        """Delete an attachment no note field points at (members only)."""
        await self._core.services.access.ensure_space_member(auth_token, space_slug)
        await self._core.services.attachment.delete_attachment(space_slug, number)
