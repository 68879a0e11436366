from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.session.models import AuthToken
from spacenote_keys.core.modules.user.models import User
from spacenote_keys.errors import AccessDeniedError


class AccessService(Service):
    async def ensure_authenticated(self, auth_token: AuthToken) -> User:
        """Ensure the user is authenticated."""
        return await self.core.services.session.get_authenticated_user(auth_token)

    async def ensure_space_member(self, auth_token: AuthToken, space_slug: str) -> User:
        """Ensure the authenticated user is a member of the specified space."""
        user = await self.ensure_authenticated(auth_token)
        await self.core.services.space.get_space(space_slug)
        if not await self.core.services.space.is_member(space_slug, user.username):
            raise AccessDeniedError(f"Access denied: user '{user.username}' is not a member of space '{space_slug}'")
        return user

    async def ensure_admin(self, auth_token: AuthToken) -> User:
        """Ensure the authenticated user is the configured admin, raise AccessDeniedError if not."""
        user = await self.ensure_authenticated(auth_token)
        if self.core.config.admin_username is None or user.username != self.core.config.admin_username:
            raise AccessDeniedError("Admin privileges required")
        return user
