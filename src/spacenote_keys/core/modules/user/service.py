from collections.abc import Iterable
from typing import Any

import bcrypt
import structlog
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.identifier.validators import validate_username
from spacenote_keys.core.modules.integrity.models import EntityKind
from spacenote_keys.core.modules.user.models import User
from spacenote_keys.core.modules.user.validators import validate_password
from spacenote_keys.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


class UserService(Service):
    """Manages users keyed by username.

    No in-memory cache: reference checks must see renames and deletions
    committed by other requests.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")

    async def get_user(self, username: str, session: AsyncClientSession | None = None) -> User:
        """Get user by username."""
        doc = await self._collection.find_one({"username": username}, session=session)
        if doc is None:
            raise NotFoundError(f"User '{username}' not found")
        return User.model_validate(doc)

    async def has_username(self, username: str, session: AsyncClientSession | None = None) -> bool:
        """Check if username exists."""
        return await self._collection.count_documents({"username": username}, limit=1, session=session) > 0

    async def get_existing_usernames(
        self, usernames: Iterable[str], session: AsyncClientSession | None = None
    ) -> set[str]:
        """Return the subset of usernames that exist."""
        cursor = self._collection.find({"username": {"$in": list(usernames)}}, {"username": 1}, session=session)
        return {doc["username"] async for doc in cursor}

    async def get_all_users(self) -> list[User]:
        return await User.list_cursor(self._collection.find().sort("username", 1))

    async def create_user(self, username: str, password: str) -> User:
        """Create user with hashed password."""
        username = validate_username(username)
        validate_password(password)
        if await self.has_username(username):
            raise ConflictError(f"User '{username}' already exists")

        user = User(username=username, password_hash=hash_password(password))
        try:
            await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            raise ConflictError(f"User '{username}' already exists") from e
        logger.info("user_created", username=username)
        return user

    async def verify_password(self, username: str, password: str) -> bool:
        """Verify password against stored hash."""
        doc = await self._collection.find_one({"username": username})
        if doc is None:
            return False
        return bcrypt.checkpw(password.encode("utf-8"), doc["password_hash"].encode("utf-8"))

    async def change_password(self, username: str, old_password: str, new_password: str) -> None:
        """Change user password after verifying current password."""
        user = await self.get_user(username)
        if not bcrypt.checkpw(old_password.encode("utf-8"), user.password_hash.encode("utf-8")):
            raise ValidationError("Invalid current password")

        validate_password(new_password)
        await self._collection.update_one({"username": username}, {"$set": {"password_hash": hash_password(new_password)}})

    async def delete_user(self, username: str) -> None:
        """Delete a user and their sessions.

        Refused while anything still references the username. A user reference
        can live in any space, so every space is fenced for the duration.

        Raises:
            NotFoundError: If user not found
            RestrictedError: If memberships or other references exist
        """
        username = validate_username(username)

        async def _delete(session: AsyncClientSession) -> int:
            await self.core.services.fence.enter_all_spaces(session)
            await self.core.services.fence.enter_user(username, session)
            await self.get_user(username, session=session)
            await self.core.services.integrity.ensure_can_delete(EntityKind.USER, username, session=session)
            sessions_deleted = await self.core.services.session.delete_sessions_by_user(username, session=session)
            await self._collection.delete_one({"username": username}, session=session)
            await self.core.services.fence.retire_user_fence(username, session)
            return sessions_deleted

        sessions_deleted = await self.core.run_transaction(_delete)
        logger.info("user_deleted", username=username, sessions_deleted=sessions_deleted)

    async def rename_user_document(self, old_username: str, new_username: str, session: AsyncClientSession) -> None:
        """Change the primary key of the user document. Dependents are handled by RenameService."""
        try:
            result = await self._collection.update_one(
                {"username": old_username}, {"$set": {"username": new_username}}, session=session
            )
        except DuplicateKeyError as e:
            raise ConflictError(f"User '{new_username}' already exists") from e
        if result.matched_count == 0:
            raise NotFoundError(f"User '{old_username}' not found")

    async def ensure_admin_user_exists(self) -> None:
        """Create the configured bootstrap user if not exists."""
        config = self.core.config
        if config.admin_username and config.admin_password and not await self.has_username(config.admin_username):
            await self.create_user(config.admin_username, config.admin_password)

    async def count_users(self) -> int:
        return await self._collection.count_documents({})

    async def on_start(self) -> None:
        """Initialize indexes and admin user."""
        await self._collection.create_index([("username", 1)], unique=True)
        await self.ensure_admin_user_exists()
        logger.debug("user_service_started", user_count=await self.count_users())
