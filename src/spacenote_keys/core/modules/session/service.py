from datetime import timedelta
from typing import Any

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.identifier.validators import generate_auth_token, validate_auth_token, validate_username
from spacenote_keys.core.modules.session.models import AuthToken, Session, SessionCheck, SessionStatus
from spacenote_keys.core.modules.user.models import User
from spacenote_keys.errors import AuthenticationError, InvalidIdentifierError
from spacenote_keys.utils import now

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Service for managing user sessions."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("auth_token", 1)], unique=True)
        await self._collection.create_index([("username", 1)])
        await self._collection.create_index([("last_active_at", 1)])
        # TTL index: the store removes a session once expires_at has passed
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=0)

    async def create_session(self, username: str) -> AuthToken:
        """Create a session for an existing user.

        Raises:
            NotFoundError: If user not found
        """
        username = validate_username(username)
        timestamp = now()
        new_session = Session(
            auth_token=generate_auth_token(),
            username=username,
            created_at=timestamp,
            expires_at=timestamp + timedelta(days=self.core.config.session_ttl_days),
            last_active_at=timestamp,
        )

        async def _create(session: AsyncClientSession) -> None:
            await self.core.services.fence.enter_user(username, session)
            await self.core.services.user.get_user(username, session=session)
            await self._collection.insert_one(new_session.to_mongo(), session=session)

        await self.core.run_transaction(_create)
        logger.debug("session_created", username=username)
        return AuthToken(new_session.auth_token)

    async def validate_session(self, auth_token: str) -> SessionCheck:
        """Check a token and touch last_active_at when it is valid.

        Expired sessions are deleted on sight, without waiting for the TTL sweep.

        Raises:
            InvalidIdentifierError: If the token is malformed
        """
        auth_token = validate_auth_token(auth_token)
        doc = await self._collection.find_one({"auth_token": auth_token})
        if doc is None:
            return SessionCheck(status=SessionStatus.NOT_FOUND)

        session = Session.model_validate(doc)
        timestamp = now()
        if session.is_expired(timestamp):
            await self._collection.delete_one({"auth_token": auth_token})
            return SessionCheck(status=SessionStatus.EXPIRED)

        await self._collection.update_one({"auth_token": auth_token}, {"$set": {"last_active_at": timestamp}})
        return SessionCheck(status=SessionStatus.VALID, username=session.username)

    async def get_authenticated_user(self, auth_token: AuthToken) -> User:
        try:
            check = await self.validate_session(auth_token)
        except InvalidIdentifierError as e:
            raise AuthenticationError("Invalid or expired session") from e
        if check.username is None:
            raise AuthenticationError("Invalid or expired session")
        return await self.core.services.user.get_user(check.username)

    async def is_auth_token_valid(self, auth_token: AuthToken) -> bool:
        try:
            await self.get_authenticated_user(auth_token)
        except AuthenticationError:
            return False
        return True

    async def invalidate_session(self, auth_token: AuthToken) -> None:
        """Invalidate a session by removing it from the database."""
        await self._collection.delete_one({"auth_token": auth_token})

    async def purge_expired_sessions(self) -> int:
        """Delete every expired session and return how many were removed."""
        result = await self._collection.delete_many({"expires_at": {"$lte": now()}})
        logger.info("expired_sessions_purged", count=result.deleted_count)
        return result.deleted_count

    async def delete_sessions_by_user(self, username: str, session: AsyncClientSession) -> int:
        result = await self._collection.delete_many({"username": username}, session=session)
        return result.deleted_count

    async def rename_user(self, old_username: str, new_username: str, session: AsyncClientSession) -> int:
        result = await self._collection.update_many(
            {"username": old_username}, {"$set": {"username": new_username}}, session=session
        )
        return result.modified_count

    async def count_sessions(self) -> int:
        return await self._collection.count_documents({})
