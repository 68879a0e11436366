"""Session management models."""

from datetime import datetime
from enum import StrEnum
from typing import NewType

from pydantic import BaseModel, Field

from spacenote_keys.core.db import DocumentModel
from spacenote_keys.utils import now

AuthToken = NewType("AuthToken", str)


class Session(DocumentModel):
    """User authentication session.

    Indexed on auth_token - unique, username, last_active_at, and expires_at
    (TTL, so the store purges expired sessions on its own schedule).
    """

    auth_token: str
    username: str
    created_at: datetime = Field(default_factory=now)
    expires_at: datetime
    last_active_at: datetime = Field(default_factory=now)

    def is_expired(self, at: datetime | None = None) -> bool:
        return (at or now()) >= self.expires_at


class SessionStatus(StrEnum):
    VALID = "valid"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


class SessionCheck(BaseModel):
    """Outcome of validating an auth token."""

    status: SessionStatus = Field(..., description="Whether the token grants access")
    username: str | None = Field(None, description="Session owner, set only when valid")

    @property
    def is_valid(self) -> bool:
        return self.status == SessionStatus.VALID
