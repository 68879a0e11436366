from datetime import datetime

from pydantic import BaseModel, Field

from spacenote_keys.core.db import DocumentModel
from spacenote_keys.utils import now


class User(DocumentModel):
    """User domain model with credentials.

    Indexed on username - unique. The username is the primary key and is
    embedded in sessions, memberships, notes, attachments and user fields.
    """

    username: str
    password_hash: str  # bcrypt hash
    created_at: datetime = Field(default_factory=now)


class UserView(BaseModel):
    """User account information (API representation)."""

    username: str = Field(..., description="Username")
    created_at: datetime = Field(..., description="Registration timestamp")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(username=user.username, created_at=user.created_at)
