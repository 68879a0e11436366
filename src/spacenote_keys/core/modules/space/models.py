"""Space models for organizing notes."""

from datetime import datetime

from pydantic import Field

from spacenote_keys.core.db import DocumentModel
from spacenote_keys.core.modules.field.models import SpaceField
from spacenote_keys.utils import now


class Space(DocumentModel):
    """Container for notes with custom schemas.

    Indexed on slug - unique. The slug is the primary key and is embedded in
    memberships, counters, notes and attachments.
    """

    slug: str  # URL-friendly unique ID
    title: str
    description: str = ""
    fields: list[SpaceField] = Field(default_factory=list)  # Field definitions (order matters)
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    def get_field(self, id: str) -> SpaceField | None:
        """Get field definition by id."""
        for field in self.fields:
            if field.id == id:
                return field
        return None

    @property
    def user_fields(self) -> list[SpaceField]:
        return [field for field in self.fields if field.is_user_reference]

    @property
    def attachment_fields(self) -> list[SpaceField]:
        return [field for field in self.fields if field.is_attachment_reference]


class SpaceMember(DocumentModel):
    """Membership of a user in a space.

    Indexed on (space_slug, username) - unique, and on username alone. Removed
    together with its space; blocks deletion of its user.
    """

    space_slug: str
    username: str
    added_at: datetime = Field(default_factory=now)
