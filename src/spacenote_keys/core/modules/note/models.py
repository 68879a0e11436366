from datetime import datetime

from pydantic import Field

from spacenote_keys.core.db import DocumentModel
from spacenote_keys.core.modules.field.models import FieldValueType
from spacenote_keys.utils import now


class Note(DocumentModel):
    """Note with custom fields stored in a space.

    Identified by (space_slug, number), indexed unique on that pair. The
    number is assigned once at creation and survives space renames.
    """

    space_slug: str
    number: int  # Sequential per space, used in URLs: /spaces/{slug}/notes/{number}
    created_by: str  # Username of the author
    created_at: datetime = Field(default_factory=now)
    edited_at: datetime | None = None  # Last field edit timestamp
    activity_at: datetime = Field(default_factory=now)  # Last edit or any other activity on the note
    fields: dict[str, FieldValueType]  # Values for space-defined fields
