from datetime import datetime

from pydantic import BaseModel, Field

from spacenote_keys.core.db import DocumentModel
from spacenote_keys.utils import now


class Attachment(DocumentModel):
    """File attachment metadata that belongs to a space and optionally to a note.

    Identified by (space_slug, number), indexed unique on that pair. Numbers
    come from their own per-space sequence, independent of note numbers.
    """

    space_slug: str
    number: int  # Sequential per space
    note_number: int | None = None  # Structural link to a note; independent of attachment fields
    uploaded_by: str  # Username of the uploader

    filename: str  # Original filename from user
    size: int  # File size in bytes
    mime_type: str  # Content type (e.g., "image/png")

    created_at: datetime = Field(default_factory=now)


class AttachmentMetadata(BaseModel):
    """Description of an uploaded file. The bytes themselves live elsewhere."""

    filename: str = Field(..., min_length=1, description="Original filename")
    size: int = Field(..., ge=0, description="File size in bytes")
    mime_type: str = Field(..., min_length=1, description="MIME type")
