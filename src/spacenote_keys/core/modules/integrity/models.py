"""Entity kinds and the relationships that can block their deletion."""

from enum import StrEnum


class EntityKind(StrEnum):
    """Entities addressed by natural keys."""

    USER = "user"
    SPACE = "space"
    NOTE = "note"
    ATTACHMENT = "attachment"


class ReferencingKind(StrEnum):
    """Dependents reported by RestrictedError."""

    SPACE_MEMBERSHIP = "space membership(s)"
    NOTE_AUTHOR = "note(s) created by the user"
    ATTACHMENT_UPLOADER = "attachment(s) uploaded by the user"
    USER_FIELD = "user field value(s) in notes"
    USER_FIELD_DEFAULT = "user field default(s) in space schemas"
    ATTACHMENT_FIELD = "attachment field value(s) in notes"
