"""Field system for custom note schemas."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

# Type for field option values (VALUES, MIN, MAX)
FieldOptionValueType = list[str] | int | float

# Type for actual field values in notes
FieldValueType = str | bool | list[str] | int | float | datetime | None


class FieldType(StrEnum):
    """Available field types for space schemas."""

    STRING = "string"
    MARKDOWN = "markdown"
    BOOLEAN = "boolean"
    SELECT = "select"  # Single select from predefined values
    TAGS = "tags"  # Free-form tags
    USER = "user"  # Reference to a user by username
    DATETIME = "datetime"
    INT = "int"
    FLOAT = "float"
    ATTACHMENT = "attachment"  # Reference to an attachment number in the same space
    IMAGE = "image"  # Attachment reference restricted to image/* attachments


# Field types whose values embed natural keys of other entities
USER_REFERENCE_TYPES = frozenset({FieldType.USER})
ATTACHMENT_REFERENCE_TYPES = frozenset({FieldType.ATTACHMENT, FieldType.IMAGE})


class FieldOption(StrEnum):
    """Configuration options for field types."""

    VALUES = "values"  # list[str] for SELECT
    MIN = "min"  # int/float for numeric types
    MAX = "max"  # int/float for numeric types


class SpecialValue(StrEnum):
    """Special values for fields."""

    ME = "$me"  # Represents the acting user (for user fields)


class SpaceField(BaseModel):
    """Field definition in a space schema."""

    id: str = Field(..., description="Field identifier (must be unique within space)")
    name: str = Field("", description="Display name, defaults to the identifier")
    type: FieldType = Field(..., description="Field data type")
    required: bool = Field(False, description="Whether this field is required")
    options: dict[FieldOption, FieldOptionValueType] = Field(
        default_factory=dict,
        description="Field type-specific options (e.g., 'values' for select, 'min'/'max' for numeric types)",
    )
    default: FieldValueType = Field(None, description="Default value for this field")

    @property
    def is_user_reference(self) -> bool:
        return self.type in USER_REFERENCE_TYPES

    @property
    def is_attachment_reference(self) -> bool:
        return self.type in ATTACHMENT_REFERENCE_TYPES
