from enum import StrEnum

from pydantic import BaseModel, Field


class RenameKind(StrEnum):
    """Natural keys that can be renamed."""

    USERNAME = "username"
    SPACE_SLUG = "space_slug"


class RenameResult(BaseModel):
    """What a committed rename touched."""

    kind: RenameKind
    old_value: str
    new_value: str
    updated: dict[str, int] = Field(default_factory=dict, description="Rows rewritten per dependent relationship")
