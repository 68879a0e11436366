"""Auto-incrementing counters for sequential numbering."""

from enum import StrEnum

from spacenote_keys.core.db import DocumentModel


class CounterType(StrEnum):
    """Types of entities that use sequential numbering."""

    NOTE = "note"
    ATTACHMENT = "attachment"


class Counter(DocumentModel):
    """Atomic counter for sequential numbers per space.

    One document per (space_slug, counter_type), indexed unique on that pair.
    """

    space_slug: str
    counter_type: CounterType
    seq: int = 0  # Current value; next number will be seq + 1
