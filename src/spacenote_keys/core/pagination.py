from pydantic import BaseModel, Field


class PaginationResult[T](BaseModel):
    """Pagination result wrapper for list operations."""

    items: list[T] = Field(..., description="List of items in current page")
    total: int = Field(..., description="Total number of items across all pages", ge=0)
    limit: int = Field(..., description="Maximum items per page", ge=1)
    offset: int = Field(..., description="Number of items skipped", ge=0)

    @property
    def has_more(self) -> bool:
        """Whether there are more items beyond the current page."""
        return self.offset + len(self.items) < self.total

    @property
    def next_offset(self) -> int | None:
        """Offset of the following page, or None on the last page."""
        return self.offset + len(self.items) if self.has_more else None
