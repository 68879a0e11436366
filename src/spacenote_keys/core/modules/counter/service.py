from typing import Any

from pymongo import ReturnDocument
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.counter.models import Counter, CounterType


class CounterService(Service):
    """Per-space sequence allocator for notes and attachments.

    The increment runs in the transaction that inserts the numbered entity, so
    the number and the entity commit together. Two transactions incrementing
    the same counter conflict and one of them is retried, which linearizes
    allocations per (space_slug, counter_type) without blocking other spaces
    or the other counter type.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("counters")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("space_slug", 1), ("counter_type", 1)], unique=True)

    async def get_next_sequence(self, space_slug: str, counter_type: CounterType, session: AsyncClientSession) -> int:
        """Atomically increment and return the next sequence number for a space and type."""
        result = await self._collection.find_one_and_update(
            {"space_slug": space_slug, "counter_type": counter_type},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return int(result["seq"])

    async def get_current_sequence(
        self, space_slug: str, counter_type: CounterType, session: AsyncClientSession | None = None
    ) -> int:
        """Get the current sequence number without incrementing."""
        doc = await self._collection.find_one({"space_slug": space_slug, "counter_type": counter_type}, session=session)
        if doc is None:
            return 0
        return Counter.model_validate(doc).seq

    async def rename_space(self, old_slug: str, new_slug: str, session: AsyncClientSession) -> int:
        """Move counters to a new slug; the sequence values are kept."""
        result = await self._collection.update_many(
            {"space_slug": old_slug}, {"$set": {"space_slug": new_slug}}, session=session
        )
        return result.modified_count

    async def delete_counters_by_space(self, space_slug: str, session: AsyncClientSession) -> int:
        """Delete all counters for a space and return count of deleted counters."""
        result = await self._collection.delete_many({"space_slug": space_slug}, session=session)
        return result.deleted_count
