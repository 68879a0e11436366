"""Per-space numbering against a real store."""

import asyncio

import pytest

from spacenote_keys.core.modules.attachment.models import AttachmentMetadata
from spacenote_keys.errors import FieldValidationError

pytestmark = pytest.mark.asyncio


async def test_concurrent_creates_get_distinct_numbers(core, project):
    notes = await asyncio.gather(
        *(core.services.note.create_note("proj", "john", {"title": f"note {i}"}) for i in range(10))
    )
    numbers = sorted(note.number for note in notes)
    assert numbers == list(range(1, 11))


async def test_numbers_increase_and_are_not_reused(core, project):
    first = await core.services.note.create_note("proj", "john", {"title": "one"})
    second = await core.services.note.create_note("proj", "john", {"title": "two"})
    assert (first.number, second.number) == (1, 2)

    await core.services.note.delete_note("proj", 2)
    third = await core.services.note.create_note("proj", "john", {"title": "three"})
    assert third.number == 3
    assert (await core.services.note.get_note("proj", 1)).fields["title"] == "one"


async def test_spaces_and_counter_types_are_independent(core, project):
    await core.services.space.create_space("other", "Other", "", owner="alice")
    await core.services.note.create_note("proj", "john", {})
    other = await core.services.note.create_note("other", "alice", {})
    attachment = await core.services.attachment.create_attachment(
        "proj", "john", AttachmentMetadata(filename="a.txt", size=1, mime_type="text/plain")
    )
    assert other.number == 1
    assert attachment.number == 1


async def test_failed_validation_consumes_no_number(core, project):
    with pytest.raises(FieldValidationError):
        await core.services.note.create_note("proj", "john", {"assigned_to": "ghost"})
    note = await core.services.note.create_note("proj", "john", {})
    assert note.number == 1


async def test_mixed_concurrent_creates_keep_both_sequences_dense(core, project):
    metadata = AttachmentMetadata(filename="a.txt", size=1, mime_type="text/plain")
    results = await asyncio.gather(
        *(core.services.note.create_note("proj", "john", {"title": f"note {i}"}) for i in range(5)),
        *(core.services.attachment.create_attachment("proj", "alice", metadata) for _ in range(5)),
    )
    notes, attachments = results[:5], results[5:]
    assert sorted(note.number for note in notes) == list(range(1, 6))
    assert sorted(attachment.number for attachment in attachments) == list(range(1, 6))
