"""Locating natural keys embedded in note payloads.

Embedded references are found by field type, never by value alone: a string
field that happens to hold a username is not a reference to that user.
"""

from typing import Any

from spacenote_keys.core.modules.space.models import Space


def field_path(field_id: str) -> str:
    return f"fields.{field_id}"


def user_reference_filter(space: Space, username: str) -> dict[str, Any] | None:
    """Filter for notes of the space whose user fields name username.

    Returns None when the space has no user fields.
    """
    paths = [field_path(f.id) for f in space.user_fields]
    if not paths:
        return None
    return {"space_slug": space.slug, "$or": [{path: username} for path in paths]}


def attachment_reference_filter(space: Space, number: int) -> dict[str, Any] | None:
    """Filter for notes of the space whose attachment fields point at number.

    Returns None when the space has no attachment fields.
    """
    paths = [field_path(f.id) for f in space.attachment_fields]
    if not paths:
        return None
    return {"space_slug": space.slug, "$or": [{path: number} for path in paths]}


def user_reference_updates(space: Space, old_username: str, new_username: str) -> list[tuple[dict[str, Any], dict[str, Any]]]:
    """Build one (filter, update) pair per user field of the space.

    Each pair rewrites that field from old_username to new_username and
    leaves every other field of the note alone.
    """
    updates = []
    for field in space.user_fields:
        path = field_path(field.id)
        updates.append(({"space_slug": space.slug, path: old_username}, {"$set": {path: new_username}}))
    return updates


def rewrite_user_defaults(space: Space, old_username: str, new_username: str) -> Space | None:
    """Copy of the space with user field defaults renamed, or None if nothing changed."""
    if not any(f.default == old_username for f in space.user_fields):
        return None
    updated = space.model_copy(deep=True)
    for field in updated.user_fields:
        if field.default == old_username:
            field.default = new_username
    return updated


def count_user_defaults(space: Space, username: str) -> int:
    return sum(1 for f in space.user_fields if f.default == username)
