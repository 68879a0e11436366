"""Write fences used to serialize payload writers against renames.

A fence is a tiny document whose only purpose is to be written. Two
transactions that both write the same fence cannot both commit, so the
store linearizes them and the loser retries from a fresh snapshot.

Each space has two fences: one for note payloads and one for attachment
records, so note and attachment numbering in the same space never conflict.
"""

SPACE_REGISTRY_FENCE = "spaces"  # Written by anything that adds, renames or removes a space


def space_fence_key(space_slug: str) -> str:
    """Fence written by every note payload write in one space."""
    return f"space:{space_slug}"


def attachment_fence_key(space_slug: str) -> str:
    """Fence written by every attachment record write in one space."""
    return f"space:{space_slug}:attachment"


def space_fence_keys(space_slug: str) -> tuple[str, str]:
    return space_fence_key(space_slug), attachment_fence_key(space_slug)


def user_fence_key(username: str) -> str:
    """Fence written by anything that attaches a new row to one user."""
    return f"user:{username}"
