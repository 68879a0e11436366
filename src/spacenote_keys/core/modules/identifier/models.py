"""Natural key kinds and their syntax."""

import re
from enum import StrEnum

USERNAME_RE = re.compile(r"^[a-z0-9_-]+$")
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
AUTH_TOKEN_RE = re.compile(r"^[0-9a-f]{64}$")

USERNAME_MAX_LENGTH = 50
SLUG_MAX_LENGTH = 100
AUTH_TOKEN_BYTES = 32  # Hex encoded, so tokens are 64 characters long


class IdentifierKind(StrEnum):
    """Kinds of natural identifiers used as primary keys."""

    USERNAME = "username"
    SLUG = "slug"
    AUTH_TOKEN = "auth_token"
    SEQUENCE_NUMBER = "sequence_number"
