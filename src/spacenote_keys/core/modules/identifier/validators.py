"""Syntax checks for natural identifiers.

Every write path runs its identifiers through here before touching the store,
so a malformed key never reaches a query.
"""

import secrets

from spacenote_keys.core.modules.identifier.models import (
    AUTH_TOKEN_BYTES,
    AUTH_TOKEN_RE,
    SLUG_MAX_LENGTH,
    SLUG_RE,
    USERNAME_MAX_LENGTH,
    USERNAME_RE,
    IdentifierKind,
)
from spacenote_keys.errors import InvalidIdentifierError


def validate_username(raw: object) -> str:
    if not isinstance(raw, str):
        raise InvalidIdentifierError(IdentifierKind.USERNAME, raw, "must be a string")
    value = raw.strip()
    if not value:
        raise InvalidIdentifierError(IdentifierKind.USERNAME, raw, "cannot be empty")
    if len(value) > USERNAME_MAX_LENGTH:
        raise InvalidIdentifierError(IdentifierKind.USERNAME, raw, f"longer than {USERNAME_MAX_LENGTH} characters")
    if not USERNAME_RE.fullmatch(value):
        raise InvalidIdentifierError(
            IdentifierKind.USERNAME, raw, "only lowercase letters, digits, hyphens and underscores are allowed"
        )
    return value


def validate_slug(raw: object) -> str:
    if not isinstance(raw, str):
        raise InvalidIdentifierError(IdentifierKind.SLUG, raw, "must be a string")
    value = raw.strip()
    if not value:
        raise InvalidIdentifierError(IdentifierKind.SLUG, raw, "cannot be empty")
    if len(value) > SLUG_MAX_LENGTH:
        raise InvalidIdentifierError(IdentifierKind.SLUG, raw, f"longer than {SLUG_MAX_LENGTH} characters")
    if not SLUG_RE.fullmatch(value):
        raise InvalidIdentifierError(
            IdentifierKind.SLUG, raw, "use lowercase letters and digits in segments joined by single hyphens"
        )
    return value


def validate_auth_token(raw: object) -> str:
    if not isinstance(raw, str) or not AUTH_TOKEN_RE.fullmatch(raw):
        raise InvalidIdentifierError(IdentifierKind.AUTH_TOKEN, raw, "not a valid token")
    return raw


def validate_sequence_number(raw: object) -> int:
    """Accept a positive int or a string of digits."""
    # bool is an int subclass, True must not become note #1
    if isinstance(raw, bool):
        raise InvalidIdentifierError(IdentifierKind.SEQUENCE_NUMBER, raw, "must be an integer")
    if isinstance(raw, str):
        if not raw.isdigit():
            raise InvalidIdentifierError(IdentifierKind.SEQUENCE_NUMBER, raw, "must be an integer")
        raw = int(raw)
    if not isinstance(raw, int):
        raise InvalidIdentifierError(IdentifierKind.SEQUENCE_NUMBER, raw, "must be an integer")
    if raw < 1:
        raise InvalidIdentifierError(IdentifierKind.SEQUENCE_NUMBER, raw, "must be positive")
    return raw


def validate_identifier(kind: IdentifierKind, raw: object) -> str | int:
    """Validate and normalize an identifier of the given kind.

    Raises:
        InvalidIdentifierError: If the value does not match the kind's syntax
    """
    match kind:
        case IdentifierKind.USERNAME:
            return validate_username(raw)
        case IdentifierKind.SLUG:
            return validate_slug(raw)
        case IdentifierKind.AUTH_TOKEN:
            return validate_auth_token(raw)
        case IdentifierKind.SEQUENCE_NUMBER:
            return validate_sequence_number(raw)
    raise InvalidIdentifierError(str(kind), raw, "unknown identifier kind")


def generate_auth_token() -> str:
    return secrets.token_hex(AUTH_TOKEN_BYTES)
