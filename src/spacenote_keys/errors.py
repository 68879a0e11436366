from abc import ABC
from dataclasses import dataclass


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class InvalidIdentifierError(ValidationError):
    """Raised when a username, slug, auth token or sequence number is malformed.

    Always raised before the store is touched.
    """

    def __init__(self, kind: str, value: object, reason: str) -> None:
        super().__init__(f"Invalid {kind} '{value}': {reason}")
        self.kind = kind
        self.value = value
        self.reason = reason


class ConflictError(UserError):
    """Raised when a natural key is already taken."""


@dataclass(frozen=True)
class FieldError:
    """A single problem with one field of a note payload."""

    field_id: str
    reason: str


class FieldValidationError(ValidationError):
    """Raised when a field payload fails schema or reference checks.

    Carries every problem found, not just the first one.
    """

    def __init__(self, errors: list[FieldError]) -> None:
        details = "; ".join(f"{e.field_id}: {e.reason}" for e in errors)
        super().__init__(f"Invalid fields: {details}")
        self.errors = errors

    @property
    def field_ids(self) -> list[str]:
        return [e.field_id for e in self.errors]


class RestrictedError(UserError):
    """Raised when a delete is blocked by existing dependents."""

    def __init__(self, entity: str, referencing_kind: str, count: int) -> None:
        super().__init__(f"Cannot delete {entity}: referenced by {count} {referencing_kind}")
        self.entity = entity
        self.referencing_kind = referencing_kind
        self.count = count


class TransactionAbortedError(UserError):
    """Raised when a transaction hit a conflict or deadline and was rolled back.

    Nothing was committed, so the whole operation is safe to retry.
    """

    def __init__(self, message: str = "Operation aborted, please retry") -> None:
        super().__init__(message)
