"""Tests for natural identifier syntax checks."""

import pytest

from spacenote_keys.core.modules.identifier.models import IdentifierKind
from spacenote_keys.core.modules.identifier.validators import (
    generate_auth_token,
    validate_auth_token,
    validate_identifier,
    validate_sequence_number,
    validate_slug,
    validate_username,
)
from spacenote_keys.errors import InvalidIdentifierError, ValidationError


class TestUsername:
    @pytest.mark.parametrize("raw", ["john", "jane_doe", "dev-2", "a"])
    def test_valid(self, raw):
        assert validate_username(raw) == raw

    def test_surrounding_whitespace_stripped(self):
        assert validate_username("  john ") == "john"

    @pytest.mark.parametrize("raw", ["", "   ", "John", "john smith", "jöhn", "john!", "x" * 51])
    def test_invalid(self, raw):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            validate_username(raw)
        assert exc_info.value.kind == IdentifierKind.USERNAME

    def test_non_string_rejected(self):
        with pytest.raises(InvalidIdentifierError, match="must be a string"):
            validate_username(None)

    def test_is_a_validation_error(self):
        """Callers that handle ValidationError also handle malformed identifiers."""
        with pytest.raises(ValidationError):
            validate_username("")


class TestSlug:
    @pytest.mark.parametrize("raw", ["proj", "project", "my-space-2", "x" * 100])
    def test_valid(self, raw):
        assert validate_slug(raw) == raw

    @pytest.mark.parametrize("raw", ["", "-proj", "proj-", "my--space", "my_space", "Proj", "x" * 101])
    def test_invalid(self, raw):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            validate_slug(raw)
        assert exc_info.value.value == raw


class TestAuthToken:
    def test_generated_token_is_valid(self):
        token = generate_auth_token()
        assert len(token) == 64
        assert validate_auth_token(token) == token

    def test_tokens_are_unique(self):
        assert len({generate_auth_token() for _ in range(100)}) == 100

    @pytest.mark.parametrize("raw", ["", "abc", "G" * 64, "a" * 63, "A" * 64, 123])
    def test_invalid(self, raw):
        with pytest.raises(InvalidIdentifierError):
            validate_auth_token(raw)


class TestSequenceNumber:
    def test_int_and_digit_string(self):
        assert validate_sequence_number(1) == 1
        assert validate_sequence_number("42") == 42

    @pytest.mark.parametrize("raw", [0, -1, "0", "-1", "1.0", "", 2.0, True, False, None])
    def test_invalid(self, raw):
        with pytest.raises(InvalidIdentifierError):
            validate_sequence_number(raw)


class TestValidateIdentifier:
    @pytest.mark.parametrize(
        ("kind", "raw", "expected"),
        [
            (IdentifierKind.USERNAME, " jane ", "jane"),
            (IdentifierKind.SLUG, "project", "project"),
            (IdentifierKind.SEQUENCE_NUMBER, "7", 7),
        ],
    )
    def test_dispatch(self, kind, raw, expected):
        assert validate_identifier(kind, raw) == expected

    def test_error_message_names_kind_and_value(self):
        with pytest.raises(InvalidIdentifierError, match="Invalid slug 'Bad Slug'"):
            validate_identifier(IdentifierKind.SLUG, "Bad Slug")
