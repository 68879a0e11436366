"""Tests for ATTACHMENT and IMAGE field validators."""

import pytest

from spacenote_keys.core.modules.field.models import FieldType, SpaceField
from spacenote_keys.core.modules.field.validators import AttachmentValidator, ImageValidator, create_validator
from spacenote_keys.errors import InvalidIdentifierError, ValidationError


class TestAttachmentField:
    @pytest.fixture(autouse=True)
    def setup(self, mock_space):
        self.validator = AttachmentValidator(mock_space)
        self.field = SpaceField(id="thumbnail", type=FieldType.ATTACHMENT)

    def test_parse_number(self):
        assert self.validator.parse_value(self.field, 999) == 999

    def test_parse_digit_string(self):
        assert self.validator.parse_value(self.field, "12") == 12

    @pytest.mark.parametrize("raw", [0, -3, "abc", 1.5, True])
    def test_malformed_numbers_rejected(self, raw):
        with pytest.raises(InvalidIdentifierError):
            self.validator.parse_value(self.field, raw)

    def test_default_not_allowed(self):
        field = SpaceField(id="thumbnail", type=FieldType.ATTACHMENT, default=1)
        with pytest.raises(ValidationError, match="cannot have a default value"):
            self.validator.validate_field_definition(field)


class TestCreateValidator:
    def test_image_fields_use_image_validator(self, mock_space):
        validator = create_validator(FieldType.IMAGE, mock_space)
        assert isinstance(validator, ImageValidator)
        assert isinstance(validator, AttachmentValidator)

    def test_current_username_passed_through(self, mock_space):
        validator = create_validator(FieldType.USER, mock_space, "alice")
        assert validator.current_username == "alice"
