"""Tests for SELECT field validator."""

import pytest

from spacenote_keys.core.modules.field.models import FieldOption, FieldType, SpaceField
from spacenote_keys.core.modules.field.validators import SelectValidator
from spacenote_keys.errors import ValidationError


class TestSelectFieldDefinition:
    """Tests for select field definition validation."""

    @pytest.fixture(autouse=True)
    def setup(self, mock_space):
        """Set up validator for all tests in this class."""
        self.validator = SelectValidator(mock_space)

    def test_values_option_is_required(self):
        field = SpaceField(id="status", type=FieldType.SELECT)
        with pytest.raises(ValidationError, match="must have 'values' option"):
            self.validator.validate_field_definition(field)

    def test_values_must_be_strings(self):
        field = SpaceField(id="status", type=FieldType.SELECT, options={FieldOption.VALUES: 3})
        with pytest.raises(ValidationError, match="must be a list of strings"):
            self.validator.validate_field_definition(field)

    def test_default_must_be_an_allowed_value(self):
        """Test that a default outside the allowed values is rejected."""
        field = SpaceField(
            id="status", type=FieldType.SELECT, options={FieldOption.VALUES: ["new", "done"]}, default="archived"
        )
        with pytest.raises(ValidationError, match="Invalid default for field 'status'"):
            self.validator.validate_field_definition(field)

    def test_valid_default_kept(self):
        field = SpaceField(
            id="status", type=FieldType.SELECT, options={FieldOption.VALUES: ["new", "done"]}, default="new"
        )
        assert self.validator.validate_field_definition(field).default == "new"


class TestSelectFieldParsing:
    """Tests for parsing select field values."""

    @pytest.fixture(autouse=True)
    def setup(self, mock_space):
        self.validator = SelectValidator(mock_space)
        self.field = SpaceField(
            id="priority", type=FieldType.SELECT, options={FieldOption.VALUES: ["low", "medium", "high"]}
        )

    def test_valid_choice(self):
        assert self.validator.parse_value(self.field, "medium") == "medium"

    def test_invalid_choice_rejected(self):
        """Test that an invalid choice names the allowed values."""
        with pytest.raises(ValidationError, match="Allowed values: low, medium, high"):
            self.validator.parse_value(self.field, "urgent")

    def test_optional_field_can_be_empty(self):
        assert self.validator.parse_value(self.field, "") is None
