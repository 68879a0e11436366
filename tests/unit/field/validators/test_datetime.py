"""Tests for DATETIME field validator."""

from datetime import datetime

import pytest

from spacenote_keys.core.modules.field.models import FieldType, SpaceField
from spacenote_keys.core.modules.field.validators import DateTimeValidator
from spacenote_keys.errors import ValidationError


class TestDateTimeFieldParsing:
    """Tests for parsing datetime field values."""

    @pytest.fixture(autouse=True)
    def setup(self, mock_space):
        """Set up validator and field for parsing tests."""
        self.validator = DateTimeValidator(mock_space)
        self.field = SpaceField(id="event_time", type=FieldType.DATETIME, required=True)

    def test_parse_iso_format(self):
        """Test parsing ISO 8601 datetime format."""
        result = self.validator.parse_value(self.field, "2025-10-20T14:30:00")
        assert result == datetime(2025, 10, 20, 14, 30)  # noqa: DTZ001

    def test_parse_iso_format_with_z_suffix(self):
        """Test parsing ISO format with Z suffix."""
        result = self.validator.parse_value(self.field, "2025-10-20T14:30:00Z")
        assert result == datetime(2025, 10, 20, 14, 30)  # noqa: DTZ001

    def test_parse_space_separated_format(self):
        result = self.validator.parse_value(self.field, "2025-10-20 14:30:00")
        assert result == datetime(2025, 10, 20, 14, 30)  # noqa: DTZ001

    def test_parse_date_only(self):
        """Test parsing date without time sets midnight."""
        result = self.validator.parse_value(self.field, "2024-02-29")
        assert result == datetime(2024, 2, 29)  # noqa: DTZ001

    def test_datetime_instance_passes_through(self):
        value = datetime(2025, 1, 1, 9, 0)  # noqa: DTZ001
        assert self.validator.parse_value(self.field, value) is value

    def test_parse_none_required_field_raises_error(self):
        """Test that None raises error for required field."""
        with pytest.raises(ValidationError, match="Required field cannot be empty"):
            self.validator.parse_value(self.field, None)

    def test_parse_invalid_format_raises_error(self):
        """Test that invalid format raises error."""
        with pytest.raises(ValidationError, match="Invalid datetime format"):
            self.validator.parse_value(self.field, "not-a-date")

    def test_parse_number_raises_error(self):
        with pytest.raises(ValidationError, match="Invalid datetime value"):
            self.validator.parse_value(self.field, 1700000000)
