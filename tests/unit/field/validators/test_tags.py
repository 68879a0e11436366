"""Tests for TAGS field validator."""

import pytest

from spacenote_keys.core.modules.field.models import FieldType, SpaceField
from spacenote_keys.core.modules.field.validators import TagsValidator
from spacenote_keys.errors import ValidationError


class TestTagsFieldDefinition:
    """Tests for tags field definition validation."""

    @pytest.fixture(autouse=True)
    def setup(self, mock_space):
        """Set up validator for all tests in this class."""
        self.validator = TagsValidator(mock_space)

    def test_basic_tags_field_definition(self):
        """Test basic tags field definition."""
        field = SpaceField(id="tags", type=FieldType.TAGS, required=False)
        result = self.validator.validate_field_definition(field)
        assert result.id == "tags"
        assert result.type == FieldType.TAGS
        assert result.default is None

    def test_tags_field_with_default(self):
        """Test tags field with default value."""
        field = SpaceField(id="tech_stack", type=FieldType.TAGS, default=["python", "backend"])
        result = self.validator.validate_field_definition(field)
        assert result.default == ["python", "backend"]

    def test_comma_separated_default_is_normalized(self):
        field = SpaceField(id="tech_stack", type=FieldType.TAGS, default="python, backend")
        result = self.validator.validate_field_definition(field)
        assert result.default == ["python", "backend"]

    def test_invalid_field_id_rejected(self):
        field = SpaceField(id="bad id!", type=FieldType.TAGS)
        with pytest.raises(ValidationError, match="Invalid field id"):
            self.validator.validate_field_definition(field)


class TestTagsFieldParsing:
    """Tests for parsing tags field values."""

    @pytest.fixture(autouse=True)
    def setup(self, mock_space):
        """Set up validator and field for parsing tests."""
        self.validator = TagsValidator(mock_space)
        self.field = SpaceField(id="tags", type=FieldType.TAGS, required=False)

    def test_parse_multiple_tags(self):
        """Test parsing multiple comma-separated tags."""
        result = self.validator.parse_value(self.field, "python,javascript,rust")
        assert result == ["python", "javascript", "rust"]

    def test_parse_tags_with_spaces(self):
        """Test that whitespace around tags is trimmed."""
        result = self.validator.parse_value(self.field, "python, javascript , rust")
        assert result == ["python", "javascript", "rust"]

    def test_parse_tags_removes_duplicates(self):
        """Test that duplicate tags are removed while preserving order."""
        result = self.validator.parse_value(self.field, "z,a,z,b,a,c")
        assert result == ["z", "a", "b", "c"]

    def test_parse_list_of_tags(self):
        result = self.validator.parse_value(self.field, [" python", "rust ", "python"])
        assert result == ["python", "rust"]

    def test_parse_empty_values_optional_field(self):
        """Test that None, empty string and empty list clear an optional field."""
        assert self.validator.parse_value(self.field, None) is None
        assert self.validator.parse_value(self.field, "") is None
        assert self.validator.parse_value(self.field, []) is None

    def test_parse_only_commas_returns_empty_list(self):
        """Test that string with only commas returns empty list."""
        assert self.validator.parse_value(self.field, ",,,") == []

    def test_parse_non_string_items_rejected(self):
        with pytest.raises(ValidationError, match="Tags must be"):
            self.validator.parse_value(self.field, ["ok", 5])


class TestTagsFieldRequired:
    """Tests for required tags field validation."""

    @pytest.fixture(autouse=True)
    def setup(self, mock_space):
        self.validator = TagsValidator(mock_space)
        self.field = SpaceField(id="categories", type=FieldType.TAGS, required=True)

    def test_required_field_rejects_empty_list(self):
        with pytest.raises(ValidationError, match="Required field cannot be empty"):
            self.validator.parse_value(self.field, [])

    def test_required_field_without_default_has_no_missing_value(self):
        with pytest.raises(ValidationError, match="Required field has no value"):
            self.validator.missing_value(self.field)

    def test_required_field_missing_uses_default(self):
        field = SpaceField(id="categories", type=FieldType.TAGS, required=True, default=["inbox"])
        assert self.validator.missing_value(field) == ["inbox"]
