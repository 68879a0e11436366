"""Field validator implementations using ABC pattern.

Validators only check the shape of a value. Whether a referenced user or
attachment actually exists is resolved by FieldService against the store.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from spacenote_keys.core.modules.field.models import FieldOption, FieldType, FieldValueType, SpaceField, SpecialValue
from spacenote_keys.core.modules.identifier.validators import validate_sequence_number, validate_username
from spacenote_keys.core.modules.space.models import Space
from spacenote_keys.errors import ValidationError

DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%SZ",
]


class FieldValidator(ABC):
    """Abstract base class for field validators."""

    def __init__(self, space: Space, current_username: str | None = None) -> None:
        """Initialize validator with space context.

        Args:
            space: The space this validator is operating on
            current_username: The acting user, used to resolve '$me' (optional)
        """
        self.space = space
        self.current_username = current_username

    def missing_value(self, field: SpaceField) -> FieldValueType:
        """Value for a field absent from a new note's payload.

        Raises:
            ValidationError: If the field is required and has no default
        """
        if field.default is not None:
            return field.default
        if field.required:
            raise ValidationError("Required field has no value")
        return None

    def parse_value(self, field: SpaceField, value: object) -> FieldValueType:
        """Check a supplied value and return it in normalized form.

        None and the empty string clear an optional field.

        Raises:
            ValidationError: If the value does not conform to the field type
        """
        if value is None or value == "":
            if field.required:
                raise ValidationError("Required field cannot be empty")
            return None
        return self._parse_present_value(field, value)

    @abstractmethod
    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        """Type-specific check of a non-empty value."""

    def validate_field_definition(self, field: SpaceField) -> SpaceField:
        """Validate and normalize a field definition for storage.

        Template method that validates field id first, then delegates
        to subclass for type-specific validation, then normalizes the default.

        Raises:
            ValidationError: If the field definition is invalid
        """
        if not field.id or not field.id.replace("_", "").replace("-", "").isalnum():
            raise ValidationError(f"Invalid field id: {field.id}")

        field = self._validate_type_specific_field_definition(field)

        if field.default is not None:
            field.default = self._normalize_default(field)
        return field

    def _normalize_default(self, field: SpaceField) -> FieldValueType:
        try:
            return self._parse_present_value(field, field.default)
        except ValidationError as e:
            raise ValidationError(f"Invalid default for field '{field.id}': {e}") from e

    def _validate_type_specific_field_definition(self, field: SpaceField) -> SpaceField:
        return field


class StringValidator(FieldValidator):
    """Validator for string fields."""

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if not isinstance(value, str):
            raise ValidationError(f"Expected text, got {type(value).__name__}")
        return value


class MarkdownValidator(StringValidator):
    """Validator for markdown fields."""


class BooleanValidator(FieldValidator):
    """Validator for boolean fields."""

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            if value.lower() in ("true", "1", "yes", "on"):
                return True
            if value.lower() in ("false", "0", "no", "off"):
                return False
        raise ValidationError(f"Invalid boolean value: {value}")


class NumericValidator(FieldValidator):
    """Shared min/max handling for numeric fields."""

    def _validate_type_specific_field_definition(self, field: SpaceField) -> SpaceField:
        for opt in (FieldOption.MIN, FieldOption.MAX):
            if opt in field.options:
                val = field.options[opt]
                if isinstance(val, bool) or not isinstance(val, (int, float)):
                    raise ValidationError(f"{opt} must be numeric")
        return field

    def _validate_numeric_range(self, field: SpaceField, value: float) -> None:
        """Validate numeric value is within min/max range."""
        if FieldOption.MIN in field.options:
            min_val = field.options[FieldOption.MIN]
            if isinstance(min_val, (int, float)) and value < min_val:
                raise ValidationError(f"Value is below minimum: {value} < {min_val}")

        if FieldOption.MAX in field.options:
            max_val = field.options[FieldOption.MAX]
            if isinstance(max_val, (int, float)) and value > max_val:
                raise ValidationError(f"Value is above maximum: {value} > {max_val}")


class IntValidator(NumericValidator):
    """Validator for integer fields."""

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if isinstance(value, bool):
            raise ValidationError(f"Invalid integer value: {value}")
        if isinstance(value, str):
            try:
                value = int(value)
            except ValueError as e:
                raise ValidationError(f"Invalid integer value: {value}") from e
        if not isinstance(value, int):
            raise ValidationError(f"Invalid integer value: {value}")

        self._validate_numeric_range(field, value)
        return value


class FloatValidator(NumericValidator):
    """Validator for float fields."""

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if isinstance(value, bool):
            raise ValidationError(f"Invalid float value: {value}")
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError as e:
                raise ValidationError(f"Invalid float value: {value}") from e
        if not isinstance(value, (int, float)):
            raise ValidationError(f"Invalid float value: {value}")

        float_value = float(value)
        self._validate_numeric_range(field, float_value)
        return float_value


class SelectValidator(FieldValidator):
    """Validator for select fields."""

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if not isinstance(value, str):
            raise ValidationError(f"Expected text, got {type(value).__name__}")
        allowed_values = field.options.get(FieldOption.VALUES)
        if not isinstance(allowed_values, list):
            raise ValidationError("Invalid field configuration: VALUES must be a list")
        if value not in allowed_values:
            raise ValidationError(f"Invalid choice '{value}'. Allowed values: {', '.join(allowed_values)}")
        return value

    def _validate_type_specific_field_definition(self, field: SpaceField) -> SpaceField:
        if FieldOption.VALUES not in field.options:
            raise ValidationError("Select fields must have 'values' option")
        values = field.options[FieldOption.VALUES]
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValidationError("Select 'values' must be a list of strings")
        return field


class TagsValidator(FieldValidator):
    """Validator for tags (multi-value) fields."""

    def parse_value(self, field: SpaceField, value: object) -> FieldValueType:
        if value == []:
            return super().parse_value(field, None)
        return super().parse_value(field, value)

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if isinstance(value, str):
            tags = [tag.strip() for tag in value.split(",") if tag.strip()]
        elif isinstance(value, list) and all(isinstance(tag, str) for tag in value):
            tags = [tag.strip() for tag in value if tag.strip()]
        else:
            raise ValidationError("Tags must be a list of strings or a comma-separated string")
        return list(dict.fromkeys(tags))


class DateTimeValidator(FieldValidator):
    """Validator for datetime fields."""

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            raise ValidationError(f"Invalid datetime value: {value}")

        for fmt in DATETIME_FORMATS:
            try:
                return datetime.strptime(value, fmt)  # noqa: DTZ007
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"Invalid datetime format: {value}") from None


class UserValidator(FieldValidator):
    """Validator for user reference fields.

    Values are usernames. '$me' stands for the acting user.
    """

    def missing_value(self, field: SpaceField) -> FieldValueType:
        if field.default == SpecialValue.ME:
            return self._resolve_me()
        return super().missing_value(field)

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        if value == SpecialValue.ME:
            return self._resolve_me()
        return validate_username(value)

    def _normalize_default(self, field: SpaceField) -> FieldValueType:
        # $me is stored as is and resolved per write
        if field.default == SpecialValue.ME:
            return SpecialValue.ME.value
        return super()._normalize_default(field)

    def _resolve_me(self) -> str:
        if not self.current_username:
            raise ValidationError(f"Cannot use '{SpecialValue.ME}' without a logged-in user context")
        return self.current_username


class AttachmentValidator(FieldValidator):
    """Validator for attachment reference fields.

    Values are attachment numbers within the note's own space.
    """

    def _parse_present_value(self, field: SpaceField, value: object) -> FieldValueType:
        return validate_sequence_number(value)

    def _validate_type_specific_field_definition(self, field: SpaceField) -> SpaceField:
        if field.default is not None:
            raise ValidationError("Attachment fields cannot have a default value")
        return field


class ImageValidator(AttachmentValidator):
    """Validator for image attachment fields."""


# Map field types to validator classes
_VALIDATOR_CLASSES: dict[FieldType, type[FieldValidator]] = {
    FieldType.STRING: StringValidator,
    FieldType.MARKDOWN: MarkdownValidator,
    FieldType.USER: UserValidator,
    FieldType.BOOLEAN: BooleanValidator,
    FieldType.INT: IntValidator,
    FieldType.FLOAT: FloatValidator,
    FieldType.SELECT: SelectValidator,
    FieldType.TAGS: TagsValidator,
    FieldType.DATETIME: DateTimeValidator,
    FieldType.ATTACHMENT: AttachmentValidator,
    FieldType.IMAGE: ImageValidator,
}


def create_validator(field_type: FieldType, space: Space, current_username: str | None = None) -> FieldValidator:
    """Create a validator instance for a given field type with context.

    Raises:
        ValidationError: If the field type is unknown
    """
    if field_type not in _VALIDATOR_CLASSES:
        raise ValidationError(f"Unknown field type: {field_type}")

    validator_class = _VALIDATOR_CLASSES[field_type]
    return validator_class(space, current_username)
