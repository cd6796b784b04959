"""Per-type behaviour of form fields.

Each field type is a closed variant pairing the answer value shape, the
validation rule for present values, the analytics bucket keys and the
equality used by showIf rules that reference a field of that type. Callers
look the variant up by type tag with ``get_field_kind``.
"""

import math
from typing import Any, Optional

from formbuilder.schemas.form import FieldType, FormField


def is_number(value: Any) -> bool:
    """Whether value is a finite JSON number (bools excluded)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def format_number(value: float) -> str:
    """Canonical bucket key for a numeric answer: ``4`` not ``4.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def scalar_equals(answer: Any, equals: Any) -> bool:
    """Equality for answers whose field type is unknown.

    Arrays never equal anything, and numbers never equal strings or bools.
    """
    if isinstance(answer, (list, tuple, dict)) or isinstance(equals, (list, tuple, dict)):
        return False
    if is_number(answer) or is_number(equals):
        return is_number(answer) and is_number(equals) and answer == equals
    if isinstance(answer, bool) or isinstance(equals, bool):
        return answer is equals
    return answer == equals


class FieldKind:
    """Behaviour shared by every field type."""

    field_type: FieldType

    def is_answered(self, value: Any) -> bool:
        """Missing, null, empty string and empty array all count as unanswered."""
        if value is None:
            return False
        if isinstance(value, str) and value == "":
            return False
        if isinstance(value, (list, tuple)) and len(value) == 0:
            return False
        return True

    def required_message(self, field: FormField) -> str:
        return f"Please answer: {field.label}"

    def value_error(self, field: FormField, value: Any) -> Optional[tuple[str, str]]:
        """Check an answered value.

        Returns:
            (violation kind, message) or None if the value is acceptable
        """
        raise NotImplementedError

    def bucket_keys(self, field: FormField, value: Any) -> list[str]:
        """Analytics bucket keys incremented by an accepted answer."""
        return []

    def matches(self, answer: Any, equals: Any) -> bool:
        """showIf equality for rules referencing a field of this type."""
        raise NotImplementedError


class TextKind(FieldKind):
    field_type = FieldType.TEXT

    def value_error(self, field, value):
        if not isinstance(value, str):
            return "invalid_type", f"Invalid text for: {field.label}"
        return None

    def matches(self, answer, equals):
        return isinstance(answer, str) and isinstance(equals, str) and answer == equals


class SingleChoiceKind(FieldKind):
    field_type = FieldType.SINGLE_CHOICE

    def value_error(self, field, value):
        if not isinstance(value, str):
            return "invalid_type", f"Invalid choice for: {field.label}"
        if value not in (field.options or ()):
            return "invalid_option", f"Choice not in options for: {field.label}"
        return None

    def bucket_keys(self, field, value):
        return [value]

    def matches(self, answer, equals):
        return isinstance(answer, str) and isinstance(equals, str) and answer == equals


class MultiSelectKind(FieldKind):
    field_type = FieldType.MULTI_SELECT

    def required_message(self, field):
        return f"Please select at least one option for: {field.label}"

    def value_error(self, field, value):
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            return "invalid_type", f"Invalid selections for: {field.label}"
        if len(set(value)) != len(value):
            return "invalid_type", f"Duplicate selections for: {field.label}"
        allowed = set(field.options or ())
        if any(v not in allowed for v in value):
            return "invalid_option", f"Selection value not allowed for: {field.label}"
        return None

    def bucket_keys(self, field, value):
        # One increment per distinct selected value
        return list(dict.fromkeys(value))

    def matches(self, answer, equals):
        # Contains semantics: the referenced selection includes ``equals``
        if not isinstance(answer, (list, tuple)) or not isinstance(equals, str):
            return False
        return equals in answer


class RatingKind(FieldKind):
    field_type = FieldType.RATING

    def value_error(self, field, value):
        if not is_number(value):
            return "invalid_type", f"Invalid rating for: {field.label}"
        if value < field.min or value > field.max:
            return (
                "out_of_range",
                f"Rating must be between {field.min} and {field.max} for: {field.label}",
            )
        return None

    def bucket_keys(self, field, value):
        return [format_number(value)]

    def matches(self, answer, equals):
        return is_number(answer) and is_number(equals) and answer == equals


FIELD_KINDS: dict[FieldType, FieldKind] = {
    kind.field_type: kind
    for kind in (TextKind(), SingleChoiceKind(), MultiSelectKind(), RatingKind())
}


def get_field_kind(field_type: FieldType) -> FieldKind:
    """Look up the behaviour for a field type.

    Args:
        field_type: Field type tag

    Returns:
        FieldKind implementation for that type
    """
    return FIELD_KINDS[FieldType(field_type)]
