"""Response validation against a form schema.

This module validates a respondent's answer map against the published form:
visible required fields must be answered and present values must fit their
field type. Validation is fail-fast in schema order, so the reported
violation is deterministic for identical input.
"""

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional

from formbuilder.schemas.form import Form
from formbuilder.services.errors import ResponseInvalidError
from formbuilder.services.field_types import get_field_kind
from formbuilder.services.visibility import VisibilityEvaluator
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Violation:
    """First problem found in a submission.

    Attributes:
        field_id: ID of the offending field
        label: Label of the offending field
        kind: required, out_of_range, invalid_type or invalid_option
        message: Human-readable message naming the field
    """
    field_id: str
    label: str
    kind: str
    message: str

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "fieldId": data["field_id"],
            "label": data["label"],
            "kind": data["kind"],
            "message": data["message"],
        }


class ResponseValidator:
    """Service for validating submissions against a form."""

    @staticmethod
    def validate(form: Form, answers: Mapping[str, Any]) -> Optional[Violation]:
        """Validate an answer map.

        Iterates fields in schema order. Hidden fields are never checked,
        even when required. Answers for unknown field ids are ignored.

        Args:
            form: Form definition as published at submission time
            answers: Mapping from field id to answer value

        Returns:
            The first Violation, or None if the submission is acceptable

        Example:
            >>> ResponseValidator.validate(form, {"likes": "No"})  # follow-up hidden
            None
            >>> ResponseValidator.validate(form, {"likes": "Yes"}).label
            'Why?'
        """
        for field in form.fields:
            if not VisibilityEvaluator.is_visible(field, answers, form):
                continue

            kind = get_field_kind(field.type)
            value = answers.get(field.id)

            if not kind.is_answered(value):
                if field.required:
                    return Violation(
                        field_id=field.id,
                        label=field.label,
                        kind="required",
                        message=kind.required_message(field),
                    )
                continue

            problem = kind.value_error(field, value)
            if problem is not None:
                violation_kind, message = problem
                return Violation(
                    field_id=field.id,
                    label=field.label,
                    kind=violation_kind,
                    message=message,
                )

        return None

    @staticmethod
    def validate_or_raise(form: Form, answers: Mapping[str, Any]) -> None:
        """Validate an answer map, raising on the first violation.

        Raises:
            ResponseInvalidError: If any visible field fails validation
        """
        violation = ResponseValidator.validate(form, answers)
        if violation is not None:
            logger.info(
                f"Rejected response for form {form.id}: {violation.kind} on {violation.field_id}",
                extra={"form_id": form.id},
            )
            raise ResponseInvalidError(violation)
