"""Error kinds surfaced by the form builder core.

Every failure the core reports is one of these exceptions. Routes translate
them into structured JSON bodies; nothing here is retried.
"""

from typing import Any, Optional


class FormBuilderError(Exception):
    """Base class for errors reported to API callers."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def details(self) -> Optional[Any]:
        return None

    def to_dict(self) -> dict:
        """Structured payload for the HTTP layer."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class SchemaInvalidError(FormBuilderError):
    """Raised when a form definition is invalid or cannot be published.

    Attributes:
        reasons: Human-readable reasons, in field order where applicable
    """

    code = "schema_invalid"
    status_code = 422

    def __init__(self, reasons: list[str]):
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons) or "Form is invalid")

    @property
    def details(self) -> dict:
        return {"reasons": self.reasons}


def reasons_from_validation_error(exc) -> list[str]:
    """Flatten a pydantic ValidationError into readable reasons.

    Args:
        exc: pydantic.ValidationError raised while building a form

    Returns:
        One message per error, prefixed with its location when it has one
    """
    reasons = []
    for error in exc.errors():
        message = error["msg"].removeprefix("Value error, ")
        location = ".".join(str(part) for part in error.get("loc", ()))
        reasons.append(f"{location}: {message}" if location else message)
    return reasons


class ResponseInvalidError(FormBuilderError):
    """Raised when a submission fails validation.

    Attributes:
        violation: The first violation found, in field order
    """

    code = "response_invalid"
    status_code = 422

    def __init__(self, violation):
        self.violation = violation
        super().__init__(violation.message)

    @property
    def details(self) -> dict:
        return self.violation.to_dict()


class FormLockedError(FormBuilderError):
    """Raised when a published form is edited."""

    code = "form_locked"
    status_code = 409

    def __init__(self, form_id: Optional[str] = None):
        self.form_id = form_id
        super().__init__("Form is published and can no longer be edited")

    @property
    def details(self) -> dict:
        return {"formId": self.form_id}


class NotFoundError(FormBuilderError):
    """Raised when a form or response id is unknown."""

    code = "not_found"
    status_code = 404


class TransportFailureError(FormBuilderError):
    """Raised when the storage layer fails; carries the original message."""

    code = "transport_failure"
    status_code = 503
