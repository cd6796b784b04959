"""Pydantic schemas for data validation.

This package contains all Pydantic models for form definitions, respondent
submissions, editor commands and analytics views.
"""

from formbuilder.schemas.form import (
    FieldType,
    FormStatus,
    ShowIf,
    FormField,
    Form,
    FormPayload,
)
from formbuilder.schemas.response import (
    ResponseSubmission,
    ResponseReceipt,
    FieldDistribution,
    AnalyticsView,
    ErrorBody,
)

__all__ = [
    "FieldType",
    "FormStatus",
    "ShowIf",
    "FormField",
    "Form",
    "FormPayload",
    "ResponseSubmission",
    "ResponseReceipt",
    "FieldDistribution",
    "AnalyticsView",
    "ErrorBody",
]
