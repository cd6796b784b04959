"""Pydantic schemas for respondent submissions and analytics views."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ResponseSubmission(BaseModel):
    """Request body for submitting answers to a published form.

    Attributes:
        answers: Mapping from field id to answer value. Value shape depends
            on the field type: string for text/single_choice, list of strings
            for multi_select, number for rating.
    """
    answers: dict[str, Any] = Field(default_factory=dict)


class ResponseReceipt(BaseModel):
    """Acknowledgement returned for an accepted response."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    form_id: str = Field(..., alias="formId")
    created_at: datetime = Field(..., alias="createdAt")


class FieldDistribution(BaseModel):
    """Bucket counts for one field."""
    buckets: dict[str, int] = Field(default_factory=dict)


class TrendPoint(BaseModel):
    """Responses accepted on one UTC day (``YYYY-MM-DD``)."""
    date: str
    count: int = 0


class SkippedField(BaseModel):
    """How often a non-PII field was left unanswered."""
    model_config = ConfigDict(populate_by_name=True)

    field_id: str = Field(..., alias="fieldId")
    field_name: str = Field(..., alias="fieldName")
    skip_count: int = Field(0, alias="skipCount")
    skip_rate: float = Field(0.0, alias="skipRate")


class AnalyticsView(BaseModel):
    """Aggregated analytics served to dashboards.

    ``count``, ``fieldBreakdown`` and ``averageRating`` are the core view;
    the remaining keys are derived conveniences for the dashboard.
    """
    model_config = ConfigDict(populate_by_name=True)

    count: int = 0
    field_breakdown: dict[str, FieldDistribution] = Field(
        default_factory=dict, alias="fieldBreakdown"
    )
    average_rating: dict[str, float] = Field(default_factory=dict, alias="averageRating")
    answered_count: dict[str, int] = Field(default_factory=dict, alias="answeredCount")
    most_common_answers: dict[str, str] = Field(
        default_factory=dict, alias="mostCommonAnswers"
    )
    skip_rates: dict[str, float] = Field(default_factory=dict, alias="skipRates")
    skipped_fields: list[SkippedField] = Field(default_factory=list, alias="skippedFields")
    response_trends: list[TrendPoint] = Field(default_factory=list, alias="responseTrends")
    completion_rate: float = Field(0.0, alias="completionRate")


class ErrorBody(BaseModel):
    """Structured error payload returned by the API."""
    error: str
    message: str
    details: Optional[Any] = None
