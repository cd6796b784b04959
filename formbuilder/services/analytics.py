"""Incremental analytics aggregation.

This module folds accepted responses into a per-form analytics state one
response at a time. The state is never the source of truth: replaying every
accepted response through ``apply`` (which is what ``recompute_from_scratch``
does) must reproduce it exactly.

Rating means are derived from an exact running sum and answered count per
field rather than being updated in place, so the incremental and replayed
results are identical and do not drift.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from formbuilder.schemas.form import FieldType, Form
from formbuilder.schemas.response import AnalyticsView, FieldDistribution, SkippedField, TrendPoint
from formbuilder.services.field_types import get_field_kind
from formbuilder.services.visibility import VisibilityEvaluator
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

TREND_DAYS = 7


class AcceptedResponse(NamedTuple):
    """Stored answers with the time they were accepted."""
    answers: Mapping[str, Any]
    received_at: datetime


def day_key(moment: datetime) -> str:
    """UTC calendar day of a timestamp, as ``YYYY-MM-DD``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date().isoformat()


class RatingTotals(BaseModel):
    """Running sum and answered count for one rating field."""
    model_config = ConfigDict(frozen=True)

    total: float = 0
    n: int = 0

    @property
    def mean(self) -> Optional[float]:
        if self.n == 0:
            return None
        return self.total / self.n

    def add(self, value: float) -> "RatingTotals":
        return RatingTotals(total=self.total + value, n=self.n + 1)


class AnalyticsState(BaseModel):
    """Aggregated state for one form.

    Attributes:
        form_id: Form the state belongs to
        count: Number of accepted responses
        buckets: field_id -> bucket key -> count (choice and rating fields)
        rating_totals: field_id -> running sum and count (rating fields)
        answered: field_id -> number of responses that answered the field
            while it was visible
        daily_counts: UTC day -> responses accepted that day
    """
    model_config = ConfigDict(frozen=True)

    form_id: Optional[str] = None
    count: int = 0
    buckets: dict[str, dict[str, int]] = Field(default_factory=dict)
    rating_totals: dict[str, RatingTotals] = Field(default_factory=dict)
    answered: dict[str, int] = Field(default_factory=dict)
    daily_counts: dict[str, int] = Field(default_factory=dict)

    def average_rating(self) -> dict[str, float]:
        """Mean rating per rating field that has at least one answer."""
        return {
            field_id: totals.mean
            for field_id, totals in self.rating_totals.items()
            if totals.n > 0
        }


class AnalyticsAggregator:
    """Service folding responses into AnalyticsState."""

    @staticmethod
    def empty(form: Form) -> AnalyticsState:
        """State of a form with no responses."""
        return AnalyticsState(form_id=form.id)

    @staticmethod
    def apply(
        form: Form,
        prior: Optional[AnalyticsState],
        answers: Mapping[str, Any],
        received_at: Optional[datetime] = None,
    ) -> AnalyticsState:
        """Fold one accepted response into the analytics state.

        Visibility is re-derived from the answers, so values submitted for
        hidden fields are treated as unanswered. PII fields are skipped.
        Text fields are counted as answered but not bucketed. Values that do
        not fit their field type are ignored.

        Args:
            form: Published form the response was accepted against
            prior: State before this response (None for a fresh form)
            answers: Accepted answer map
            received_at: Acceptance time, counted towards the daily trend

        Returns:
            New state; ``prior`` is left untouched
        """
        prior = prior or AnalyticsAggregator.empty(form)
        visible_ids = {
            field.id for field in VisibilityEvaluator.visible_fields(form, answers)
        }

        buckets = dict(prior.buckets)
        rating_totals = dict(prior.rating_totals)
        answered = dict(prior.answered)
        daily_counts = dict(prior.daily_counts)
        if received_at is not None:
            day = day_key(received_at)
            daily_counts[day] = daily_counts.get(day, 0) + 1

        for field in form.fields:
            if field.is_pii or field.id not in visible_ids:
                continue

            kind = get_field_kind(field.type)
            value = answers.get(field.id)
            if not kind.is_answered(value) or kind.value_error(field, value) is not None:
                continue

            answered[field.id] = answered.get(field.id, 0) + 1

            keys = kind.bucket_keys(field, value)
            if keys:
                field_buckets = dict(buckets.get(field.id, {}))
                for key in keys:
                    field_buckets[key] = field_buckets.get(key, 0) + 1
                buckets[field.id] = field_buckets

            if field.type == FieldType.RATING:
                totals = rating_totals.get(field.id, RatingTotals())
                rating_totals[field.id] = totals.add(value)

        return AnalyticsState(
            form_id=form.id,
            count=prior.count + 1,
            buckets=buckets,
            rating_totals=rating_totals,
            answered=answered,
            daily_counts=daily_counts,
        )

    @staticmethod
    def recompute_from_scratch(
        form: Form,
        responses: Iterable[Union[AcceptedResponse, Mapping[str, Any]]],
    ) -> AnalyticsState:
        """Rebuild the state by replaying accepted responses in order.

        Args:
            form: Published form
            responses: Every accepted response, either as an
                AcceptedResponse or as a bare answer map (which leaves the
                daily trend untouched)

        Returns:
            State identical to applying each response in turn
        """
        state = AnalyticsAggregator.empty(form)
        for response in responses:
            if isinstance(response, AcceptedResponse):
                state = AnalyticsAggregator.apply(
                    form, state, response.answers, response.received_at
                )
            else:
                state = AnalyticsAggregator.apply(form, state, response)
        logger.debug(
            f"Recomputed analytics for form {form.id} from {state.count} responses",
            extra={"form_id": form.id},
        )
        return state

    @staticmethod
    def to_view(
        form: Form,
        state: AnalyticsState,
        today: Optional[date] = None,
    ) -> AnalyticsView:
        """Build the dashboard view model.

        Args:
            form: Form the state belongs to
            state: Aggregated state
            today: Last day of the response trend (defaults to today in UTC)

        Returns:
            AnalyticsView with count, fieldBreakdown and averageRating plus
            answered counts, most common answers, skipped fields, the
            seven-day response trend and the completion rate
        """
        field_breakdown = {}
        most_common = {}
        for field in form.fields:
            field_buckets = state.buckets.get(field.id)
            if field.is_pii or not field_buckets:
                continue
            field_breakdown[field.id] = FieldDistribution(buckets=dict(field_buckets))
            most_common[field.id] = _most_common_key(field, field_buckets)

        skipped_fields = []
        for field in form.fields:
            if field.is_pii:
                continue
            skip_count = state.count - state.answered.get(field.id, 0)
            skipped_fields.append(SkippedField(
                field_id=field.id,
                field_name=field.label,
                skip_count=skip_count,
                skip_rate=skip_count / state.count * 100 if state.count else 0.0,
            ))

        return AnalyticsView(
            count=state.count,
            field_breakdown=field_breakdown,
            average_rating=state.average_rating(),
            answered_count={
                field_id: n for field_id, n in state.answered.items()
                if not _is_pii(form, field_id)
            },
            most_common_answers=most_common,
            skip_rates={skipped.field_id: skipped.skip_rate for skipped in skipped_fields},
            skipped_fields=skipped_fields,
            response_trends=_response_trend(state, today),
            completion_rate=_completion_rate(form, state),
        )


def _is_pii(form: Form, field_id: str) -> bool:
    field = form.get_field(field_id)
    return field is not None and field.is_pii


def _response_trend(state: AnalyticsState, today: Optional[date]) -> list[TrendPoint]:
    """Daily response counts for the last TREND_DAYS days, oldest first."""
    today = today or datetime.now(timezone.utc).date()
    days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]
    return [
        TrendPoint(date=day.isoformat(), count=state.daily_counts.get(day.isoformat(), 0))
        for day in days
    ]


def _completion_rate(form: Form, state: AnalyticsState) -> float:
    """Answered share of all non-PII field slots, as a percentage."""
    tracked = [field.id for field in form.fields if not field.is_pii]
    if not tracked or state.count == 0:
        return 0.0
    answered = sum(state.answered.get(field_id, 0) for field_id in tracked)
    return answered / (len(tracked) * state.count) * 100


def _most_common_key(field, field_buckets: Mapping[str, int]) -> str:
    """Highest bucket; ties go to the earlier option or lower rating."""
    if field.type == FieldType.RATING:
        order = sorted(field_buckets, key=float)
    else:
        options = list(field.options or ())
        order = sorted(
            field_buckets,
            key=lambda key: (options.index(key) if key in options else len(options), key),
        )
    return max(order, key=lambda key: (field_buckets[key], -order.index(key)))
