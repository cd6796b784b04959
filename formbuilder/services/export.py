"""Tabular export of form responses.

One row per response, one column per non-PII field label in schema order.
PII columns are excluded, the same rule the analytics aggregation applies.
Values of fields that were hidden for a response are left blank.
"""

import csv
import io
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional

from formbuilder.schemas.form import Form
from formbuilder.services.field_types import format_number, is_number
from formbuilder.services.visibility import VisibilityEvaluator

BASE_COLUMNS = ["response_id", "created_at"]
MULTI_SELECT_SEPARATOR = "; "


def exported_fields(form: Form):
    """Fields that get a column in the export."""
    return [field for field in form.fields if not field.is_pii]


def format_cell(value: Any) -> str:
    """Render one answer value as a CSV cell."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return MULTI_SELECT_SEPARATOR.join(str(v) for v in value)
    if is_number(value):
        return format_number(value)
    return str(value)


def export_rows(
    form: Form,
    responses: Iterable[tuple[str, Optional[datetime], dict]],
) -> Iterator[list[str]]:
    """Yield the header row followed by one row per response.

    Args:
        form: Form the responses belong to
        responses: (response id, created_at, answers) tuples in order

    Yields:
        Rows of strings
    """
    fields = exported_fields(form)
    yield BASE_COLUMNS + [field.label or field.id for field in fields]

    for response_id, created_at, answers in responses:
        row = [response_id, created_at.isoformat() if created_at else ""]
        for field in fields:
            if VisibilityEvaluator.is_visible(field, answers, form):
                row.append(format_cell(answers.get(field.id)))
            else:
                row.append("")
        yield row


def to_csv(rows: Iterable[list[str]]) -> str:
    """Write rows as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerows(rows)
    return buffer.getvalue()
