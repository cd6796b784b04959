"""Conditional field visibility.

This module decides whether a field is presented to a respondent given the
answers collected so far. Evaluation is single-level: a field referencing a
hidden field is governed only by whatever value the answer map holds for
that hidden field. There is no recursion, so cyclic rules cannot loop.
"""

from typing import Any, Mapping, Optional

from formbuilder.schemas.form import Form, FormField
from formbuilder.services.field_types import get_field_kind, scalar_equals
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)


class VisibilityEvaluator:
    """Service for evaluating showIf rules."""

    @staticmethod
    def is_visible(
        field: FormField,
        answers: Mapping[str, Any],
        form: Optional[Form] = None,
    ) -> bool:
        """Evaluate a field's showIf rule against an answer map.

        Fields without a rule are always visible. Otherwise the field is
        visible iff the referenced answer is present and equals the rule's
        value under the referenced field's equality. For a multi_select
        referent that means the selection contains the value.

        Args:
            field: Field to evaluate
            answers: Mapping from field id to answer value
            form: Form containing the field, used to find the referenced
                field's type. Without it, plain scalar equality applies.

        Returns:
            True if the field is shown

        Example:
            >>> rule = ShowIf(field_id="likes", equals="Yes")
            >>> VisibilityEvaluator.is_visible(why_field, {"likes": "Yes"}, form)
            True
        """
        rule = field.show_if
        if rule is None:
            return True

        answer = answers.get(rule.field_id)
        if answer is None:
            return False

        referenced = form.get_field(rule.field_id) if form is not None else None
        if referenced is None:
            return scalar_equals(answer, rule.equals)

        return get_field_kind(referenced.type).matches(answer, rule.equals)

    @staticmethod
    def visible_fields(form: Form, answers: Mapping[str, Any]) -> list[FormField]:
        """Get the fields shown for an answer map, in schema order.

        Args:
            form: Form definition
            answers: Mapping from field id to answer value

        Returns:
            Visible fields in display order
        """
        visible = [
            field for field in form.fields
            if VisibilityEvaluator.is_visible(field, answers, form)
        ]
        logger.debug(f"{len(visible)} of {len(form.fields)} fields visible for form {form.id}")
        return visible
