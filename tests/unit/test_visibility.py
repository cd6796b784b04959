"""Unit tests for conditional field visibility."""

import pytest

from formbuilder.schemas.form import Form, FormField
from formbuilder.services.visibility import VisibilityEvaluator


class TestIsVisible:
    """Tests for VisibilityEvaluator.is_visible."""

    def test_field_without_rule_always_visible(self, draft_form):
        """Test unconditional fields are shown even with no answers."""
        for field in draft_form.fields:
            if field.show_if is None:
                assert VisibilityEvaluator.is_visible(field, {}, draft_form)

    def test_rule_matches(self, draft_form):
        """Test a matching answer shows the field."""
        why = draft_form.get_field("why")
        assert VisibilityEvaluator.is_visible(why, {"likes": "Yes"}, draft_form)

    def test_rule_does_not_match(self, draft_form):
        """Test a different answer hides the field."""
        why = draft_form.get_field("why")
        assert not VisibilityEvaluator.is_visible(why, {"likes": "No"}, draft_form)

    @pytest.mark.parametrize("answers", [{}, {"likes": None}])
    def test_missing_referent_hides_field(self, draft_form, answers):
        """Test an absent or null referenced answer hides the field."""
        why = draft_form.get_field("why")
        assert not VisibilityEvaluator.is_visible(why, answers, draft_form)

    def test_number_never_equals_string(self):
        """Test numeric rules do not match string answers."""
        form = Form(fields=[
            {"id": "score", "label": "Score", "type": "rating"},
            {"id": "why", "label": "Why", "type": "text", "showIf": {"fieldId": "score", "equals": 1}},
        ])
        why = form.get_field("why")
        assert VisibilityEvaluator.is_visible(why, {"score": 1}, form)
        assert not VisibilityEvaluator.is_visible(why, {"score": "1"}, form)

    def test_multi_select_referent_uses_contains(self):
        """Test a multi_select referent shows the field when the value is selected."""
        form = Form(fields=[
            {"id": "topics", "label": "Topics", "type": "multi_select", "options": ["A", "B"]},
            {"id": "more", "label": "More on B", "type": "text", "showIf": {"fieldId": "topics", "equals": "B"}},
        ])
        more = form.get_field("more")
        assert VisibilityEvaluator.is_visible(more, {"topics": ["A", "B"]}, form)
        assert not VisibilityEvaluator.is_visible(more, {"topics": ["A"]}, form)

    def test_without_form_uses_scalar_equality(self):
        """Test evaluation works on a bare field."""
        field = FormField(id="x", label="X", type="text", showIf={"fieldId": "y", "equals": "go"})
        assert VisibilityEvaluator.is_visible(field, {"y": "go"})
        assert not VisibilityEvaluator.is_visible(field, {"y": ["go"]})

    def test_single_level_evaluation(self):
        """Test a field chained to a hidden field reads the raw stored answer.

        C depends on B, and B is hidden. C's visibility is decided only by
        the value stored for B in the answer map.
        """
        form = Form(fields=[
            {"id": "a", "label": "A", "type": "single_choice", "options": ["Yes", "No"]},
            {"id": "b", "label": "B", "type": "single_choice", "options": ["Yes", "No"],
             "showIf": {"fieldId": "a", "equals": "Yes"}},
            {"id": "c", "label": "C", "type": "text", "showIf": {"fieldId": "b", "equals": "Yes"}},
        ])
        answers = {"a": "No", "b": "Yes"}
        assert not VisibilityEvaluator.is_visible(form.get_field("b"), answers, form)
        assert VisibilityEvaluator.is_visible(form.get_field("c"), answers, form)

    def test_cyclic_rules_terminate(self):
        """Test cyclic rules evaluate without recursion."""
        form = Form(fields=[
            {"id": "a", "label": "A", "type": "text", "showIf": {"fieldId": "b", "equals": "x"}},
            {"id": "b", "label": "B", "type": "text", "showIf": {"fieldId": "a", "equals": "x"}},
        ])
        assert VisibilityEvaluator.visible_fields(form, {}) == []
        assert len(VisibilityEvaluator.visible_fields(form, {"a": "x", "b": "x"})) == 2


class TestVisibleFields:
    """Tests for VisibilityEvaluator.visible_fields."""

    def test_schema_order_preserved(self, draft_form):
        """Test visible fields keep display order."""
        visible = VisibilityEvaluator.visible_fields(draft_form, {"likes": "Yes"})
        assert [f.id for f in visible] == ["likes", "why", "topics", "score", "email"]

    def test_hidden_fields_dropped(self, draft_form):
        """Test hidden fields are excluded."""
        visible = VisibilityEvaluator.visible_fields(draft_form, {"likes": "No"})
        assert "why" not in [f.id for f in visible]
