"""Unit tests for editor commands.

Commands never mutate the snapshot they are given and always return a
fully validated form.
"""

import pytest
from pydantic import ValidationError

from formbuilder.schemas.form import FieldType
from formbuilder.services.errors import FormLockedError, SchemaInvalidError
from formbuilder.services.form_commands import (
    AddField,
    CommandBatch,
    DuplicateField,
    RemoveField,
    ReorderField,
    UpdateField,
    apply_commands,
)


def _ids(form):
    return [field.id for field in form.fields]


class TestAddField:
    """Tests for AddField."""

    def test_append_with_defaults(self, draft_form):
        """Test new fields get the editor defaults."""
        form = AddField(type="text", fieldId="new").apply(draft_form)

        field = form.get_field("new")
        assert _ids(form)[-1] == "new"
        assert field.label == "New Question"
        assert field.required is False
        assert len(draft_form.fields) == 5

    def test_choice_field_gets_first_option(self, draft_form):
        form = AddField(type="single_choice", fieldId="c").apply(draft_form)
        assert form.get_field("c").options == ("Option 1",)

    def test_insert_at_index(self, draft_form):
        form = AddField(type="rating", fieldId="r", index=0).apply(draft_form)
        assert _ids(form)[0] == "r"
        assert form.get_field("r").min == 1

    def test_generated_id(self, draft_form):
        """Test an id is generated when none is given."""
        form = AddField(type="text").apply(draft_form)
        assert len(form.fields) == 6
        assert form.fields[-1].id

    def test_duplicate_id_rejected(self, draft_form):
        with pytest.raises(SchemaInvalidError):
            AddField(type="text", fieldId="likes").apply(draft_form)


class TestUpdateField:
    """Tests for UpdateField."""

    def test_update_label(self, draft_form):
        form = UpdateField(fieldId="score", changes={"label": "Overall score"}).apply(draft_form)
        assert form.get_field("score").label == "Overall score"
        assert draft_form.get_field("score").label == "Score"

    def test_snake_case_keys_accepted(self, draft_form):
        """Test snake_case attribute names map onto wire names."""
        form = UpdateField(fieldId="why", changes={"show_if": None}).apply(draft_form)
        assert form.get_field("why").show_if is None

    def test_clearing_pii_drops_implied_requirement(self, draft_form):
        """Test a field stops being required once it no longer carries PII."""
        form = UpdateField(fieldId="email", changes={"isPII": False}).apply(draft_form)
        field = form.get_field("email")
        assert field.is_pii is False
        assert field.required is False

    def test_clearing_pii_keeps_explicit_requirement(self, draft_form):
        form = UpdateField(fieldId="email", changes={"is_pii": False, "required": True}).apply(draft_form)
        assert form.get_field("email").required is True

    def test_other_changes_keep_pii_requirement(self, draft_form):
        form = UpdateField(fieldId="email", changes={"label": "Work email"}).apply(draft_form)
        field = form.get_field("email")
        assert field.is_pii is True
        assert field.required is True

    def test_change_type_drops_stale_attributes(self, draft_form):
        """Test switching to rating drops options and adds bounds."""
        form = UpdateField(fieldId="topics", changes={"type": "rating"}).apply(draft_form)
        field = form.get_field("topics")
        assert field.type == FieldType.RATING
        assert field.options is None
        assert (field.min, field.max) == (1, 5)

    def test_id_change_rejected(self, draft_form):
        with pytest.raises(SchemaInvalidError):
            UpdateField(fieldId="why", changes={"id": "other"}).apply(draft_form)

    def test_invalid_result_rejected(self, draft_form):
        """Test invariants are re-checked after the merge."""
        with pytest.raises(SchemaInvalidError) as exc_info:
            UpdateField(fieldId="score", changes={"min": 9, "max": 2}).apply(draft_form)
        assert any("min" in reason for reason in exc_info.value.reasons)

    def test_unknown_field_rejected(self, draft_form):
        with pytest.raises(SchemaInvalidError):
            UpdateField(fieldId="nope", changes={"label": "x"}).apply(draft_form)


class TestRemoveField:
    """Tests for RemoveField."""

    def test_remove(self, draft_form):
        form = RemoveField(fieldId="score").apply(draft_form)
        assert "score" not in _ids(form)

    def test_dependent_rules_cleared(self, draft_form):
        """Test fields depending on the removed field become unconditional."""
        form = RemoveField(fieldId="likes").apply(draft_form)
        assert form.get_field("why").show_if is None


class TestDuplicateField:
    """Tests for DuplicateField."""

    def test_duplicate_appends_copy(self, draft_form):
        form = DuplicateField(fieldId="likes", newFieldId="likes_2").apply(draft_form)
        copy = form.get_field("likes_2")
        assert _ids(form)[-1] == "likes_2"
        assert copy.label == "Did you like it? (Copy)"
        assert copy.options == ("Yes", "No")
        assert copy.required is True


class TestReorderField:
    """Tests for ReorderField."""

    def test_move_forward(self, draft_form):
        form = ReorderField(fromIndex=0, toIndex=2).apply(draft_form)
        assert _ids(form) == ["why", "topics", "likes", "score", "email"]

    def test_move_backward(self, draft_form):
        form = ReorderField(fromIndex=4, toIndex=0).apply(draft_form)
        assert _ids(form) == ["email", "likes", "why", "topics", "score"]

    def test_same_index_is_noop(self, draft_form):
        assert ReorderField(fromIndex=1, toIndex=1).apply(draft_form) == draft_form

    def test_out_of_bounds_rejected(self, draft_form):
        with pytest.raises(SchemaInvalidError):
            ReorderField(fromIndex=0, toIndex=5).apply(draft_form)


class TestApplyCommands:
    """Tests for batches of commands."""

    def test_published_form_locked(self, published_form):
        """Test every command is refused on a published form."""
        with pytest.raises(FormLockedError):
            apply_commands(published_form, [AddField(type="text")])

    def test_commands_applied_in_order(self, draft_form):
        form = apply_commands(draft_form, [
            AddField(type="text", fieldId="n"),
            ReorderField(fromIndex=5, toIndex=0),
            UpdateField(fieldId="n", changes={"label": "Name", "required": True}),
        ])
        assert form.fields[0].id == "n"
        assert form.fields[0].label == "Name"

    def test_replay_is_deterministic(self, draft_form):
        commands = [DuplicateField(fieldId="why", newFieldId="why_2"), RemoveField(fieldId="topics")]
        assert apply_commands(draft_form, commands) == apply_commands(draft_form, commands)

    def test_batch_parses_discriminated_union(self):
        """Test request bodies select the command by op."""
        batch = CommandBatch.model_validate({"commands": [
            {"op": "add_field", "type": "text", "fieldId": "x"},
            {"op": "reorder_field", "fromIndex": 0, "toIndex": 1},
        ]})
        assert isinstance(batch.commands[0], AddField)
        assert isinstance(batch.commands[1], ReorderField)

    def test_batch_rejects_unknown_op(self):
        with pytest.raises(ValidationError):
            CommandBatch.model_validate({"commands": [{"op": "rename_form"}]})

    def test_batch_requires_commands(self):
        with pytest.raises(ValidationError):
            CommandBatch.model_validate({"commands": []})
