"""Editor commands applied to form snapshots.

Every edit of a draft form is expressed as a command. Applying a command
never mutates the form it is given; it returns a new, fully validated
snapshot. Replaying the same commands against the same snapshot always
yields the same result (given explicit ids for added/duplicated fields).
"""

import uuid
from typing import Annotated, Any, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from formbuilder.schemas.form import CHOICE_TYPES, FieldType, Form, FormField
from formbuilder.services.errors import SchemaInvalidError, reasons_from_validation_error
from formbuilder.services.publication import PublicationService
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

NEW_FIELD_LABEL = "New Question"
NEW_OPTION_LABEL = "Option 1"

# Snake-case attribute names accepted in UpdateField.changes
_ALIASES = {"show_if": "showIf", "is_pii": "isPII"}


def new_field_id() -> str:
    """Generate a field id."""
    return uuid.uuid4().hex


def rebuild_form(form: Form, fields: Sequence[Any]) -> Form:
    """Build a new snapshot of ``form`` with a different field sequence.

    Args:
        form: Current snapshot
        fields: New fields, as FormField objects or raw dicts

    Returns:
        Validated Form

    Raises:
        SchemaInvalidError: If the new field sequence breaks a structural
            invariant (duplicate ids, dangling showIf, ...)
    """
    data = form.model_dump()
    data["fields"] = [
        field.model_dump() if isinstance(field, FormField) else field
        for field in fields
    ]
    try:
        return Form.model_validate(data)
    except ValidationError as e:
        raise SchemaInvalidError(reasons_from_validation_error(e))


def _field_index(form: Form, field_id: str) -> int:
    for index, field in enumerate(form.fields):
        if field.id == field_id:
            return index
    raise SchemaInvalidError([f"Unknown field '{field_id}'"])


class _Command(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def apply(self, form: Form) -> Form:
        PublicationService.ensure_mutable(form)
        return self._apply(form)

    def _apply(self, form: Form) -> Form:
        raise NotImplementedError


class AddField(_Command):
    """Append (or insert) a new field with editor defaults."""
    op: Literal["add_field"] = "add_field"
    type: FieldType
    field_id: Optional[str] = Field(None, alias="fieldId")
    label: str = NEW_FIELD_LABEL
    index: Optional[int] = Field(None, ge=0)

    def _apply(self, form: Form) -> Form:
        field = {
            "id": self.field_id or new_field_id(),
            "label": self.label,
            "type": self.type,
            "required": False,
        }
        if self.type in CHOICE_TYPES:
            field["options"] = [NEW_OPTION_LABEL]

        fields: list[Any] = list(form.fields)
        position = len(fields) if self.index is None else min(self.index, len(fields))
        fields.insert(position, field)
        return rebuild_form(form, fields)


class UpdateField(_Command):
    """Merge attribute changes into one field."""
    op: Literal["update_field"] = "update_field"
    field_id: str = Field(..., alias="fieldId")
    changes: dict[str, Any] = Field(default_factory=dict)

    def _apply(self, form: Form) -> Form:
        index = _field_index(form, self.field_id)
        changes = {_ALIASES.get(key, key): value for key, value in self.changes.items()}
        if changes.get("id", self.field_id) != self.field_id:
            raise SchemaInvalidError(["Field ids cannot be changed"])

        current = form.fields[index]
        merged = current.model_dump(by_alias=True)
        merged.update(changes)
        if current.is_pii and not merged.get("isPII") and "required" not in changes:
            # The flag was implied by PII, not chosen
            merged["required"] = False

        fields: list[Any] = list(form.fields)
        fields[index] = merged
        return rebuild_form(form, fields)


class RemoveField(_Command):
    """Remove a field; rules that depended on it are cleared."""
    op: Literal["remove_field"] = "remove_field"
    field_id: str = Field(..., alias="fieldId")

    def _apply(self, form: Form) -> Form:
        _field_index(form, self.field_id)
        fields = []
        for field in form.fields:
            if field.id == self.field_id:
                continue
            if field.show_if is not None and field.show_if.field_id == self.field_id:
                field = field.model_copy(update={"show_if": None})
            fields.append(field)
        return rebuild_form(form, fields)


class DuplicateField(_Command):
    """Append a copy of a field with a fresh id and a "(Copy)" label."""
    op: Literal["duplicate_field"] = "duplicate_field"
    field_id: str = Field(..., alias="fieldId")
    new_field_id: Optional[str] = Field(None, alias="newFieldId")

    def _apply(self, form: Form) -> Form:
        source = form.fields[_field_index(form, self.field_id)]
        copy = source.model_dump()
        copy["id"] = self.new_field_id or new_field_id()
        copy["label"] = f"{source.label} (Copy)"
        return rebuild_form(form, [*form.fields, copy])


class ReorderField(_Command):
    """Move the field at ``from_index`` so it ends up at ``to_index``."""
    op: Literal["reorder_field"] = "reorder_field"
    from_index: int = Field(..., ge=0, alias="fromIndex")
    to_index: int = Field(..., ge=0, alias="toIndex")

    def _apply(self, form: Form) -> Form:
        count = len(form.fields)
        if self.from_index >= count or self.to_index >= count:
            raise SchemaInvalidError(
                [f"Reorder indexes must be below {count} (got {self.from_index} -> {self.to_index})"]
            )
        if self.from_index == self.to_index:
            return form

        fields = list(form.fields)
        item = fields.pop(self.from_index)
        fields.insert(self.to_index, item)
        return rebuild_form(form, fields)


FormCommand = Annotated[
    Union[AddField, UpdateField, RemoveField, DuplicateField, ReorderField],
    Field(discriminator="op"),
]


class CommandBatch(BaseModel):
    """Request body carrying editor commands, applied in order."""
    commands: list[FormCommand] = Field(..., min_length=1)


def apply_commands(form: Form, commands: Sequence[_Command]) -> Form:
    """Apply commands in order.

    Args:
        form: Starting snapshot
        commands: Commands to apply

    Returns:
        Final snapshot

    Raises:
        FormLockedError: If the form is published
        SchemaInvalidError: If any command produces an invalid form
    """
    PublicationService.ensure_mutable(form)
    for command in commands:
        form = command.apply(form)
    logger.debug(f"Applied {len(commands)} command(s) to form {form.id}")
    return form
