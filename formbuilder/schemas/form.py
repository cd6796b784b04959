"""Pydantic schemas for form definitions.

This module defines the structure and structural invariants of a form and
its fields. Every form snapshot, draft or published, must conform to these
schemas. Publish-time completeness rules (titles, options, required fields)
live in the publication service so that drafts may be incomplete.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)


class FieldType(str, Enum):
    """Valid field types in form definitions."""
    TEXT = "text"
    SINGLE_CHOICE = "single_choice"
    MULTI_SELECT = "multi_select"
    RATING = "rating"


CHOICE_TYPES = frozenset({FieldType.SINGLE_CHOICE, FieldType.MULTI_SELECT})

DEFAULT_RATING_MIN = 1
DEFAULT_RATING_MAX = 5


class FormStatus(str, Enum):
    """Lifecycle states of a form."""
    DRAFT = "draft"
    PUBLISHED = "published"


class ShowIf(BaseModel):
    """Single-level conditional visibility rule.

    The owning field is shown only when the answer to ``field_id`` equals
    ``equals`` under the referenced field's equality rule.

    Attributes:
        field_id: ID of the field whose answer controls visibility
        equals: Value the referenced answer must match (string or number)
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    field_id: str = Field(..., min_length=1, alias="fieldId")
    equals: Union[StrictInt, StrictFloat, StrictStr]


class FormField(BaseModel):
    """A single question in a form.

    Attributes:
        id: Identifier unique within the form
        label: Question text shown to respondents
        type: Field type (text/single_choice/multi_select/rating)
        required: Whether a visible field must be answered
        options: Ordered choices (choice fields only)
        min: Lowest accepted rating (rating fields only)
        max: Highest accepted rating (rating fields only)
        show_if: Optional conditional visibility rule
        is_pii: Field carries personally identifying information (text only)
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, description="Field identifier")
    label: str = Field(default="", description="Question text")
    type: FieldType = Field(..., description="Field type")
    required: bool = Field(default=False)
    options: Optional[tuple[str, ...]] = Field(None, description="Choice options")
    min: Optional[int] = Field(None, description="Minimum rating")
    max: Optional[int] = Field(None, description="Maximum rating")
    show_if: Optional[ShowIf] = Field(None, alias="showIf")
    is_pii: bool = Field(default=False, alias="isPII")

    @model_validator(mode="before")
    @classmethod
    def normalize_type_specific_attributes(cls, data: Any) -> Any:
        """Drop attributes that do not apply to the field type.

        PII fields are always required; options exist only on choice
        fields; min/max exist only on rating fields and default to 1/5.
        """
        if not isinstance(data, dict):
            return data

        data = dict(data)
        field_type = data.get("type")
        if isinstance(field_type, FieldType):
            field_type = field_type.value

        if field_type in {t.value for t in CHOICE_TYPES}:
            if data.get("options") is None:
                data["options"] = ()
        else:
            data.pop("options", None)

        if field_type == FieldType.RATING.value:
            if data.get("min") is None:
                data["min"] = DEFAULT_RATING_MIN
            if data.get("max") is None:
                data["max"] = DEFAULT_RATING_MAX
        else:
            data.pop("min", None)
            data.pop("max", None)

        pii = data.get("isPII", data.get("is_pii", False))
        if pii:
            data["required"] = True

        return data

    @field_validator("label")
    @classmethod
    def strip_label(cls, v: str) -> str:
        """Labels are compared and displayed without surrounding whitespace."""
        return v.strip()

    @model_validator(mode="after")
    def validate_field_requirements(self):
        """Validate type-specific structural invariants."""
        if self.type == FieldType.RATING and self.min > self.max:
            raise ValueError(
                f"Field '{self.id}': rating min ({self.min}) must be <= max ({self.max})"
            )

        if self.is_pii and self.type != FieldType.TEXT:
            raise ValueError(f"Field '{self.id}': only text fields can be marked as PII")

        if self.show_if is not None and self.show_if.field_id == self.id:
            raise ValueError(f"Field '{self.id}': showIf cannot reference itself")

        return self

    @property
    def is_choice(self) -> bool:
        """Whether this field offers a list of options."""
        return self.type in CHOICE_TYPES


class Form(BaseModel):
    """Complete form definition snapshot.

    Field order is meaningful: it is both the display order and the order
    in which responses are validated.

    Attributes:
        id: Server-assigned identifier (None before the form is stored)
        title: Form title
        status: Lifecycle state
        fields: Ordered fields
        owner_id: Owner of the form
        created_at: Creation timestamp
        updated_at: Last modification timestamp
        published_at: When the form was published
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    title: str = Field(default="")
    status: FormStatus = Field(default=FormStatus.DRAFT)
    fields: tuple[FormField, ...] = Field(default=())
    owner_id: Optional[str] = Field(None, alias="ownerId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    published_at: Optional[datetime] = Field(None, alias="publishedAt")

    @model_validator(mode="after")
    def validate_form_structure(self):
        """Validate field ids and showIf references."""
        field_ids = [field.id for field in self.fields]
        if len(field_ids) != len(set(field_ids)):
            duplicates = sorted({fid for fid in field_ids if field_ids.count(fid) > 1})
            raise ValueError(f"Duplicate field IDs found: {duplicates}")

        by_id = {field.id: field for field in self.fields}
        for field in self.fields:
            if field.show_if is None:
                continue

            referenced = by_id.get(field.show_if.field_id)
            if referenced is None:
                raise ValueError(
                    f"Field '{field.id}': showIf references unknown field "
                    f"'{field.show_if.field_id}'"
                )

            equals = field.show_if.equals
            if referenced.type == FieldType.RATING:
                if isinstance(equals, str):
                    raise ValueError(
                        f"Field '{field.id}': showIf on rating field "
                        f"'{referenced.id}' must compare against a number"
                    )
            elif not isinstance(equals, str):
                raise ValueError(
                    f"Field '{field.id}': showIf on {referenced.type.value} field "
                    f"'{referenced.id}' must compare against a string"
                )

        return self

    def get_field(self, field_id: str) -> Optional[FormField]:
        """Get field by ID.

        Args:
            field_id: Field identifier

        Returns:
            FormField if found, None otherwise
        """
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    @property
    def is_published(self) -> bool:
        """Whether the schema is locked."""
        return self.status == FormStatus.PUBLISHED

    def to_api(self) -> dict:
        """Serialize with the camelCase JSON names used on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FormPayload(BaseModel):
    """Request body for creating or replacing a form."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(default="")
    status: FormStatus = Field(default=FormStatus.DRAFT)
    fields: list[dict[str, Any]] = Field(default_factory=list)
