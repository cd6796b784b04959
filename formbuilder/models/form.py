"""FormRecord model for storing form definitions.

The field list is stored as JSON in the shape of the form API. The record
converts to and from the immutable Form schema; all rules about what may be
stored live in the services, not here.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Index, String, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formbuilder.models.database import Base, UTCDateTime
from formbuilder.schemas.form import Form


class FormRecord(Base):
    """Model for storing a form definition.

    Attributes:
        id: UUID primary key
        owner_id: Owner of the form
        title: Form title
        status: draft or published
        fields: JSON list of field definitions, in display order
        created_at: When the form was created
        updated_at: Last modification timestamp
        published_at: When the form was published (NULL for drafts)
        responses: Relationship to accepted responses
    """

    __tablename__ = "forms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    owner_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Owner of the form"
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="",
        comment="Form title"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="draft",
        comment="draft or published"
    )
    fields: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered field definitions"
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        comment="When the form was created"
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        comment="Last update timestamp"
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="When the form was published (NULL for drafts)"
    )

    responses: Mapped[list["ResponseRecord"]] = relationship(
        "ResponseRecord",
        back_populates="form",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        # Index for listing an owner's forms by recency
        Index("idx_owner_updated", "owner_id", "updated_at"),
    )

    def to_schema(self) -> Form:
        """Convert to the Form schema."""
        return Form.model_validate({
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "fields": self.fields or [],
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "published_at": self.published_at,
        })

    def update_from(self, form: Form) -> None:
        """Copy editable state from a Form snapshot.

        A new list is assigned to ``fields`` so SQLAlchemy notices the change.
        """
        self.title = form.title
        self.status = form.status.value
        self.fields = [
            field.model_dump(mode="json", by_alias=True, exclude_none=True)
            for field in form.fields
        ]
        if form.updated_at is not None:
            self.updated_at = form.updated_at
        self.published_at = form.published_at

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<FormRecord(id={self.id}, "
            f"status={self.status}, "
            f"fields={len(self.fields or [])})>"
        )
