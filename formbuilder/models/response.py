"""ResponseRecord model for storing accepted form responses.

Responses are immutable once accepted. ``seq`` gives the insertion order
used when analytics are replayed from storage.
"""

from datetime import datetime

from sqlalchemy import Index, String, Integer, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formbuilder.models.database import Base, UTCDateTime


class ResponseRecord(Base):
    """Model for storing one accepted response.

    Attributes:
        seq: Autoincrement primary key (insertion order)
        id: Public UUID of the response
        form_id: Foreign key to forms table
        answers: JSON mapping from field id to answer value
        created_at: When the response was accepted
        form: Relationship to parent FormRecord
    """

    __tablename__ = "form_responses"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        unique=True,
        comment="Public response identifier"
    )

    form_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("forms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Foreign key to forms table"
    )

    answers: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Answer map keyed by field id"
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        comment="When the response was accepted"
    )

    form: Mapped["FormRecord"] = relationship(
        "FormRecord",
        back_populates="responses",
    )

    __table_args__ = (
        # Index for replaying a form's responses in order
        Index("idx_form_seq", "form_id", "seq"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<ResponseRecord(id={self.id}, "
            f"form_id={self.form_id}, "
            f"answers={len(self.answers or {})})>"
        )
