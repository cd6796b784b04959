"""Storage access for forms and responses.

Thin wrapper over the SQLAlchemy session. Unknown ids raise NotFoundError
and storage failures surface as TransportFailureError carrying the original
message; nothing is retried here.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from formbuilder.models.form import FormRecord
from formbuilder.models.response import ResponseRecord
from formbuilder.services.analytics import AcceptedResponse
from formbuilder.services.errors import NotFoundError, TransportFailureError
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)


class FormRepository:
    """Repository for FormRecord and ResponseRecord rows."""

    def __init__(self, db: Session):
        """Initialize repository.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    @contextmanager
    def _storage(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Storage failure while {action}: {e}")
            self.db.rollback()
            raise TransportFailureError(str(e))

    def get_form(self, form_id: str, for_update: bool = False) -> FormRecord:
        """Load a form row.

        Args:
            form_id: Form identifier
            for_update: Lock the row (SELECT ... FOR UPDATE) until commit

        Returns:
            FormRecord

        Raises:
            NotFoundError: If no form has this id
        """
        with self._storage(f"loading form {form_id}"):
            query = select(FormRecord).where(FormRecord.id == form_id)
            if for_update:
                query = query.with_for_update()
            record = self.db.execute(query).scalar_one_or_none()

        if record is None:
            raise NotFoundError(f"Form '{form_id}' not found")
        return record

    def list_forms(self, owner_id: str) -> list[FormRecord]:
        """List an owner's forms, most recently updated first."""
        with self._storage(f"listing forms for {owner_id}"):
            return list(self.db.execute(
                select(FormRecord)
                .where(FormRecord.owner_id == owner_id)
                .order_by(FormRecord.updated_at.desc())
            ).scalars())

    def add_form(self, record: FormRecord) -> FormRecord:
        """Stage a new form row."""
        with self._storage(f"adding form {record.id}"):
            self.db.add(record)
            self.db.flush()
        return record

    def delete_form(self, record: FormRecord) -> None:
        """Stage deletion of a form row and its responses."""
        with self._storage(f"deleting form {record.id}"):
            self.db.delete(record)
            self.db.flush()

    def add_response(
        self,
        response_id: str,
        form_id: str,
        answers: dict[str, Any],
        created_at: datetime,
    ) -> ResponseRecord:
        """Stage a new response row."""
        record = ResponseRecord(
            id=response_id,
            form_id=form_id,
            answers=dict(answers),
            created_at=created_at,
        )
        with self._storage(f"adding response to form {form_id}"):
            self.db.add(record)
            self.db.flush()
        return record

    def list_responses(self, form_id: str) -> list[ResponseRecord]:
        """All responses of a form in acceptance order."""
        with self._storage(f"listing responses for form {form_id}"):
            return list(self.db.execute(
                select(ResponseRecord)
                .where(ResponseRecord.form_id == form_id)
                .order_by(ResponseRecord.seq)
            ).scalars())

    def iter_accepted(self, form_id: str) -> list[AcceptedResponse]:
        """Answers and acceptance times of every response, in acceptance order."""
        return [
            AcceptedResponse(answers=record.answers, received_at=record.created_at)
            for record in self.list_responses(form_id)
        ]

    def get_response(self, response_id: str) -> ResponseRecord:
        """Load one response.

        Raises:
            NotFoundError: If no response has this id
        """
        with self._storage(f"loading response {response_id}"):
            record = self.db.execute(
                select(ResponseRecord).where(ResponseRecord.id == response_id)
            ).scalar_one_or_none()

        if record is None:
            raise NotFoundError(f"Response '{response_id}' not found")
        return record

    def commit(self) -> None:
        """Commit the unit of work."""
        with self._storage("committing"):
            self.db.commit()

    def rollback(self, reason: Optional[str] = None) -> None:
        """Discard staged changes."""
        if reason:
            logger.debug(f"Rolling back: {reason}")
        self.db.rollback()
