"""Form service orchestrating the form lifecycle.

This module coordinates the repository, publication state machine, editor
commands, response validation, analytics store and notifier. Every rule that
rejects an edit runs before anything is written, and every mutation of a
form row happens under a row lock so that a committed publish transition is
seen by edits already in flight.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.orm import Session

from formbuilder.models.form import FormRecord
from formbuilder.schemas.form import Form, FormPayload, FormStatus
from formbuilder.schemas.response import AnalyticsView, ResponseReceipt
from formbuilder.services.analytics import AnalyticsAggregator
from formbuilder.services.analytics_store import AnalyticsStore, get_analytics_store
from formbuilder.services.errors import (
    FormBuilderError,
    NotFoundError,
    SchemaInvalidError,
    reasons_from_validation_error,
)
from formbuilder.services.export import export_rows, to_csv
from formbuilder.services.form_commands import apply_commands
from formbuilder.services.form_repository import FormRepository
from formbuilder.services.notifier import AnalyticsNotifier, get_notifier
from formbuilder.services.publication import PublicationService
from formbuilder.services.response_validator import ResponseValidator
from formbuilder.services.token_signer import Credentials
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def build_form(payload: FormPayload, **identity: Any) -> Form:
    """Build a draft Form from a request payload.

    Args:
        payload: Title and fields from the request
        **identity: id, owner_id and timestamps to carry over

    Returns:
        Draft Form (the requested status is applied by the caller)

    Raises:
        SchemaInvalidError: If the fields break a structural invariant
    """
    try:
        return Form(
            title=payload.title,
            status=FormStatus.DRAFT,
            fields=payload.fields,
            **identity,
        )
    except ValidationError as e:
        raise SchemaInvalidError(reasons_from_validation_error(e))


class FormService:
    """Per-request service bound to a database session."""

    def __init__(
        self,
        db: Session,
        store: Optional[AnalyticsStore] = None,
        notifier: Optional[AnalyticsNotifier] = None,
    ):
        """Initialize form service.

        Args:
            db: SQLAlchemy database session
            store: Analytics store (defaults to the global store)
            notifier: Live update notifier (defaults to the global notifier)
        """
        self.repository = FormRepository(db)
        self.store = store or get_analytics_store()
        self.notifier = notifier or get_notifier()

    def _owned_record(
        self,
        credentials: Credentials,
        form_id: str,
        for_update: bool = False,
    ) -> FormRecord:
        record = self.repository.get_form(form_id, for_update=for_update)
        if record.owner_id != credentials.owner_id:
            # Forms of other owners are reported as missing
            raise NotFoundError(f"Form '{form_id}' not found")
        return record

    def _save(self, record: FormRecord, form: Form) -> Form:
        record.update_from(form)
        self.repository.commit()
        return record.to_schema()

    # Authoring

    def create_form(self, credentials: Credentials, payload: FormPayload) -> Form:
        """Create a form, publishing it immediately if requested.

        Raises:
            SchemaInvalidError: If the fields are invalid, or publication
                was requested and the form is not publishable
        """
        now = _now()
        form = build_form(
            payload,
            id=str(uuid.uuid4()),
            owner_id=credentials.owner_id,
            created_at=now,
            updated_at=now,
        )
        if payload.status == FormStatus.PUBLISHED:
            form = PublicationService.publish(form, now)

        record = FormRecord(
            id=form.id,
            owner_id=credentials.owner_id,
            created_at=now,
            updated_at=now,
        )
        record.update_from(form)
        self.repository.add_form(record)
        self.repository.commit()

        logger.info(
            f"Created form {form.id} ({form.status.value}, {len(form.fields)} fields)",
            extra={"form_id": form.id, "owner_id": credentials.owner_id},
        )
        return record.to_schema()

    def create_from_template(self, credentials: Credentials, template: Form) -> Form:
        """Create a draft form from a loaded template."""
        payload = FormPayload(
            title=template.title,
            fields=[field.model_dump(by_alias=True) for field in template.fields],
        )
        return self.create_form(credentials, payload)

    def get_form(self, credentials: Credentials, form_id: str) -> Form:
        """Get one of the owner's forms."""
        return self._owned_record(credentials, form_id).to_schema()

    def list_forms(self, credentials: Credentials) -> list[Form]:
        """List the owner's forms, most recently updated first."""
        return [record.to_schema() for record in self.repository.list_forms(credentials.owner_id)]

    def update_form(self, credentials: Credentials, form_id: str, payload: FormPayload) -> Form:
        """Replace a draft form's title and fields.

        Raises:
            FormLockedError: If the form is published (nothing is written)
            SchemaInvalidError: If the new definition is invalid
        """
        record = self._owned_record(credentials, form_id, for_update=True)
        current = record.to_schema()
        try:
            PublicationService.ensure_mutable(current)
            form = build_form(
                payload,
                id=current.id,
                owner_id=current.owner_id,
                created_at=current.created_at,
                updated_at=_now(),
            )
            if payload.status == FormStatus.PUBLISHED:
                form = PublicationService.publish(form)
        except FormBuilderError:
            self.repository.rollback("form update rejected")
            raise

        logger.info(f"Updated form {form_id}", extra={"form_id": form_id})
        return self._save(record, form)

    def apply_commands(self, credentials: Credentials, form_id: str, commands: Sequence) -> Form:
        """Apply editor commands to a draft form.

        Raises:
            FormLockedError: If the form is published (nothing is written)
            SchemaInvalidError: If a command produces an invalid form
        """
        record = self._owned_record(credentials, form_id, for_update=True)
        try:
            form = apply_commands(record.to_schema(), commands)
        except FormBuilderError:
            self.repository.rollback("editor commands rejected")
            raise

        form = form.model_copy(update={"updated_at": _now()})
        logger.info(f"Applied {len(commands)} command(s) to form {form_id}", extra={"form_id": form_id})
        return self._save(record, form)

    def publish_form(self, credentials: Credentials, form_id: str) -> Form:
        """Transition a draft form to published.

        Raises:
            SchemaInvalidError: If already published or not publishable
        """
        record = self._owned_record(credentials, form_id, for_update=True)
        try:
            form = PublicationService.publish(record.to_schema())
        except FormBuilderError:
            self.repository.rollback("publish rejected")
            raise
        return self._save(record, form)

    def delete_form(self, credentials: Credentials, form_id: str) -> None:
        """Delete a draft form.

        Raises:
            FormLockedError: If the form is published
        """
        record = self._owned_record(credentials, form_id, for_update=True)
        try:
            PublicationService.ensure_mutable(record.to_schema())
        except FormBuilderError:
            self.repository.rollback("delete rejected")
            raise

        self.repository.delete_form(record)
        self.repository.commit()
        self.store.discard(form_id)
        logger.info(f"Deleted form {form_id}", extra={"form_id": form_id})

    # Respondents

    def get_published_form(self, form_id: str) -> Form:
        """Get a form as respondents see it.

        Raises:
            NotFoundError: If the form does not exist or is still a draft
        """
        form = self.repository.get_form(form_id).to_schema()
        if not form.is_published:
            raise NotFoundError(f"Form '{form_id}' is not accepting responses")
        return form

    def submit_response(self, form_id: str, answers: Mapping[str, Any]) -> ResponseReceipt:
        """Validate, store and aggregate one response.

        The form is read from storage inside the per-form writer lock, so
        validation always runs against the published schema. Storing the
        response and folding it into the analytics happen under the same
        lock; the notifier is signalled afterwards.

        Raises:
            NotFoundError: If the form does not exist or is a draft
            ResponseInvalidError: If the answers fail validation
        """
        with self.store.locked(form_id):
            form = self.get_published_form(form_id)
            ResponseValidator.validate_or_raise(form, answers)

            self.store.ensure_loaded(form, lambda: self.repository.iter_accepted(form_id))

            response_id = str(uuid.uuid4())
            record = self.repository.add_response(response_id, form_id, dict(answers), _now())
            self.repository.commit()
            state = self.store.apply(form, answers, record.created_at)

        logger.info(
            f"Accepted response {response_id} for form {form_id} (count={state.count})",
            extra={"form_id": form_id, "response_id": response_id},
        )
        self.notifier.publish(form_id)
        return ResponseReceipt(id=record.id, form_id=form_id, created_at=record.created_at)

    # Reporting

    def get_response(self, credentials: Credentials, form_id: str, response_id: str) -> dict:
        """Get one stored response of an owned form."""
        self._owned_record(credentials, form_id)
        record = self.repository.get_response(response_id)
        if record.form_id != form_id:
            raise NotFoundError(f"Response '{response_id}' not found")
        return {
            "id": record.id,
            "formId": record.form_id,
            "answers": record.answers,
            "createdAt": record.created_at,
        }

    def get_analytics(self, credentials: Credentials, form_id: str) -> AnalyticsView:
        """Aggregated analytics for an owned form."""
        form = self._owned_record(credentials, form_id).to_schema()
        state = self.store.snapshot(form_id)
        if state is None:
            state = self.store.ensure_loaded(form, lambda: self.repository.iter_accepted(form_id))
        return AnalyticsAggregator.to_view(form, state)

    def export_csv(self, credentials: Credentials, form_id: str) -> str:
        """CSV export of an owned form's responses (PII columns excluded)."""
        form = self._owned_record(credentials, form_id).to_schema()
        responses = (
            (record.id, record.created_at, record.answers)
            for record in self.repository.list_responses(form_id)
        )
        return to_csv(export_rows(form, responses))
