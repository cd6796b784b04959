"""Publication state machine for forms.

A form starts as a draft and may be edited freely. It transitions once to
published, after which its fields are immutable and only responses may be
created against it. There is no transition back to draft.
"""

from datetime import datetime, timezone
from typing import Optional

from formbuilder.config import get_settings
from formbuilder.schemas.form import Form, FormStatus
from formbuilder.services.dependency_graph import DependencyGraph
from formbuilder.services.errors import FormLockedError, SchemaInvalidError
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

ALREADY_PUBLISHED = "Form is already published"


class PublicationService:
    """Service governing the draft -> published transition."""

    @staticmethod
    def ensure_mutable(form: Form) -> None:
        """Reject any edit of a published form.

        Must be called before anything is written to storage.

        Raises:
            FormLockedError: If the form is published
        """
        if form.is_published:
            logger.warning(f"Edit rejected for published form {form.id}", extra={"form_id": form.id})
            raise FormLockedError(form.id)

    @staticmethod
    def publish_problems(form: Form) -> list[str]:
        """Collect every reason the form cannot be published.

        Checks:
        1. Title is non-empty and not the untitled placeholder
        2. At least one field
        3. At least one required field
        4. Every label is non-empty and not a placeholder
        5. Every choice field has at least one option, none of them blank
        6. showIf rules contain no cycles

        Args:
            form: Draft form to check

        Returns:
            Human-readable reasons in field order; empty if publishable
        """
        settings = get_settings()
        placeholders = settings.get_placeholder_labels()
        problems = []

        title = form.title.strip()
        if not title or title == settings.untitled_form_title:
            problems.append("Form title is required")

        if not form.fields:
            problems.append("At least one field is required")
        elif not any(field.required for field in form.fields):
            problems.append("At least one field must be required")

        for position, field in enumerate(form.fields, start=1):
            name = field.label or f"Field {position}"

            if not field.label or field.label in placeholders:
                problems.append(f"{name}: every field needs a proper label")

            if field.is_choice:
                options = field.options or ()
                if not options:
                    problems.append(f"{name}: choice fields must have at least one option")
                elif any(not option.strip() for option in options):
                    problems.append(f"{name}: all options must have text")

        problems.extend(DependencyGraph.problems(form))
        return problems

    @staticmethod
    def publish(form: Form, now: Optional[datetime] = None) -> Form:
        """Transition a draft form to published.

        Args:
            form: Draft form
            now: Publication timestamp (defaults to current UTC time)

        Returns:
            New Form snapshot with status published

        Raises:
            SchemaInvalidError: If the form is already published or fails
                any publication check
        """
        if form.is_published:
            raise SchemaInvalidError([ALREADY_PUBLISHED])

        problems = PublicationService.publish_problems(form)
        if problems:
            logger.info(
                f"Publish rejected for form {form.id}: {len(problems)} problem(s)",
                extra={"form_id": form.id},
            )
            raise SchemaInvalidError(problems)

        now = now or datetime.now(timezone.utc)
        published = form.model_copy(
            update={
                "status": FormStatus.PUBLISHED,
                "published_at": now,
                "updated_at": now,
            }
        )
        logger.info(f"Form {form.id} published", extra={"form_id": form.id})
        return published
