"""Form authoring endpoints.

Owner-facing CRUD, editor commands and the publish transition. Every route
takes explicit Credentials from the bearer token.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from formbuilder.middleware.auth import require_credentials
from formbuilder.models.database import get_db
from formbuilder.schemas.form import FormPayload
from formbuilder.services.form_commands import CommandBatch
from formbuilder.services.form_service import FormService
from formbuilder.services.token_signer import Credentials

router = APIRouter(prefix="/api/forms")


@router.get("")
def list_forms(
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> list[dict]:
    """List the caller's forms, most recently updated first."""
    return [form.to_api() for form in FormService(db).list_forms(credentials)]


@router.post("", status_code=201)
def create_form(
    payload: FormPayload,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Create a form.

    With ``status: "published"`` the publish checks run before anything is
    stored.
    """
    return FormService(db).create_form(credentials, payload).to_api()


@router.get("/{form_id}")
def get_form(
    form_id: str,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Get one of the caller's forms."""
    return FormService(db).get_form(credentials, form_id).to_api()


@router.put("/{form_id}")
def update_form(
    form_id: str,
    payload: FormPayload,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Replace a draft form. Published forms answer 409 form_locked."""
    return FormService(db).update_form(credentials, form_id, payload).to_api()


@router.delete("/{form_id}", status_code=204)
def delete_form(
    form_id: str,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a draft form."""
    FormService(db).delete_form(credentials, form_id)
    return Response(status_code=204)


@router.post("/{form_id}/commands")
def apply_commands(
    form_id: str,
    batch: CommandBatch,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Apply editor commands (add/update/remove/duplicate/reorder) in order."""
    return FormService(db).apply_commands(credentials, form_id, batch.commands).to_api()


@router.post("/{form_id}/publish")
def publish_form(
    form_id: str,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Publish a draft form. Failures list every reason."""
    return FormService(db).publish_form(credentials, form_id).to_api()
