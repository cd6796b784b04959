"""Respondent endpoints.

Public form view and response submission need no credentials; reading a
stored response does.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from formbuilder.middleware.auth import require_credentials
from formbuilder.models.database import get_db
from formbuilder.schemas.response import ResponseSubmission
from formbuilder.services.form_service import FormService
from formbuilder.services.token_signer import Credentials

router = APIRouter()


@router.get("/api/public/forms/{form_id}")
def get_public_form(form_id: str, db: Session = Depends(get_db)) -> dict:
    """Get a published form for respondents (drafts answer 404)."""
    form = FormService(db).get_published_form(form_id)
    data = form.to_api()
    data.pop("ownerId", None)
    return data


@router.post("/api/forms/{form_id}/responses", status_code=201)
def submit_response(
    form_id: str,
    submission: ResponseSubmission,
    db: Session = Depends(get_db),
) -> dict:
    """Submit answers to a published form.

    Returns:
        dict: {"id", "formId", "createdAt"} on acceptance. Rejections answer
        422 with the first violation in field order.
    """
    receipt = FormService(db).submit_response(form_id, submission.answers)
    return receipt.model_dump(mode="json", by_alias=True)


@router.get("/api/forms/{form_id}/responses/{response_id}")
def get_response(
    form_id: str,
    response_id: str,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Get one stored response of the caller's form."""
    return FormService(db).get_response(credentials, form_id, response_id)
