"""Form template endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from formbuilder.middleware.auth import require_credentials
from formbuilder.models.database import get_db
from formbuilder.services.form_loader import (
    TemplateNotFoundError,
    TemplateValidationError,
    get_template_loader,
)
from formbuilder.services.form_service import FormService
from formbuilder.services.token_signer import Credentials
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/templates")


@router.get("")
def list_templates(credentials: Credentials = Depends(require_credentials)) -> list[str]:
    """List available template ids."""
    return get_template_loader().list_templates()


@router.post("/{template_id}/forms", status_code=201)
def create_form_from_template(
    template_id: str,
    credentials: Credentials = Depends(require_credentials),
    db: Session = Depends(get_db),
) -> dict:
    """Create a new draft form from a template."""
    try:
        template = get_template_loader().load_template(template_id)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TemplateValidationError as e:
        logger.error(f"Broken template {template_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Template '{template_id}' is invalid")

    return FormService(db).create_from_template(credentials, template).to_api()
