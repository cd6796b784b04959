"""Liveness endpoint used by deploy checks."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from formbuilder.models.database import get_db
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check(db: Session = Depends(get_db)) -> dict:
    """Report whether the service can reach its database.

    Returns:
        dict: ``{"status": "healthy", "database": "connected"}``

    Raises:
        HTTPException: 503 when a trivial query fails
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database unreachable during health check: {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")

    return {"status": "healthy", "database": "connected"}
