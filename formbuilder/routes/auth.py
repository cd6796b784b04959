"""Owner token issuance.

Stands in for the external authentication system: it signs a JWT for an
owner id without checking a password. Real deployments put this behind
their identity provider.
"""

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from formbuilder.services.token_signer import TokenSigner
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


class TokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., min_length=1, max_length=100, alias="ownerId")


@router.post("/api/auth/token")
def issue_token(request: TokenRequest) -> dict:
    """Issue a bearer token for an owner.

    Returns:
        dict: {"token": <JWT>, "tokenType": "bearer", "ownerId": ...}
    """
    token = TokenSigner.issue(request.owner_id)

    logger.info(f"Issued token for owner {TokenSigner.truncate_for_logging(request.owner_id)}")
    return {"token": token, "tokenType": "bearer", "ownerId": request.owner_id}
