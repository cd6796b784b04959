"""Owner credential dependency.

This module provides the FastAPI dependency that turns the bearer token on
owner-facing requests into an explicit Credentials object. Respondent
routes (public form view, response submission) do not use it.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from formbuilder.services.token_signer import Credentials, InvalidTokenError, TokenSigner
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)

# Missing or non-Bearer headers reach require_credentials as None
bearer_scheme = HTTPBearer(auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def require_credentials(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Credentials:
    """FastAPI dependency for owner authentication.

    Args:
        request: FastAPI request object
        bearer: Scheme and token parsed from the Authorization header

    Returns:
        Credentials of the authenticated owner

    Raises:
        HTTPException(401): If no bearer token was sent or the token is
            invalid

    Usage:
        @router.get("/api/forms")
        def list_forms(credentials: Credentials = Depends(require_credentials)):
            ...
    """
    if bearer is None:
        logger.warning(
            f"Missing bearer token from IP: {_client_ip(request)}",
            extra={"client_ip": _client_ip(request)}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers=_UNAUTHORIZED_HEADERS,
        )

    try:
        credentials = TokenSigner.verify(bearer.credentials)
    except InvalidTokenError as e:
        logger.warning(
            f"Rejected token from IP {_client_ip(request)}: {e}",
            extra={"client_ip": _client_ip(request)}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers=_UNAUTHORIZED_HEADERS,
        )

    logger.debug(
        f"Authenticated owner {TokenSigner.truncate_for_logging(credentials.owner_id)}"
    )
    return credentials
