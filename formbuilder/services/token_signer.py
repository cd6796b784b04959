"""Owner token signing.

Owner-facing routes receive an explicit Credentials object built from a
bearer JWT. The token carries the owner id in ``sub`` and is signed with the
application secret; ``iat`` and ``exp`` bound its lifetime. Issuing tokens
stands in for the external auth system; the core only ever sees the
resulting Credentials.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from formbuilder.config import get_settings


class InvalidTokenError(Exception):
    """Raised when a token is malformed, forged or expired."""
    pass


@dataclass(frozen=True)
class Credentials:
    """Authenticated form owner.

    Attributes:
        owner_id: Identifier of the form owner
        issued_at: When the token was issued
    """
    owner_id: str
    issued_at: datetime


class TokenSigner:
    """Issue and verify owner JWTs."""

    @staticmethod
    def issue(owner_id: str, now: Optional[datetime] = None) -> str:
        """Issue a token for an owner.

        Args:
            owner_id: Owner identifier, stored as the ``sub`` claim
            now: Issue time (defaults to current UTC time)

        Returns:
            Encoded JWT

        Example:
            >>> token = TokenSigner.issue("alice")
            >>> TokenSigner.verify(token).owner_id
            'alice'
        """
        if not owner_id:
            raise ValueError("Owner id must be non-empty")

        settings = get_settings()
        now = now or datetime.now(timezone.utc)
        claims = {
            "sub": owner_id,
            "iat": now,
            "exp": now + timedelta(hours=settings.token_ttl_hours),
        }
        return jwt.encode(claims, settings.secret_key, algorithm=settings.token_algorithm)

    @staticmethod
    def verify(token: str) -> Credentials:
        """Decode a token and return the credentials it carries.

        Args:
            token: Bearer token from the Authorization header

        Returns:
            Credentials for the token's owner

        Raises:
            InvalidTokenError: If the token is malformed, forged or expired
        """
        settings = get_settings()
        try:
            claims = jwt.decode(
                token,
                settings.secret_key,
                algorithms=[settings.token_algorithm],
                options={"require_sub": True, "require_iat": True, "require_exp": True},
            )
        except ExpiredSignatureError:
            raise InvalidTokenError("Token expired")
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        owner_id = claims.get("sub")
        if not isinstance(owner_id, str) or not owner_id:
            raise InvalidTokenError("Token has no owner")

        return Credentials(
            owner_id=owner_id,
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
        )

    @staticmethod
    def truncate_for_logging(owner_id: str) -> str:
        """Shorten an owner id for logs."""
        return owner_id if len(owner_id) <= 12 else f"{owner_id[:12]}..."
