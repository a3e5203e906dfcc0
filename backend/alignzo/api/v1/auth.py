"""Bearer token identity.

Tokens are issued by the identity provider; this service only verifies the
signature and reads the ``email`` claim.
"""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from alignzo.config import get_settings

logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


class TokenUser(BaseModel):
    """Identity carried by a verified token."""

    email: str
    name: str | None = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> TokenUser:
    """Get the acting user from the bearer JWT."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        logger.info("token_rejected")
        raise _unauthorized("Invalid token")

    email = payload.get("email")
    if not email:
        raise _unauthorized("Invalid token")

    return TokenUser(email=email.lower(), name=payload.get("name"))


# Type alias for dependency injection
CurrentUser = Annotated[TokenUser, Depends(get_current_user)]
