"""
Authentication and authorisation dependencies for FastAPI routes.

Provides:
- get_current_user: verifies the bearer JWT and returns the acting Actor
- require_admin: dependency restricting a route to configured admin emails
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .config import settings
from .security import decode_token


logger = logging.getLogger(__name__)

# Tokens are issued upstream; tokenUrl only feeds the Swagger UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as recorded in audit entries."""

    user_id: str
    email: str

    @property
    def is_admin(self) -> bool:
        admins = settings.admin_emails_list
        # No configured admins means a single-user development install.
        return not admins or self.email.lower() in admins


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Actor:
    """
    Decode the JWT bearer token and return the authenticated Actor.

    Raises 401 if the token is missing, invalid or lacks an identity.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    email = payload.get("email")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(user_id=str(payload.get("sub") or email), email=email)


async def require_admin(actor: Actor = Depends(get_current_user)) -> Actor:
    """
    Dependency enforcing admin access.

    Usage:
        @router.post("", dependencies=[Depends(require_admin)])
    """
    if not actor.is_admin:
        logger.warning(f"Admin access denied for {actor.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor
