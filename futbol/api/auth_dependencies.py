"""
Authentication dependencies for FastAPI routes.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.db import get_db_session
from futbol.services import auth_service, user_service

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from the bearer token.

    A valid token for a user we have not seen yet provisions the local user
    (not whitelisted, not admin) from the token claims.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if credentials is None:
        raise _unauthorized("No autorizado")

    payload = auth_service.verify_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid authentication token")

    user_id = payload.get("sub")
    if user_id is None:
        raise _unauthorized("Invalid token payload")

    user = await user_service.get_user_by_id(session, user_id)
    if user is not None:
        return user

    email = payload.get("email")
    if not email:
        raise _unauthorized("User not found")
    try:
        return await user_service.provision_user(
            session, user_id, email, payload.get("name"), payload.get("picture")
        )
    except Exception as e:
        logger.error(f"Error provisioning user {user_id}: {e}", exc_info=True)
        raise _unauthorized("User not found")


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Require an authenticated admin."""
    if not user.get("is_admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


async def require_whitelisted_admin(user: dict = Depends(require_admin)) -> dict:
    """Require an admin who is also whitelisted (result management)."""
    if not user.get("is_whitelisted"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tu cuenta todavía no fue habilitada por un administrador",
        )
    return user


async def require_cron(authorization: Optional[str] = Header(default=None)) -> None:
    """Require the scheduler's shared secret (Authorization: Bearer <CRON_SECRET>)."""
    if not auth_service.verify_cron_secret(authorization):
        raise _unauthorized("No autorizado")
