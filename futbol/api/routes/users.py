"""User route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.auth_dependencies import get_current_user, require_admin
from futbol.api.routes import service_error
from futbol.database.db import get_db_session
from futbol.models.schemas import (
    AdminFlagUpdate,
    BulkUsersRequest,
    NicknameUpdate,
    UserResponse,
    WhitelistFlagUpdate,
)
from futbol.services import user_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users", response_model=List[UserResponse])
async def list_users(
    whitelisted_only: bool = False,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List users by name. Any signed-in user can see the roster."""
    try:
        return await user_service.get_users(session, whitelisted_only=whitelisted_only)
    except Exception as e:
        logger.error(f"Error listing users: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error listing users: {str(e)}")


@router.get("/api/users/current", response_model=UserResponse)
async def get_current(current_user: dict = Depends(get_current_user)):
    return current_user


@router.get("/api/users/check-admin")
async def check_admin(current_user: dict = Depends(get_current_user)):
    return {"is_admin": bool(current_user.get("is_admin"))}


@router.put("/api/users/nickname", response_model=UserResponse)
async def update_nickname(
    payload: NicknameUpdate,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Set or clear the current user's nickname."""
    try:
        return await user_service.update_nickname(session, current_user["id"], payload.nickname)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating nickname: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error updating nickname: {str(e)}")


@router.post("/api/users/bulk")
async def bulk_upsert_users(
    payload: BulkUsersRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create or update many users at once (admin)."""
    try:
        result = await user_service.bulk_upsert(
            session, [u.model_dump(exclude_none=True) for u in payload.users]
        )
        return {"success": True, **result}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error importing users: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error importing users: {str(e)}")


@router.get("/api/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    return user


@router.patch("/api/users/{user_id}/admin", response_model=UserResponse)
async def toggle_admin(
    user_id: str,
    payload: AdminFlagUpdate,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Grant or revoke admin rights (admin)."""
    if user_id == admin["id"] and not payload.is_admin:
        raise HTTPException(status_code=400, detail="No puedes quitarte tus propios permisos de administrador")
    try:
        return await user_service.set_admin(session, user_id, payload.is_admin)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating admin flag: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error updating admin flag: {str(e)}")


@router.patch("/api/users/{user_id}/whitelist", response_model=UserResponse)
async def toggle_whitelist(
    user_id: str,
    payload: WhitelistFlagUpdate,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve or block a user for quorum and match participation (admin)."""
    try:
        return await user_service.set_whitelisted(session, user_id, payload.is_whitelisted)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating whitelist flag: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error updating whitelist flag: {str(e)}")
