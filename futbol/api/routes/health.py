"""Health check and setup route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.auth_dependencies import require_admin
from futbol.database import db
from futbol.database.db import get_db_session

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/health")
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "healthy", "message": "API is running"}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "message": f"Error: {str(e)}"}


@router.post("/api/setup-database")
async def setup_database(admin: dict = Depends(require_admin)):
    """Create any missing tables (admin only)."""
    try:
        await db.init_database()
        logger.info(f"Database setup triggered by {admin['id']}")
        return {"success": True, "message": "Base de datos inicializada"}
    except Exception as e:
        logger.error(f"Error setting up database: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error setting up database: {str(e)}")
