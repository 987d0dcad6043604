"""Identity-provider webhook route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.routes import limiter
from futbol.database.db import get_db_session
from futbol.services import auth_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/webhooks/identity")
@limiter.limit("60/minute")
async def identity_webhook(request: Request, session: AsyncSession = Depends(get_db_session)):
    """
    Receive user lifecycle events from the identity provider.

    The body is verified against the svix-id / svix-timestamp /
    svix-signature headers before anything is written.
    """
    payload = await request.body()
    headers = {
        "svix-id": request.headers.get("svix-id", ""),
        "svix-timestamp": request.headers.get("svix-timestamp", ""),
        "svix-signature": request.headers.get("svix-signature", ""),
    }
    if not all(headers.values()):
        raise HTTPException(status_code=400, detail="Missing svix headers")

    try:
        event = auth_service.verify_webhook(payload, headers)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    event_type = event.get("type")
    logger.info(f"Identity webhook received: {event_type}")

    try:
        return await user_service.handle_identity_event(session, event_type, event.get("data") or {})
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error handling identity webhook {event_type}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error processing webhook")
