"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error translation) lives here; every
sub-router imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from futbol.services.exceptions import (
    ConcurrentUpdateError,
    NotFoundError,
    PermissionDeniedError,
    VotingRuleError,
)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Service error translation
# ---------------------------------------------------------------------------
def service_error(e: ValueError) -> HTTPException:
    """Map a service-layer ValueError (or subclass) to the matching HTTP error."""
    if isinstance(e, VotingRuleError):
        return HTTPException(status_code=400, detail={"error": e.title, "details": e.details})
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PermissionDeniedError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ConcurrentUpdateError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from futbol.api.routes.health import router as health_router  # noqa: E402
from futbol.api.routes.users import router as users_router  # noqa: E402
from futbol.api.routes.webhooks import router as webhooks_router  # noqa: E402
from futbol.api.routes.votes import router as votes_router  # noqa: E402
from futbol.api.routes.games import router as games_router  # noqa: E402
from futbol.api.routes.mvp import router as mvp_router  # noqa: E402
from futbol.api.routes.admin import router as admin_router  # noqa: E402
from futbol.api.routes.emails import router as emails_router  # noqa: E402

router = APIRouter()
router.include_router(health_router)
router.include_router(users_router)
router.include_router(webhooks_router)
router.include_router(votes_router)
router.include_router(games_router)
router.include_router(mvp_router)
router.include_router(admin_router)
router.include_router(emails_router)
