"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router
imports what it needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address, enabled=not IS_TEST_ENV)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from league_engine.api.routes.leagues import router as leagues_router  # noqa: E402
from league_engine.api.routes.triggers import router as triggers_router  # noqa: E402
from league_engine.api.routes.notifications import router as notifications_router  # noqa: E402

router = APIRouter()
router.include_router(leagues_router)
router.include_router(triggers_router)
router.include_router(notifications_router)


@router.get("/api/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}
