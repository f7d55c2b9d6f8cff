"""League route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database.db import get_db_session
from league_engine.services import match_generation_service
from league_engine.api.auth_dependencies import require_user
from league_engine.api.routes import limiter
from league_engine.models.schemas import GenerateMatchesRequest, GenerateMatchesResponse

logger = logging.getLogger(__name__)
router = APIRouter()

# Client-facing error class -> HTTP status
ERROR_STATUS_CODES = {
    "unauthenticated": 401,
    "invalid-argument": 400,
    "not-found": 404,
    "permission-denied": 403,
    "failed-precondition": 409,
}


@router.post(
    "/api/leagues/generate-matches",
    response_model=GenerateMatchesResponse,
    response_model_by_alias=True,
)
@limiter.limit("10/minute")
async def generate_league_matches(
    request: Request,
    payload: GenerateMatchesRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Generate the round-robin schedule for a forming league (organizer only).

    Body: {"leagueId": "..."}
    Returns: {"success": true, "matchCount": n}
    """
    try:
        result = await match_generation_service.generate_league_matches(
            session, payload.league_id, user["id"]
        )
        return {"success": True, "matchCount": result.match_count}
    except match_generation_service.MatchGenerationError as e:
        status_code = ERROR_STATUS_CODES.get(e.code, 500)
        logger.info(
            f"Match generation refused for league {payload.league_id} "
            f"by user {user['id']}: {e.code}: {e}"
        )
        raise HTTPException(status_code=status_code, detail={"code": e.code, "message": str(e)})
    except Exception as e:
        logger.error(f"Error generating matches for league {payload.league_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"code": "internal", "message": f"Error generating matches: {str(e)}"},
        )
