"""
Event trigger handlers.

Called by the hosting event platform (document-write events, cron ticks).
Handlers acknowledge with 200 even when processing failed: failures are
logged, and a permanently failing event must not be redelivered forever.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database.db import get_db_session
from league_engine.services import join_trigger_service, reminder_service
from league_engine.api.auth_dependencies import require_trigger_secret
from league_engine.models.schemas import (
    LeagueMemberCreatedEvent,
    ReminderSweepRequest,
    ReminderSweepResponse,
    TriggerResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_trigger_secret)])


@router.post("/api/triggers/league-member-created", response_model=TriggerResponse)
async def on_league_member_created(
    event: LeagueMemberCreatedEvent,
    session: AsyncSession = Depends(get_db_session),
):
    """Notify the organizer about a new member (delivered at least once)."""
    handled = await join_trigger_service.handle_member_joined(
        session, event.league_id, event.member.model_dump()
    )
    return {"acknowledged": True, "handled": handled}


@router.post("/api/triggers/league-reminders", response_model=ReminderSweepResponse)
async def run_league_reminders(
    payload: Optional[ReminderSweepRequest] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """Run the daily one-week reminder sweep now."""
    today = payload.today if payload else None
    try:
        result = await reminder_service.run_reminder_sweep(session, today=today)
    except Exception as e:
        # Only the initial league query can get here; per-league errors are isolated
        logger.error(f"League reminder sweep failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Reminder sweep failed: {str(e)}")
    return result.to_dict()
