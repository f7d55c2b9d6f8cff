"""Notification route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database.db import get_db_session
from league_engine.database.models import NotificationType
from league_engine.services import notification_service
from league_engine.api.auth_dependencies import require_user
from league_engine.models.schemas import PushNotificationRequest, PushNotificationResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/notifications/push", response_model=PushNotificationResponse)
async def send_push_notification(
    payload: PushNotificationRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Send a custom push to the caller's own devices (e.g. a "test notification" button).
    """
    if payload.user_id != user["id"]:
        raise HTTPException(status_code=403, detail="Can only send pushes to your own devices")

    data = {"type": NotificationType.CUSTOM.value, **(payload.data or {})}
    try:
        result = await notification_service.send_to_user(
            session, payload.user_id, payload.title, payload.body, data
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error sending push notification: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error sending push notification: {str(e)}")

    return {
        "success": result.success,
        "token_count": result.token_count,
        "delivered_count": result.delivered_count,
        "failed_count": result.failed_count,
    }
