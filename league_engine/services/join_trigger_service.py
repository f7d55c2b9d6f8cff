"""
League join trigger.

Fired (at least once) when a member record is created under a league. Notifies
the league organizer through the dispatcher. Never raises: a permanently
failing event must not be retried forever by the platform.
"""

import hashlib
import logging
import os
from datetime import timedelta
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database.models import NotificationReceipt, NotificationType
from league_engine.services import data_service, notification_service
from league_engine.services.push_gateway import PushGateway
from league_engine.utils.datetime_utils import ensure_utc, utcnow
from league_engine.utils.env_utils import get_bool_env

load_dotenv()

logger = logging.getLogger(__name__)

JOIN_NOTIFICATION_DEDUP = get_bool_env("JOIN_NOTIFICATION_DEDUP", default=True)
JOIN_DEDUP_TTL_HOURS = int(os.getenv("JOIN_DEDUP_TTL_HOURS", "24"))


def join_idempotency_key(league_id: str, member_id: str) -> str:
    """Deterministic key for one logical join event."""
    raw = f"{NotificationType.LEAGUE_JOIN.value}:{league_id}:{member_id}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


async def purge_expired_receipts(
    session: AsyncSession,
    ttl_hours: int = JOIN_DEDUP_TTL_HOURS,
    keep_key: Optional[str] = None,
) -> int:
    """
    Delete receipts older than the TTL. Does not commit.

    Args:
        session: Database session
        ttl_hours: Receipt lifetime
        keep_key: Receipt the caller is about to refresh; left in place

    Returns:
        Number of receipts deleted
    """
    cutoff = utcnow() - timedelta(hours=ttl_hours)
    stmt = delete(NotificationReceipt).where(NotificationReceipt.created_at < cutoff)
    if keep_key:
        stmt = stmt.where(NotificationReceipt.idempotency_key != keep_key)
    result = await session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount or 0


async def claim_idempotency_key(
    session: AsyncSession,
    key: str,
    notification_type: str,
    ttl_hours: int = JOIN_DEDUP_TTL_HOURS,
) -> bool:
    """
    Record that a notification for key is being sent.

    Expired receipts are purged in the same commit.

    Returns:
        True if the caller won the claim and should send, False if a fresh
        claim already exists (duplicate delivery of the same event)
    """
    now = utcnow()
    existing = await session.get(NotificationReceipt, key)
    if existing is not None:
        if ensure_utc(existing.created_at) >= now - timedelta(hours=ttl_hours):
            return False
        # Expired claim: treat as a new event
        await purge_expired_receipts(session, ttl_hours, keep_key=key)
        existing.created_at = now
        await session.commit()
        return True

    purged = await purge_expired_receipts(session, ttl_hours, keep_key=key)
    if purged:
        logger.debug(f"Purged {purged} expired notification receipt(s)")
    session.add(
        NotificationReceipt(idempotency_key=key, notification_type=notification_type, created_at=now)
    )
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent delivery of the same event claimed it first
        await session.rollback()
        return False
    return True


async def handle_member_joined(
    session: AsyncSession,
    league_id: str,
    member: Mapping,
    gateway: Optional[PushGateway] = None,
    dedup: Optional[bool] = None,
) -> bool:
    """
    Notify the organizer that a member joined their league.

    Args:
        session: Database session
        league_id: Parent league ID from the triggering event path
        member: The created member record ("id", "user_id", "user_name")
        gateway: Optional push gateway override
        dedup: Override JOIN_NOTIFICATION_DEDUP

    Returns:
        True if a notification was dispatched, False if skipped or failed
    """
    member_id = member.get("id")
    member_name = member.get("user_name") or "A new player"
    dedup = JOIN_NOTIFICATION_DEDUP if dedup is None else dedup

    try:
        league = await data_service.get_league(session, league_id)
        if league is None:
            # Event raced with a deletion or points at an inconsistent league
            logger.info(f"League {league_id} not found for join of {member_name!r}; skipping")
            return False

        if dedup and member_id:
            claimed = await claim_idempotency_key(
                session,
                join_idempotency_key(league_id, member_id),
                NotificationType.LEAGUE_JOIN.value,
            )
            if not claimed:
                logger.info(
                    f"Duplicate join event for member {member_id} in league {league_id}; skipping"
                )
                return False

        template = notification_service.build_join_notification(
            league_id=league_id,
            league_name=league.name,
            member_id=member_id,
            member_name=member_name,
        )
        await notification_service.send_to_user(
            session,
            league.organizer_id,
            template["title"],
            template["body"],
            template["data"],
            gateway=gateway,
        )
        logger.info(
            f"League join notification sent (league_id={league_id}, member_name={member_name!r})"
        )
        return True
    except Exception as e:
        logger.error(
            f"Error on league member join (league_id={league_id}, member_name={member_name!r}): {e}",
            exc_info=True,
        )
        # Leave the session clean so the request can still commit and acknowledge
        await session.rollback()
        return False
