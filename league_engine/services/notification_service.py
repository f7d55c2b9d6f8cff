"""
Notification dispatcher.

Resolves a user's device tokens and hands one multicast notification to the
push gateway, chunked into gateway-sized batches. Delivery is best effort:
a failing batch is logged and never aborts its siblings.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database.models import DeviceToken, NotificationType
from league_engine.services.push_gateway import (
    BatchResult,
    NotificationRequest,
    PushGateway,
    get_push_gateway,
)
from league_engine.utils.datetime_utils import format_season_date

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of one dispatch across all of its batches."""

    token_count: int = 0
    batch_count: int = 0
    delivered_count: int = 0
    failed_count: int = 0
    failed_batches: int = 0

    @property
    def success(self) -> bool:
        """True unless every batch failed. A zero-token dispatch is a success."""
        return self.batch_count == 0 or self.failed_batches < self.batch_count


def chunk_tokens(tokens: List[str], size: int) -> List[List[str]]:
    """Split tokens into consecutive batches of at most size tokens."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [tokens[i:i + size] for i in range(0, len(tokens), size)]


def _string_data(data: Optional[Dict]) -> Dict[str, str]:
    """Push data payloads are flat string maps; drop None values."""
    if not data:
        return {}
    return {str(k): str(v) for k, v in data.items() if v is not None}


def _unique(tokens: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    result = []
    for token in tokens:
        if token and token not in seen:
            seen.add(token)
            result.append(token)
    return result


async def load_device_tokens(session: AsyncSession, user_id: str) -> List[str]:
    """
    Load all device tokens owned by a user.

    Args:
        session: Database session
        user_id: Owner of the tokens

    Returns:
        Distinct, non-empty token strings (may be empty)
    """
    result = await session.execute(
        select(DeviceToken.token)
        .where(DeviceToken.user_id == user_id)
        .order_by(DeviceToken.created_at, DeviceToken.id)
    )
    return _unique(result.scalars().all())


async def load_tokens_by_user(session: AsyncSession, user_ids: List[str]) -> Dict[str, List[str]]:
    """
    Load device tokens for many users in one query.

    Returns:
        Dict mapping every requested user_id to its tokens (empty list if none)
    """
    tokens_by_user: Dict[str, List[str]] = {user_id: [] for user_id in user_ids}
    if not user_ids:
        return tokens_by_user

    result = await session.execute(
        select(DeviceToken.user_id, DeviceToken.token)
        .where(DeviceToken.user_id.in_(set(user_ids)))
        .order_by(DeviceToken.created_at, DeviceToken.id)
    )
    for user_id, token in result.all():
        tokens_by_user.setdefault(user_id, []).append(token)
    return {user_id: _unique(tokens) for user_id, tokens in tokens_by_user.items()}


async def deliver(
    request: NotificationRequest,
    gateway: Optional[PushGateway] = None,
) -> DispatchResult:
    """
    Deliver an already-built request, one gateway call per token batch.

    Batches run concurrently; each batch failure is captured and logged.
    """
    gateway = gateway or get_push_gateway()
    tokens = _unique(request.tokens)
    if not tokens:
        return DispatchResult()

    batches = chunk_tokens(tokens, gateway.max_tokens_per_request)
    outcomes = await asyncio.gather(
        *[
            gateway.send_multicast(
                NotificationRequest(
                    title=request.title,
                    body=request.body,
                    data=request.data,
                    tokens=batch,
                )
            )
            for batch in batches
        ],
        return_exceptions=True,
    )

    dispatch = DispatchResult(token_count=len(tokens), batch_count=len(batches))
    for batch, outcome in zip(batches, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            dispatch.failed_batches += 1
            dispatch.failed_count += len(batch)
            logger.warning(
                f"Push batch of {len(batch)} token(s) failed "
                f"(type={request.data.get('type')}): {outcome}"
            )
            continue
        dispatch.delivered_count += outcome.success_count
        dispatch.failed_count += outcome.failure_count

    return dispatch


async def send_to_user(
    session: AsyncSession,
    user_id: str,
    title: str,
    body: str,
    data: Optional[Dict] = None,
    gateway: Optional[PushGateway] = None,
) -> DispatchResult:
    """
    Send one templated push to every device a user has registered.

    A user with no device tokens is a silent no-op: no gateway call, success.

    Args:
        session: Database session
        user_id: Recipient user ID
        title: Notification title
        body: Notification body
        data: Routing payload, e.g. {"type": "league_join", "leagueId": "..."}
        gateway: Optional gateway override (defaults to the global one)

    Returns:
        DispatchResult for the whole send

    Raises:
        ValueError: If user_id, title or body is missing
    """
    if not user_id or not isinstance(user_id, str):
        raise ValueError("user_id is required")
    if not title:
        raise ValueError("title is required")
    if not body:
        raise ValueError("body is required")

    tokens = await load_device_tokens(session, user_id)
    if not tokens:
        logger.debug(f"No device tokens for user {user_id}; skipping push")
        return DispatchResult()

    request = NotificationRequest(title=title, body=body, data=_string_data(data), tokens=tokens)
    result = await deliver(request, gateway=gateway)
    logger.info(
        f"Push to user {user_id}: {result.delivered_count}/{result.token_count} token(s) accepted "
        f"in {result.batch_count} batch(es)"
    )
    return result


#
# Templates for the league notification types
#


def build_join_notification(
    league_id: str,
    league_name: str,
    member_id: Optional[str],
    member_name: str,
) -> Dict:
    """Organizer-facing "New Player Joined" message."""
    return {
        "title": "🏆 New Player Joined!",
        "body": f"{member_name} joined {league_name}",
        "data": _string_data({
            "type": NotificationType.LEAGUE_JOIN.value,
            "leagueId": league_id,
            "memberId": member_id,
        }),
    }


def build_reminder_notification(
    league_id: str,
    league_name: str,
    sport: Optional[str],
    start_date: date,
) -> Dict:
    """Member-facing "starts in 1 week" message."""
    league_label = f"{sport} league" if sport else "league"
    return {
        "title": f"🏆 {league_name} starts in 1 week!",
        "body": f"Get ready! Your {league_label} kicks off {format_season_date(start_date)}",
        "data": _string_data({
            "type": NotificationType.LEAGUE_REMINDER.value,
            "leagueId": league_id,
            "startDate": start_date.isoformat(),
        }),
    }
