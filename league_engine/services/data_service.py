"""
League and member read path shared by the triggers and the match generator.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database.models import (
    League,
    LeagueMatch,
    LeagueMember,
    LeagueStatus,
    MemberStatus,
)


async def get_league(session: AsyncSession, league_id: str) -> Optional[League]:
    """Get a league by ID, or None. Always reloads status from the database."""
    if not league_id:
        return None
    result = await session.execute(
        select(League)
        .where(League.id == league_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_leagues_by_status(session: AsyncSession, status: LeagueStatus) -> List[League]:
    """All leagues with the given status, oldest first."""
    result = await session.execute(
        select(League).where(League.status == status).order_by(League.created_at, League.id)
    )
    return list(result.scalars().all())


async def get_registered_members(session: AsyncSession, league_id: str) -> List[LeagueMember]:
    """
    Registered members of a league in join order.

    Pending and withdrawn members never take part in reminders or scheduling.
    """
    result = await session.execute(
        select(LeagueMember)
        .where(
            LeagueMember.league_id == league_id,
            LeagueMember.status == MemberStatus.REGISTERED,
        )
        .order_by(LeagueMember.created_at, LeagueMember.id)
    )
    return list(result.scalars().all())


async def list_league_matches(session: AsyncSession, league_id: str) -> List[LeagueMatch]:
    """Generated matches of a league ordered by round."""
    result = await session.execute(
        select(LeagueMatch)
        .where(LeagueMatch.league_id == league_id)
        .order_by(LeagueMatch.round, LeagueMatch.player1_name)
    )
    return list(result.scalars().all())
