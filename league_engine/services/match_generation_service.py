"""
League match generation: preconditions, round-robin fixtures, atomic persistence.

Only the league organizer may generate, exactly once per league. All matches
and the forming -> active flip are committed in one transaction; on any
failure nothing is written and the league stays forming.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database.db import commit_with_timeout
from league_engine.database.models import (
    League,
    LeagueMatch,
    LeagueStatus,
    MatchStatus,
)
from league_engine.services import data_service
from league_engine.services.scheduling import (
    round_robin_pairings,
    scheduled_date_for_round,
)
from league_engine.utils.constants import DEFAULT_MATCHES_PER_SEASON, MIN_REGISTERED_MEMBERS
from league_engine.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


# ---------- Exceptions ----------


class MatchGenerationError(Exception):
    """Base class; code is the stable, client-facing error class."""

    code = "internal"


class UnauthenticatedError(MatchGenerationError):
    """No authenticated caller."""

    code = "unauthenticated"


class MissingLeagueIdError(MatchGenerationError):
    """leagueId argument missing or empty."""

    code = "invalid-argument"


class LeagueNotFoundError(MatchGenerationError):
    """No league with the given ID."""

    code = "not-found"


class NotLeagueOrganizerError(MatchGenerationError):
    """Caller is not the league's organizer."""

    code = "permission-denied"


class PreconditionFailedError(MatchGenerationError):
    """League state does not allow generation."""

    code = "failed-precondition"


class MatchesAlreadyGeneratedError(PreconditionFailedError):
    """Matches exist already, or the league has left forming."""


class InsufficientMembersError(PreconditionFailedError):
    """Fewer than two registered members."""


@dataclass
class MatchGenerationResult:
    league_id: str
    match_count: int
    rounds: int


def build_league_matches(
    league: League,
    members: List,
    rng: Optional[random.Random] = None,
) -> List[LeagueMatch]:
    """
    Build (unsaved) match records for a league's registered members.

    Members are shuffled once with rng, then paired by rotation for
    matches_per_season rounds, one round per week from season start.
    """
    rounds = league.matches_per_season or DEFAULT_MATCHES_PER_SEASON
    season_start = league.season_start or utcnow()
    matches = [
        LeagueMatch(
            league_id=league.id,
            round=pairing.round,
            player1_user_id=pairing.player1.user_id,
            player1_name=pairing.player1.user_name,
            player2_user_id=pairing.player2.user_id,
            player2_name=pairing.player2.user_name,
            scheduled_date=scheduled_date_for_round(season_start, pairing.round),
            status=MatchStatus.SCHEDULED,
        )
        for pairing in round_robin_pairings(members, rounds, rng)
    ]

    for round_number in range(1, rounds + 1):
        playing = {
            user_id
            for match in matches
            if match.round == round_number
            for user_id in match.player_ids
        }
        for member in members:
            if member.user_id not in playing:
                logger.debug(f"League {league.id} round {round_number}: {member.user_name!r} has a bye")

    return matches


async def generate_league_matches(
    session: AsyncSession,
    league_id: Optional[str],
    caller_user_id: Optional[str],
    rng: Optional[random.Random] = None,
) -> MatchGenerationResult:
    """
    Generate and persist the round-robin schedule for a forming league.

    Args:
        session: Database session (committed or rolled back here)
        league_id: League to generate for
        caller_user_id: Authenticated caller; must be the organizer
        rng: Random source for the initial shuffle (seed it in tests)

    Returns:
        MatchGenerationResult

    Raises:
        UnauthenticatedError, MissingLeagueIdError, LeagueNotFoundError,
        NotLeagueOrganizerError, MatchesAlreadyGeneratedError,
        InsufficientMembersError: one per failed precondition, in that order
    """
    if not caller_user_id:
        raise UnauthenticatedError("Must be authenticated")
    if not league_id or not isinstance(league_id, str) or not league_id.strip():
        raise MissingLeagueIdError("leagueId required")

    league = await data_service.get_league(session, league_id)
    if league is None:
        raise LeagueNotFoundError("League not found")
    if league.organizer_id != caller_user_id:
        raise NotLeagueOrganizerError("Only the league organizer can generate matches")
    if league.matches_generated or league.status != LeagueStatus.FORMING:
        raise MatchesAlreadyGeneratedError("Matches have already been generated for this league")

    members = await data_service.get_registered_members(session, league_id)
    if len(members) < MIN_REGISTERED_MEMBERS:
        raise InsufficientMembersError(
            f"Need at least {MIN_REGISTERED_MEMBERS} registered players to generate matches "
            f"(currently {len(members)})"
        )

    matches = build_league_matches(league, members, rng=rng)
    rounds = league.matches_per_season or DEFAULT_MATCHES_PER_SEASON

    try:
        session.add_all(matches)
        flip = await session.execute(
            update(League)
            .where(
                League.id == league_id,
                League.status == LeagueStatus.FORMING,
                League.matches_generated == False,  # noqa: E712
            )
            .values(status=LeagueStatus.ACTIVE, matches_generated=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if flip.rowcount != 1:
            # A concurrent generation flipped the league first
            raise MatchesAlreadyGeneratedError("Matches have already been generated for this league")
        await commit_with_timeout(session)
    except Exception:
        await session.rollback()
        raise

    logger.info(f"League matches generated (league_id={league_id}, match_count={len(matches)})")
    return MatchGenerationResult(league_id=league_id, match_count=len(matches), rounds=rounds)
