"""
Tests for league match generation: preconditions, fixtures and atomic persistence.
"""
import logging
import random
from datetime import datetime, timedelta

import pytest
import pytz
from sqlalchemy import func, select, update

from league_engine.database.models import (
    League,
    LeagueMatch,
    LeagueMember,
    LeagueStatus,
    MatchStatus,
    MemberStatus,
)
from league_engine.services import data_service, match_generation_service
from league_engine.services.match_generation_service import (
    InsufficientMembersError,
    LeagueNotFoundError,
    MatchesAlreadyGeneratedError,
    MissingLeagueIdError,
    NotLeagueOrganizerError,
    PreconditionFailedError,
    UnauthenticatedError,
    build_league_matches,
    generate_league_matches,
)
from league_engine.services.scheduling import round_robin_pairings

SEASON_START = datetime(2026, 4, 8, 14, 0, tzinfo=pytz.UTC)


async def _match_count(session, league_id="L1") -> int:
    result = await session.execute(
        select(func.count()).select_from(LeagueMatch).where(LeagueMatch.league_id == league_id)
    )
    return result.scalar_one()


@pytest.fixture
def seeded_league(make_league, add_member):
    """L1 organized by U0 with five registered members U1..U5."""

    async def _seed(matches_per_season=3, member_count=5):
        league = await make_league(
            league_id="L1",
            organizer_id="U0",
            season_start=SEASON_START,
            matches_per_season=matches_per_season,
        )
        for i in range(1, member_count + 1):
            await add_member("L1", f"U{i}", user_name=f"Player {i}")
        return league

    return _seed


@pytest.mark.asyncio
async def test_generate_matches_end_to_end(db_session, seeded_league):
    """Five members, three weeks: two matches per round, league flips to active."""
    await seeded_league(matches_per_season=3)

    result = await generate_league_matches(db_session, "L1", "U0", rng=random.Random(1))

    assert result.match_count == 6
    assert result.rounds == 3

    matches = await data_service.list_league_matches(db_session, "L1")
    assert len(matches) == 6
    assert sorted({m.round for m in matches}) == [1, 2, 3]
    for match in matches:
        assert match.player1_user_id != match.player2_user_id
        assert match.status == MatchStatus.SCHEDULED
        assert match.player1_name.startswith("Player ")

    league = await data_service.get_league(db_session, "L1")
    assert league.status == LeagueStatus.ACTIVE
    assert league.matches_generated is True


@pytest.mark.asyncio
async def test_generated_dates_are_weekly(db_session, seeded_league):
    await seeded_league(matches_per_season=3, member_count=4)

    await generate_league_matches(db_session, "L1", "U0", rng=random.Random(3))

    matches = await data_service.list_league_matches(db_session, "L1")
    for match in matches:
        expected = SEASON_START + timedelta(days=7 * (match.round - 1))
        scheduled = match.scheduled_date
        if scheduled.tzinfo is None:
            scheduled = pytz.UTC.localize(scheduled)
        assert scheduled == expected


@pytest.mark.asyncio
async def test_each_member_plays_at_most_once_per_round(db_session, seeded_league):
    await seeded_league(matches_per_season=4, member_count=5)

    await generate_league_matches(db_session, "L1", "U0", rng=random.Random(11))

    matches = await data_service.list_league_matches(db_session, "L1")
    for round_number in range(1, 5):
        players = [
            player
            for m in matches
            if m.round == round_number
            for player in m.player_ids
        ]
        assert len(players) == len(set(players)) == 4


@pytest.mark.asyncio
async def test_second_generation_is_rejected(db_session, seeded_league):
    await seeded_league(matches_per_season=3)
    await generate_league_matches(db_session, "L1", "U0", rng=random.Random(1))

    with pytest.raises(MatchesAlreadyGeneratedError) as exc_info:
        await generate_league_matches(db_session, "L1", "U0")

    assert exc_info.value.code == "failed-precondition"
    assert await _match_count(db_session) == 6


@pytest.mark.asyncio
async def test_default_rounds_when_matches_per_season_unset(db_session, seeded_league):
    await seeded_league(matches_per_season=None, member_count=4)

    result = await generate_league_matches(db_session, "L1", "U0", rng=random.Random(5))

    assert result.rounds == 4
    assert result.match_count == 2 * 4


@pytest.mark.asyncio
async def test_non_organizer_is_rejected(db_session, seeded_league):
    await seeded_league()

    with pytest.raises(NotLeagueOrganizerError) as exc_info:
        await generate_league_matches(db_session, "L1", "U9")

    assert exc_info.value.code == "permission-denied"
    assert await _match_count(db_session) == 0
    league = await data_service.get_league(db_session, "L1")
    assert league.status == LeagueStatus.FORMING


@pytest.mark.asyncio
@pytest.mark.parametrize("member_count", [0, 1])
async def test_insufficient_members(db_session, seeded_league, add_member, member_count):
    await seeded_league(member_count=member_count)
    # Pending members do not count
    await add_member("L1", "U8", status=MemberStatus.PENDING)

    with pytest.raises(InsufficientMembersError) as exc_info:
        await generate_league_matches(db_session, "L1", "U0")

    assert isinstance(exc_info.value, PreconditionFailedError)
    assert exc_info.value.code == "failed-precondition"
    assert await _match_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("league_id", [None, "", "   "])
async def test_missing_league_id(db_session, league_id):
    with pytest.raises(MissingLeagueIdError) as exc_info:
        await generate_league_matches(db_session, league_id, "U0")

    assert exc_info.value.code == "invalid-argument"


@pytest.mark.asyncio
async def test_unknown_league(db_session):
    with pytest.raises(LeagueNotFoundError) as exc_info:
        await generate_league_matches(db_session, "missing", "U0")

    assert exc_info.value.code == "not-found"


@pytest.mark.asyncio
async def test_unauthenticated_caller_checked_first(db_session):
    """No caller wins over a missing league ID."""
    with pytest.raises(UnauthenticatedError) as exc_info:
        await generate_league_matches(db_session, None, None)

    assert exc_info.value.code == "unauthenticated"


@pytest.mark.asyncio
async def test_active_league_is_rejected(db_session, make_league, add_member):
    await make_league(league_id="L2", status=LeagueStatus.ACTIVE)
    await add_member("L2", "U1")
    await add_member("L2", "U2")

    with pytest.raises(MatchesAlreadyGeneratedError):
        await generate_league_matches(db_session, "L2", "U0")


@pytest.mark.asyncio
async def test_commit_failure_writes_nothing(db_session, seeded_league, monkeypatch):
    """A failure at commit rolls back matches and the status flip together."""
    await seeded_league(matches_per_season=3)

    async def failing_commit(session, timeout=None):
        await session.flush()
        raise RuntimeError("connection lost")

    monkeypatch.setattr(match_generation_service, "commit_with_timeout", failing_commit)

    with pytest.raises(RuntimeError):
        await generate_league_matches(db_session, "L1", "U0", rng=random.Random(1))

    assert await _match_count(db_session) == 0
    league = await data_service.get_league(db_session, "L1")
    assert league.status == LeagueStatus.FORMING
    assert league.matches_generated is False


@pytest.mark.asyncio
async def test_concurrent_flip_aborts_generation(db_session, seeded_league, monkeypatch):
    """If the league is flipped between the checks and the write, nothing is persisted."""
    await seeded_league(matches_per_season=3)
    original_get_members = data_service.get_registered_members

    async def get_members_then_flip(session, league_id):
        members = await original_get_members(session, league_id)
        await session.execute(
            update(League)
            .where(League.id == league_id)
            .values(status=LeagueStatus.ACTIVE, matches_generated=True)
        )
        return members

    monkeypatch.setattr(data_service, "get_registered_members", get_members_then_flip)

    with pytest.raises(MatchesAlreadyGeneratedError):
        await generate_league_matches(db_session, "L1", "U0", rng=random.Random(1))

    assert await _match_count(db_session) == 0


def test_build_league_matches_follows_round_robin_pairings(caplog):
    """Fixtures are the seeded rotation; the idle member of each round is logged."""
    league = League(id="L1", organizer_id="U0", season_start=SEASON_START, matches_per_season=3)
    members = [
        LeagueMember(id=f"M{i}", league_id="L1", user_id=f"U{i}", user_name=f"Player {i}")
        for i in range(1, 6)
    ]

    with caplog.at_level(logging.DEBUG, logger=match_generation_service.__name__):
        matches = build_league_matches(league, members, rng=random.Random(9))

    expected = round_robin_pairings(members, 3, random.Random(9))
    assert [(m.round, m.player1_user_id, m.player2_user_id) for m in matches] == [
        (p.round, p.player1.user_id, p.player2.user_id) for p in expected
    ]

    bye_lines = [r.getMessage() for r in caplog.records if "has a bye" in r.getMessage()]
    assert len(bye_lines) == 3
    for round_number in range(1, 4):
        playing = {uid for m in matches if m.round == round_number for uid in m.player_ids}
        idle = [m for m in members if m.user_id not in playing]
        assert len(idle) == 1
        assert f"round {round_number}: {idle[0].user_name!r} has a bye" in " ".join(bye_lines)
