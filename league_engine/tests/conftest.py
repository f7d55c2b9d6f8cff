"""
Shared pytest configuration for league engine tests.

Runs against in-memory SQLite (aiosqlite) unless TEST_DATABASE_URL points
elsewhere. Push delivery goes to FakePushGateway; nothing leaves the process.
"""

import os

# Must be set before the API package is imported (disables rate limiting)
os.environ.setdefault("ENV", "test")

from datetime import datetime
from typing import List, Optional

import pytest_asyncio
import pytz
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from league_engine.database.db import Base
from league_engine.database.models import (
    DeviceToken,
    League,
    LeagueMember,
    LeagueStatus,
    MemberStatus,
)
from league_engine.services.push_gateway import (
    BatchResult,
    NotificationRequest,
    PushGateway,
    PushGatewayError,
)

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


class FakePushGateway(PushGateway):
    """Records every multicast; raises for batches containing a failing token."""

    def __init__(self, max_tokens_per_request: int = 100, failing_tokens=()):
        super().__init__(
            url="http://push.test/send",
            access_token=None,
            max_tokens_per_request=max_tokens_per_request,
        )
        self.requests: List[NotificationRequest] = []
        self.failing_tokens = set(failing_tokens)

    async def send_multicast(self, request: NotificationRequest) -> BatchResult:
        self.requests.append(request)
        if self.failing_tokens.intersection(request.tokens):
            raise PushGatewayError("gateway rejected batch")
        return BatchResult(success_count=len(request.tokens))

    @property
    def sent_tokens(self) -> List[str]:
        return [token for request in self.requests for token in request.tokens]


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a fresh test database engine with all tables."""
    engine_kwargs = {}
    if ":memory:" in TEST_DATABASE_URL:
        # One shared connection so every session sees the same in-memory database
        engine_kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **engine_kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (e.g. the reminder worker) uses db.AsyncSessionLocal
    from league_engine.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest_asyncio.fixture
def fake_gateway():
    """Push gateway double with the Expo per-request cap."""
    return FakePushGateway()


@pytest_asyncio.fixture
def make_gateway():
    """Factory for gateways with a custom batch cap or failing tokens."""
    return FakePushGateway


@pytest_asyncio.fixture
def make_league(db_session):
    """Factory: persist a league (forming by default)."""

    async def _make_league(
        league_id: str = "L1",
        organizer_id: str = "U0",
        name: str = "Sunday Singles",
        sport: Optional[str] = "tennis",
        season_start: Optional[datetime] = datetime(2026, 4, 8, 14, 0, tzinfo=pytz.UTC),
        status: LeagueStatus = LeagueStatus.FORMING,
        matches_per_season: Optional[int] = None,
        matches_generated: bool = False,
    ) -> League:
        league = League(
            id=league_id,
            name=name,
            sport=sport,
            organizer_id=organizer_id,
            season_start=season_start,
            status=status,
            matches_per_season=matches_per_season,
            matches_generated=matches_generated,
        )
        db_session.add(league)
        await db_session.commit()
        return league

    return _make_league


@pytest_asyncio.fixture
def add_member(db_session):
    """Factory: persist a league member (registered by default)."""

    async def _add_member(
        league_id: str,
        user_id: str,
        user_name: Optional[str] = None,
        status: MemberStatus = MemberStatus.REGISTERED,
        member_id: Optional[str] = None,
    ) -> LeagueMember:
        member = LeagueMember(
            id=member_id or f"{league_id}-{user_id}",
            league_id=league_id,
            user_id=user_id,
            user_name=user_name or f"Player {user_id}",
            status=status,
        )
        db_session.add(member)
        await db_session.commit()
        return member

    return _add_member


@pytest_asyncio.fixture
def add_device_token(db_session):
    """Factory: persist a device token for a user."""

    async def _add_device_token(user_id: str, token: str, platform: str = "ios") -> DeviceToken:
        device_token = DeviceToken(user_id=user_id, token=token, platform=platform)
        db_session.add(device_token)
        await db_session.commit()
        return device_token

    return _add_device_token
