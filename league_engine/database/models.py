"""
SQLAlchemy ORM models for the league scheduling and notification engine.
"""

import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from league_engine.database.db import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class LeagueStatus(str, enum.Enum):
    """League lifecycle status."""

    FORMING = "forming"
    ACTIVE = "active"
    COMPLETED = "completed"


class MemberStatus(str, enum.Enum):
    """League member status."""

    REGISTERED = "registered"
    PENDING = "pending"
    WITHDRAWN = "withdrawn"


class MatchStatus(str, enum.Enum):
    """League match status. Later states belong to gameplay flows."""

    SCHEDULED = "scheduled"


class NotificationType(str, enum.Enum):
    """Notification type, sent to clients as data["type"] for routing."""

    LEAGUE_JOIN = "league_join"
    LEAGUE_REMINDER = "league_reminder"
    CUSTOM = "custom"


class League(Base):
    """Recreational league with a generated season schedule."""

    __tablename__ = "leagues"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    sport = Column(String, nullable=True)
    organizer_id = Column(String, nullable=False)  # Auth user ID of the organizer
    season_start = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        Enum(LeagueStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=LeagueStatus.FORMING,
        nullable=False,
    )
    matches_per_season = Column(Integer, nullable=True)  # Falls back to DEFAULT_MATCHES_PER_SEASON
    matches_generated = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    members = relationship("LeagueMember", back_populates="league", cascade="all, delete-orphan")
    matches = relationship("LeagueMatch", back_populates="league", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "matches_generated = false OR status = 'active'",
            name="ck_leagues_generated_requires_active",
        ),
        Index("idx_leagues_status", "status"),
        Index("idx_leagues_organizer", "organizer_id"),
    )


class LeagueMember(Base):
    """A user's membership in a league."""

    __tablename__ = "league_members"

    id = Column(String, primary_key=True, default=_new_id)
    league_id = Column(String, ForeignKey("leagues.id"), nullable=False)
    user_id = Column(String, nullable=False)
    user_name = Column(String, nullable=False)  # Display name at join time
    status = Column(
        Enum(MemberStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=MemberStatus.REGISTERED,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    league = relationship("League", back_populates="members")

    __table_args__ = (
        UniqueConstraint("league_id", "user_id"),
        Index("idx_league_members_league_status", "league_id", "status"),
        Index("idx_league_members_user", "user_id"),
    )


class LeagueMatch(Base):
    """A generated fixture between two registered members."""

    __tablename__ = "league_matches"

    id = Column(String, primary_key=True, default=_new_id)
    league_id = Column(String, ForeignKey("leagues.id"), nullable=False)
    round = Column(Integer, nullable=False)
    player1_user_id = Column(String, nullable=False)
    player1_name = Column(String, nullable=False)
    player2_user_id = Column(String, nullable=False)
    player2_name = Column(String, nullable=False)
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        Enum(MatchStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=MatchStatus.SCHEDULED,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    league = relationship("League", back_populates="matches")

    @property
    def player_ids(self):
        """Both player user IDs as a tuple."""
        return (self.player1_user_id, self.player2_user_id)

    __table_args__ = (
        CheckConstraint("player1_user_id <> player2_user_id", name="ck_league_matches_distinct_players"),
        CheckConstraint("round >= 1", name="ck_league_matches_round_positive"),
        Index("idx_league_matches_league_round", "league_id", "round"),
    )


class DeviceToken(Base):
    """Push token registered by one of a user's devices. Owned by device registration."""

    __tablename__ = "device_tokens"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False)
    token = Column(String, nullable=False, unique=True)
    platform = Column(String, nullable=True)  # 'ios', 'android', 'web'
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_device_tokens_user", "user_id"),)


class NotificationReceipt(Base):
    """Dedup record for trigger-driven notifications delivered at least once."""

    __tablename__ = "notification_receipts"

    idempotency_key = Column(String(64), primary_key=True)
    notification_type = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_notification_receipts_created", "created_at"),)
