"""
Pydantic models for API request/response validation.
"""

from datetime import date
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class GenerateMatchesRequest(BaseModel):
    """Remote call body for generateLeagueMatches. leagueId is validated by the service."""

    model_config = ConfigDict(populate_by_name=True)
    league_id: Optional[str] = Field(default=None, alias="leagueId")


class GenerateMatchesResponse(BaseModel):
    """Result of generateLeagueMatches."""

    model_config = ConfigDict(populate_by_name=True)
    success: bool
    match_count: int = Field(alias="matchCount")


class LeagueMemberRecord(BaseModel):
    """Member record carried by the member-created event."""

    id: str
    user_id: str
    user_name: str
    status: Optional[str] = None


class LeagueMemberCreatedEvent(BaseModel):
    """Document-write trigger payload: leagues/{league_id}/members/{member.id}."""

    league_id: str
    member: LeagueMemberRecord


class TriggerResponse(BaseModel):
    """Triggers always acknowledge; handled tells whether anything was sent."""

    acknowledged: bool = True
    handled: bool


class ReminderSweepRequest(BaseModel):
    """Optional override of the sweep's calendar date (league time zone)."""

    today: Optional[date] = None


class ReminderSweepResponse(BaseModel):
    target_date: str
    leagues_scanned: int
    leagues_matched: int
    leagues_skipped: int
    members_notified: int
    member_failures: int
    league_failures: int


class PushNotificationRequest(BaseModel):
    """Custom push to one user."""

    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: Optional[Dict[str, str]] = None


class PushNotificationResponse(BaseModel):
    success: bool
    token_count: int
    delivered_count: int
    failed_count: int
