"""
Datetime utility functions.
All calendar decisions are made in the league's pinned time zone, never the host's.
"""

import os
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
import pytz
from dotenv import load_dotenv

load_dotenv()

# Operating region of the league; "one week out" is computed against this calendar
LEAGUE_TIMEZONE = os.getenv("LEAGUE_TIMEZONE", "America/New_York")


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def get_league_timezone(tz_name: Optional[str] = None):
    """Resolve the pinned league time zone (pytz tzinfo)."""
    return pytz.timezone(tz_name or LEAGUE_TIMEZONE)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes, convert aware ones to UTC.

    Some backends (SQLite) drop tzinfo on the way back out of the database;
    stored values are always written in UTC.
    """
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def league_today(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """Current calendar date in the league time zone."""
    now = now or utcnow()
    return ensure_utc(now).astimezone(get_league_timezone(tz_name)).date()


def league_local_date(value: datetime, tz_name: Optional[str] = None) -> date:
    """Calendar date of a stored timestamp, as seen in the league time zone."""
    return ensure_utc(value).astimezone(get_league_timezone(tz_name)).date()


def next_run_at(
    hour: int,
    minute: int,
    tz_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Next wall-clock occurrence of hour:minute in the league time zone, in UTC.

    Uses tz.localize() so DST transitions resolve to the correct offset.
    """
    tz = get_league_timezone(tz_name)
    local_now = ensure_utc(now or utcnow()).astimezone(tz)
    candidate = tz.localize(datetime.combine(local_now.date(), time(hour, minute)))
    if candidate <= local_now:
        candidate = tz.localize(
            datetime.combine(local_now.date() + timedelta(days=1), time(hour, minute))
        )
    return candidate.astimezone(pytz.UTC)


def format_season_date(date_input: Union[str, date, datetime]) -> str:
    """
    Format a date for notification copy in M/D/YYYY format (no leading zeros).

    Args:
        date_input: Date as ISO string ("2026-01-21"), date or datetime

    Returns:
        Formatted date string like "1/21/2026"

    Examples:
        >>> format_season_date("2026-01-21")
        "1/21/2026"
        >>> format_season_date(date(2026, 1, 21))
        "1/21/2026"
    """
    if isinstance(date_input, (date, datetime)):
        return f"{date_input.month}/{date_input.day}/{date_input.year}"

    if not isinstance(date_input, str):
        raise ValueError(f"Expected string, date or datetime, got {type(date_input)}")

    date_str = date_input.strip()
    try:
        parsed = datetime.strptime(date_str[:10], "%Y-%m-%d")
        return f"{parsed.month}/{parsed.day}/{parsed.year}"
    except ValueError:
        # Already formatted or unparseable; keep as-is
        return date_str
