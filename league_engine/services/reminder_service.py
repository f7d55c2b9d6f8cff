"""
League season reminders.

Once a day, every "forming" league whose season starts exactly one week from
today (league time zone) gets a "starts in 1 week" push to each registered
member. Each day's run is independent; re-running the same day re-sends.

One league or one member failing never stops the rest of the sweep.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession

from league_engine.database import db
from league_engine.database.models import LeagueStatus
from league_engine.services import data_service, notification_service
from league_engine.services.push_gateway import NotificationRequest, PushGateway
from league_engine.utils.constants import REMINDER_LEAD_DAYS
from league_engine.utils.datetime_utils import (
    league_local_date,
    league_today,
    next_run_at,
    utcnow,
)

load_dotenv()

logger = logging.getLogger(__name__)

# Daily run time, wall clock in LEAGUE_TIMEZONE
REMINDER_HOUR = int(os.getenv("REMINDER_HOUR", "9"))
REMINDER_MINUTE = int(os.getenv("REMINDER_MINUTE", "0"))

# Max concurrent push dispatches during a sweep
NOTIFICATION_CONCURRENCY = int(os.getenv("NOTIFICATION_CONCURRENCY", "10"))


@dataclass
class ReminderSweepResult:
    """Summary of one sweep."""

    target_date: date
    leagues_scanned: int = 0
    leagues_matched: int = 0
    leagues_skipped: int = 0  # forming leagues without a season start
    members_notified: int = 0
    member_failures: int = 0
    league_failures: int = 0
    notified_league_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "target_date": self.target_date.isoformat(),
            "leagues_scanned": self.leagues_scanned,
            "leagues_matched": self.leagues_matched,
            "leagues_skipped": self.leagues_skipped,
            "members_notified": self.members_notified,
            "member_failures": self.member_failures,
            "league_failures": self.league_failures,
        }


@dataclass(frozen=True)
class _LeagueSnapshot:
    id: str
    name: str
    sport: Optional[str]
    season_start: Optional[datetime]


async def run_reminder_sweep(
    session: AsyncSession,
    today: Optional[date] = None,
    gateway: Optional[PushGateway] = None,
    concurrency: int = None,
    tz_name: Optional[str] = None,
) -> ReminderSweepResult:
    """
    Send one-week reminders for every forming league starting on today + 7.

    Args:
        session: Database session (all reads stay on this session)
        today: Calendar date to sweep for; defaults to today in the league zone
        gateway: Optional push gateway override
        concurrency: Max concurrent dispatches (defaults to NOTIFICATION_CONCURRENCY)
        tz_name: Optional time zone override

    Returns:
        ReminderSweepResult
    """
    today = today or league_today(tz_name)
    target_date = today + timedelta(days=REMINDER_LEAD_DAYS)
    semaphore = asyncio.Semaphore(concurrency or NOTIFICATION_CONCURRENCY)

    leagues = await data_service.list_leagues_by_status(session, LeagueStatus.FORMING)
    # Plain snapshots: a rollback after a failing league expires ORM instances
    snapshots = [_LeagueSnapshot(l.id, l.name, l.sport, l.season_start) for l in leagues]
    result = ReminderSweepResult(target_date=target_date, leagues_scanned=len(snapshots))

    for league in snapshots:
        if league.season_start is None:
            result.leagues_skipped += 1
            continue
        try:
            start_date = league_local_date(league.season_start, tz_name)
            if start_date != target_date:
                continue
            result.leagues_matched += 1
            notified, failed = await _remind_league(session, league, start_date, gateway, semaphore)
            result.members_notified += notified
            result.member_failures += failed
            result.notified_league_ids.append(league.id)
        except Exception as e:
            result.league_failures += 1
            logger.error(f"Error sending reminders for league {league.id}: {e}", exc_info=True)
            await session.rollback()

    logger.info(
        f"League reminder sweep for {target_date.isoformat()}: "
        f"{result.leagues_matched}/{result.leagues_scanned} league(s) matched, "
        f"{result.members_notified} member(s) notified, "
        f"{result.member_failures + result.league_failures} failure(s)"
    )
    return result


async def _remind_league(
    session: AsyncSession,
    league: _LeagueSnapshot,
    start_date: date,
    gateway: Optional[PushGateway],
    semaphore: asyncio.Semaphore,
):
    """Fan out reminders to a league's registered members. Returns (notified, failed)."""
    members = await data_service.get_registered_members(session, league.id)
    recipients = [(m.user_id, m.user_name) for m in members]
    tokens_by_user = await notification_service.load_tokens_by_user(
        session, [user_id for user_id, _ in recipients]
    )
    template = notification_service.build_reminder_notification(
        league_id=league.id,
        league_name=league.name,
        sport=league.sport,
        start_date=start_date,
    )

    async def _notify(user_id: str):
        async with semaphore:
            request = NotificationRequest(
                title=template["title"],
                body=template["body"],
                data=template["data"],
                tokens=tokens_by_user.get(user_id, []),
            )
            return await notification_service.deliver(request, gateway=gateway)

    outcomes = await asyncio.gather(
        *[_notify(user_id) for user_id, _ in recipients],
        return_exceptions=True,
    )

    notified = failed = 0
    for (user_id, user_name), outcome in zip(recipients, outcomes):
        if isinstance(outcome, Exception):
            failed += 1
            logger.warning(
                f"Failed to send reminder to {user_name!r} ({user_id}) for league {league.id}: {outcome}"
            )
        elif not outcome.success:
            failed += 1
        else:
            notified += 1
    return notified, failed


class ReminderScheduler:
    """Background worker that runs the reminder sweep once a day."""

    def __init__(
        self,
        hour: int = REMINDER_HOUR,
        minute: int = REMINDER_MINUTE,
        tz_name: Optional[str] = None,
    ):
        self.hour = hour
        self.minute = minute
        self.tz_name = tz_name
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        """Start the background reminder worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._schedule_loop())
            logger.info(
                f"League reminder worker started (daily at {self.hour:02d}:{self.minute:02d})"
            )

    def stop(self) -> None:
        """Stop the background reminder worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("League reminder worker stopped")

    def seconds_until_next_run(self, now: Optional[datetime] = None) -> float:
        now = now or utcnow()
        run_at = next_run_at(self.hour, self.minute, self.tz_name, now=now)
        return max((run_at - now).total_seconds(), 0.0)

    async def _schedule_loop(self) -> None:
        """Sleep until the next run time, sweep, repeat until stopped."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.seconds_until_next_run()
                )
                # If wait_for returns normally, stop_event was set → exit
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in league reminder worker: {e}", exc_info=True)

    async def run_once(self, today: Optional[date] = None) -> ReminderSweepResult:
        """Run one sweep in a fresh database session."""
        async with db.AsyncSessionLocal() as session:
            return await run_reminder_sweep(session, today=today, tz_name=self.tz_name)


# Global singleton
_reminder_scheduler = ReminderScheduler()


def get_reminder_scheduler() -> ReminderScheduler:
    """Get the global reminder scheduler instance."""
    return _reminder_scheduler
