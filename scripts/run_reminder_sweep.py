#!/usr/bin/env python3
"""
Run the league one-week reminder sweep once.

Usage:
    python scripts/run_reminder_sweep.py
    python scripts/run_reminder_sweep.py --today 2026-03-01
"""

import asyncio
import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# Add the project root to the path so we can import league_engine modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from league_engine.database.db import AsyncSessionLocal
from league_engine.services.reminder_service import run_reminder_sweep


async def main():
    parser = argparse.ArgumentParser(description="Send 'starts in 1 week' league reminders")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Calendar date to sweep for (YYYY-MM-DD, league time zone). Defaults to today.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    async with AsyncSessionLocal() as session:
        result = await run_reminder_sweep(session, today=args.today)

    print(f"✅ Reminder sweep for leagues starting {result.target_date.isoformat()}")
    print(f"   Leagues scanned: {result.leagues_scanned}")
    print(f"   Leagues matched: {result.leagues_matched}")
    print(f"   Members notified: {result.members_notified}")
    if result.member_failures or result.league_failures:
        print(f"❌ Failures: {result.member_failures} member(s), {result.league_failures} league(s)")


if __name__ == "__main__":
    asyncio.run(main())
