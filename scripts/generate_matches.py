#!/usr/bin/env python3
"""
Generate the round-robin schedule for a league on behalf of its organizer.

Usage:
    python scripts/generate_matches.py --league-id L1 --organizer-id U0
    python scripts/generate_matches.py --league-id L1 --organizer-id U0 --seed 42
"""

import asyncio
import argparse
import random
import sys
from pathlib import Path

# Add the project root to the path so we can import league_engine modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from league_engine.database.db import AsyncSessionLocal
from league_engine.services import data_service
from league_engine.services.match_generation_service import (
    MatchGenerationError,
    generate_league_matches,
)


async def main():
    parser = argparse.ArgumentParser(description="Generate league matches")
    parser.add_argument("--league-id", type=str, required=True, help="League to generate for")
    parser.add_argument("--organizer-id", type=str, required=True, help="User ID of the league organizer")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the initial shuffle")
    args = parser.parse_args()

    rng = random.Random(args.seed) if args.seed is not None else None

    async with AsyncSessionLocal() as session:
        try:
            result = await generate_league_matches(session, args.league_id, args.organizer_id, rng=rng)
        except MatchGenerationError as e:
            print(f"❌ {e.code}: {e}")
            sys.exit(1)

        print(f"✅ Generated {result.match_count} match(es) over {result.rounds} round(s)")
        for match in await data_service.list_league_matches(session, args.league_id):
            print(
                f"   Round {match.round}: {match.player1_name} vs {match.player2_name} "
                f"({match.scheduled_date:%Y-%m-%d})"
            )


if __name__ == "__main__":
    asyncio.run(main())
