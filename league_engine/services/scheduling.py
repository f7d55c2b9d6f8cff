"""
Round-robin fixture generation for leagues (rotation / circle method).

The registered members are shuffled once, then for each round consecutive
pairs (0,1), (2,3), ... play each other and the ordering rotates by moving
the first member to the end. A league asks for a fixed number of match-weeks
regardless of its size, so repeated opponents are possible once the number of
rounds exceeds one full cycle.

Odd member counts leave the last member of the current ordering idle for that
round; no bye fixture is produced.

Pure functions only: randomness comes from an explicit random.Random so the
same seed always yields the same schedule.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, TypeVar

from league_engine.utils.constants import MATCH_INTERVAL_DAYS

T = TypeVar("T")


@dataclass(frozen=True)
class Pairing:
    """One fixture produced by the rotation: round is 1-indexed."""

    round: int
    player1: object
    player2: object


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a shuffled copy of items; the input is never mutated."""
    result = list(items)
    (rng or random.Random()).shuffle(result)
    return result


def rotation_pairings(ordering: Sequence[T], rounds: int) -> List[Pairing]:
    """
    Pair consecutive elements of ordering for the given number of rounds,
    rotating the ordering (first element to the end) after each round.

    Returns floor(len(ordering) / 2) * rounds pairings.
    """
    if rounds < 0:
        raise ValueError("rounds must be non-negative")
    order = list(ordering)
    pairings: List[Pairing] = []
    for round_index in range(rounds):
        for i in range(0, len(order) - 1, 2):
            pairings.append(Pairing(round=round_index + 1, player1=order[i], player2=order[i + 1]))
        if order:
            order.append(order.pop(0))
    return pairings


def round_robin_pairings(
    members: Sequence[T],
    rounds: int,
    rng: Optional[random.Random] = None,
) -> List[Pairing]:
    """Shuffle members once with rng, then build rotation pairings."""
    return rotation_pairings(shuffled(members, rng), rounds)


def scheduled_date_for_round(season_start: datetime, round_number: int) -> datetime:
    """Weekly cadence: round 1 is played on season start."""
    return season_start + timedelta(days=(round_number - 1) * MATCH_INTERVAL_DAYS)
