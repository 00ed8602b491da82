"""Next-exercise selection with the no-immediate-repeat rule."""

import random
from typing import Sequence

from .models import Goal


def eligible_goals(candidates: Sequence[Goal], exclude_id: int | None = None) -> list[Goal]:
    """
    Candidates the selector may pick from.

    The excluded goal is dropped only when something else remains, so a
    single-goal pool still yields that goal.
    """
    pool = list(candidates)
    if exclude_id is None or len(pool) <= 1:
        return pool
    remaining = [g for g in pool if g.id != exclude_id]
    return remaining or pool


def select_next(
    candidates: Sequence[Goal],
    exclude_id: int | None = None,
    rng: random.Random | None = None,
) -> Goal | None:
    """
    Pick the next goal uniformly at random.

    Args:
        candidates: Filtered candidate goals
        exclude_id: Goal that must not be repeated (if alternatives exist)
        rng: Random source (module-level random when None)

    Returns:
        Chosen goal, or None when there are no candidates
    """
    pool = eligible_goals(candidates, exclude_id)
    if not pool:
        return None
    return (rng or random).choice(pool)
