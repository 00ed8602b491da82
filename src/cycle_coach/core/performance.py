"""
Pure performance aggregation.

Turns a goal plus the log entries of its cycle into a PerformanceSnapshot.
The result depends only on the multiset of matching entries, never on
their order.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .config import SNAPSHOT_PRECISION
from .models import DoneExerciseLogEntry, Goal, PerformanceSnapshot


def round_half_up(value: float, places: int = SNAPSHOT_PRECISION) -> float:
    """Round with halves away from zero, so 21.25 becomes 21.3 (not 21.2)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def entries_for_goal(
    goal_id: int, entries: Iterable[DoneExerciseLogEntry]
) -> list[DoneExerciseLogEntry]:
    """Return the entries that reference ``goal_id``."""
    return [e for e in entries if e.goal_id == goal_id]


def aggregate(goal: Goal, entries: Iterable[DoneExerciseLogEntry]) -> PerformanceSnapshot:
    """
    Compute the performance snapshot for one goal.

    Entries for other goals are ignored.  Missing reps count as 0 and
    missing weight as 0 kg.  was_completed compares against the rounded
    average so the flag always agrees with the reported average.

    Args:
        goal: Goal whose targets define "meeting the target"
        entries: Log entries (any goals, any order)

    Returns:
        PerformanceSnapshot with decimal fields rounded to one place
    """
    target_reps = goal.reps or 0
    reps_list: list[int] = []
    weights: list[float] = []
    volumes: list[float] = []
    sets_meeting_target = 0

    for entry in entries_for_goal(goal.id, entries):
        reps = entry.reps or 0
        weight = entry.weight or 0.0
        reps_list.append(reps)
        weights.append(weight)
        volumes.append(reps * weight)
        if reps >= target_reps:
            sets_meeting_target += 1

    total_sets = len(reps_list)
    total_reps = sum(reps_list)
    average_reps = total_reps / total_sets if total_sets else 0.0
    average_weight = math.fsum(weights) / total_sets if total_sets else 0.0
    average_reps = round_half_up(average_reps)

    return PerformanceSnapshot(
        total_sets_completed=total_sets,
        total_reps_completed=total_reps,
        average_reps_per_set=average_reps,
        average_weight_per_set=round_half_up(average_weight),
        total_volume=round_half_up(math.fsum(volumes)),
        max_weight_in_set=round_half_up(max(weights, default=0.0)),
        max_reps_in_set=max(reps_list, default=0),
        sets_meeting_target=sets_meeting_target,
        was_completed=total_sets >= goal.sets and average_reps >= target_reps,
        planned_sets=goal.sets,
        planned_reps=target_reps,
    )


def aggregate_all(
    goals: Iterable[Goal], entries: Iterable[DoneExerciseLogEntry]
) -> dict[int, PerformanceSnapshot]:
    """Snapshot every goal against the same entry list, keyed by goal id."""
    entry_list = list(entries)
    return {goal.id: aggregate(goal, entry_list) for goal in goals}
