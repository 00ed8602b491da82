"""
Data models for cycle-coach.

Dataclasses for goals, logged sets, derived performance snapshots,
next-cycle proposals and timer state.  Goals and log entries are validated
on construction; snapshots and proposals are produced by the engine and
trusted.
"""

from dataclasses import dataclass, field
from datetime import datetime


def now_iso() -> str:
    """Current local time as an ISO-8601 string (seconds precision)."""
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class PerformanceSnapshot:
    """
    Aggregate statistics for one goal over its logged sets in one cycle.

    Always derived from (goal, log entries); never stored on its own.
    Decimal fields are rounded to one decimal place.
    """

    total_sets_completed: int = 0
    total_reps_completed: int = 0
    average_reps_per_set: float = 0.0
    average_weight_per_set: float = 0.0
    total_volume: float = 0.0
    max_weight_in_set: float = 0.0
    max_reps_in_set: int = 0
    sets_meeting_target: int = 0
    was_completed: bool = False
    planned_sets: int = 0
    planned_reps: int = 0


@dataclass
class Goal:
    """
    A planned exercise target within a training cycle (microcycle).

    ``reps`` is None for purely timed goals.  ``duration_seconds`` is a
    per-set time target, independent of reps.
    """

    id: int
    exercise_name: str
    sets: int
    cycle: int
    reps: int | None = None
    weight: float | None = None
    duration_seconds: int | None = None
    categories: list[str] = field(default_factory=list)
    equipment: list[str] = field(default_factory=list)
    active: bool = True
    notes: str | None = None
    user_id: str = ""
    exercise_library_id: str | None = None
    created_at: str = ""
    updated_at: str = ""
    performance: PerformanceSnapshot | None = None

    def __post_init__(self) -> None:
        """Validate goal targets."""
        if not self.exercise_name or not self.exercise_name.strip():
            raise ValueError("exercise_name must be a non-empty string")
        if self.sets < 0:
            raise ValueError("sets must be non-negative")
        if self.reps is not None and self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.weight is not None and self.weight < 0:
            raise ValueError("weight must be non-negative")
        if self.duration_seconds is not None and self.duration_seconds < 0:
            raise ValueError("duration_seconds must be non-negative")
        if self.cycle < 1:
            raise ValueError("cycle must be >= 1")

    @property
    def is_timed(self) -> bool:
        """True when the goal carries a per-set duration target."""
        return self.duration_seconds is not None

    def describe_target(self) -> str:
        """Short human-readable target, e.g. '3 x 10 @ 20.0 kg' or '3 x 45s'."""
        parts = [f"{self.sets} x"]
        if self.reps is not None:
            parts.append(f"{self.reps}")
        if self.duration_seconds is not None:
            parts.append(f"{self.duration_seconds}s")
        text = " ".join(parts)
        if self.weight:
            text += f" @ {self.weight:.1f} kg"
        return text


@dataclass(frozen=True)
class DoneExerciseLogEntry:
    """
    One completed set, appended to the log and never mutated.

    ``id`` is None until the log store assigns one.
    """

    goal_id: int
    cycle: int
    reps: int | None
    user_id: str = ""
    weight: float | None = None
    duration_seconds: int | None = None
    failed: bool = False
    notes: str | None = None
    logged_at: str = ""
    sets_done: int = 1
    id: int | None = None

    def __post_init__(self) -> None:
        """Validate set data."""
        if self.reps is not None and self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.weight is not None and self.weight < 0:
            raise ValueError("weight must be non-negative")
        if self.duration_seconds is not None and self.duration_seconds < 0:
            raise ValueError("duration_seconds must be non-negative")
        if self.sets_done < 1:
            raise ValueError("sets_done must be positive")


@dataclass
class LogSetRequest:
    """What the user entered for one set, before it becomes a log entry."""

    reps: int | None = None
    weight: float | None = None
    duration_seconds: int | None = None
    failed: bool = False
    notes: str | None = None


@dataclass
class ProposedGoal:
    """
    Candidate goal for the next cycle.

    Same shape as Goal minus identity/cycle/timestamps.  ``include`` is the
    user's toggle before the proposal set is committed.
    """

    exercise_name: str
    sets: int
    reps: int | None
    original_goal_id: int | None
    rationale: str
    weight: float | None = None
    duration_seconds: int | None = None
    categories: list[str] = field(default_factory=list)
    equipment: list[str] = field(default_factory=list)
    notes: str | None = None
    exercise_library_id: str | None = None
    performance: PerformanceSnapshot | None = None
    include: bool = True


@dataclass(frozen=True)
class TimerState:
    """Read-only view of a countdown timer."""

    remaining_seconds: int
    running: bool
    completed: bool
