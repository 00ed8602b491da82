"""
JSON serialization for goals and done-exercise log entries.

Handles conversion between dataclasses and JSON-compatible dicts, plus
parsing of the short set notation used on the command line.
"""

import json
import re
from typing import Any

from ..core.errors import ValidationError
from ..core.models import DoneExerciseLogEntry, Goal, LogSetRequest

__all__ = [
    "ValidationError",
    "dict_to_entry",
    "dict_to_goal",
    "entry_to_dict",
    "entry_to_json_line",
    "goal_to_dict",
    "goal_to_json_line",
    "json_line_to_entry",
    "json_line_to_goal",
    "parse_set_entry",
    "parse_tags",
]


def validate_non_negative(value: int | float | None, name: str) -> int | float | None:
    """
    Validate that an optional value is non-negative.

    Args:
        value: Value to validate (None passes)
        name: Name for error message

    Returns:
        The value if valid

    Raises:
        ValidationError: If value is negative
    """
    if value is not None and value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def validate_positive(value: int | float, name: str) -> int | float:
    """
    Validate that a value is positive.

    Raises:
        ValidationError: If value is not positive
    """
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")
    return value


def _opt_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def _opt_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _require(data: dict[str, Any], *keys: str) -> None:
    missing = [k for k in keys if k not in data]
    if missing:
        raise ValidationError(f"Missing fields: {', '.join(missing)}")


# =============================================================================
# Goals
# =============================================================================


def goal_to_dict(goal: Goal) -> dict[str, Any]:
    """
    Convert Goal to JSON-compatible dict.

    The derived ``performance`` field is never written.
    """
    return {
        "id": goal.id,
        "user_id": goal.user_id,
        "exercise_name": goal.exercise_name,
        "sets": goal.sets,
        "reps": goal.reps,
        "weight": goal.weight,
        "duration_seconds": goal.duration_seconds,
        "microcycle": goal.cycle,
        "active": 1 if goal.active else 0,
        "categories": list(goal.categories),
        "equipment_needed": list(goal.equipment),
        "notes": goal.notes,
        "exercise_library_id": goal.exercise_library_id,
        "created_at": goal.created_at,
        "updated_at": goal.updated_at,
    }


def dict_to_goal(data: dict[str, Any]) -> Goal:
    """
    Convert dict to Goal.

    Raises:
        ValidationError: If data is invalid
    """
    _require(data, "id", "exercise_name", "sets", "microcycle")
    validate_non_negative(data["sets"], "sets")
    validate_non_negative(data.get("reps"), "reps")
    validate_non_negative(data.get("weight"), "weight")
    validate_non_negative(data.get("duration_seconds"), "duration_seconds")
    validate_positive(data["microcycle"], "microcycle")

    try:
        return Goal(
            id=int(data["id"]),
            user_id=str(data.get("user_id", "")),
            exercise_name=str(data["exercise_name"]),
            sets=int(data["sets"]),
            reps=_opt_int(data.get("reps")),
            weight=_opt_float(data.get("weight")),
            duration_seconds=_opt_int(data.get("duration_seconds")),
            cycle=int(data["microcycle"]),
            active=bool(data.get("active", 1)),
            categories=list(data.get("categories") or []),
            equipment=list(data.get("equipment_needed") or []),
            notes=data.get("notes"),
            exercise_library_id=data.get("exercise_library_id"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid goal {data.get('id')!r}: {e}") from e


def goal_to_json_line(goal: Goal) -> str:
    return json.dumps(goal_to_dict(goal), separators=(",", ":"))


def json_line_to_goal(line: str) -> Goal:
    """
    Deserialize a JSON line to a Goal.

    Raises:
        ValidationError: If JSON is invalid or data validation fails
    """
    try:
        data = json.loads(line.strip())
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e
    return dict_to_goal(data)


# =============================================================================
# Done-exercise log entries
# =============================================================================


def entry_to_dict(entry: DoneExerciseLogEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "goal_id": entry.goal_id,
        "goal_microcycle_at_log": entry.cycle,
        "reps_done": entry.reps,
        "sets_done_for_this_log": entry.sets_done,
        "failed_set": entry.failed,
        "weight_used": entry.weight,
        "duration_seconds_done": entry.duration_seconds,
        "notes": entry.notes,
        "logged_at": entry.logged_at,
    }


def dict_to_entry(data: dict[str, Any]) -> DoneExerciseLogEntry:
    """
    Convert dict to DoneExerciseLogEntry.

    Raises:
        ValidationError: If data is invalid
    """
    _require(data, "goal_id", "goal_microcycle_at_log")
    validate_non_negative(data.get("reps_done"), "reps_done")
    validate_non_negative(data.get("weight_used"), "weight_used")
    validate_non_negative(data.get("duration_seconds_done"), "duration_seconds_done")

    try:
        return DoneExerciseLogEntry(
            id=_opt_int(data.get("id")),
            user_id=str(data.get("user_id", "")),
            goal_id=int(data["goal_id"]),
            cycle=int(data["goal_microcycle_at_log"]),
            reps=_opt_int(data.get("reps_done")),
            sets_done=int(data.get("sets_done_for_this_log", 1)),
            failed=bool(data.get("failed_set", False)),
            weight=_opt_float(data.get("weight_used")),
            duration_seconds=_opt_int(data.get("duration_seconds_done")),
            notes=data.get("notes"),
            logged_at=data.get("logged_at", ""),
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid log entry {data.get('id')!r}: {e}") from e


def entry_to_json_line(entry: DoneExerciseLogEntry) -> str:
    return json.dumps(entry_to_dict(entry), separators=(",", ":"))


def json_line_to_entry(line: str) -> DoneExerciseLogEntry:
    """
    Deserialize a JSON line to a DoneExerciseLogEntry.

    Raises:
        ValidationError: If JSON is invalid or data validation fails
    """
    try:
        data = json.loads(line.strip())
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e
    return dict_to_entry(data)


# =============================================================================
# Command-line notation
# =============================================================================


def parse_tags(text: str | None) -> list[str]:
    """Split a comma-separated tag list, trimming blanks: 'push, core' -> ['push', 'core']."""
    if not text:
        return []
    return [t.strip() for t in text.split(",") if t.strip()]


def parse_set_entry(text: str) -> LogSetRequest:
    """
    Parse one set in short notation.

    Formats (weight and duration are optional, in any combination):
        10          10 reps
        10@20       10 reps at 20 kg
        10@+22.5    leading '+' accepted on the weight
        45s         timed set of 45 seconds, no reps
        10@20 30s   reps, weight and duration
        8!          trailing '!' marks a failed set

    Raises:
        ValidationError: If the notation is not recognised
    """
    raw = text.strip()
    if not raw:
        raise ValidationError("Set cannot be empty")

    failed = raw.endswith("!")
    if failed:
        raw = raw[:-1].strip()

    request = LogSetRequest(failed=failed)
    tokens = raw.split()
    if not tokens or len(tokens) > 2:
        raise _invalid_set(text)

    for token in tokens:
        match_duration = re.fullmatch(r"(\d+)s", token, re.IGNORECASE)
        match_reps = re.fullmatch(r"(\d+)(?:@\+?(\d+(?:\.\d+)?))?", token)
        if match_duration and request.duration_seconds is None:
            request.duration_seconds = int(match_duration.group(1))
        elif match_reps and request.reps is None:
            request.reps = int(match_reps.group(1))
            if match_reps.group(2) is not None:
                request.weight = float(match_reps.group(2))
        else:
            raise _invalid_set(text)

    return request


def _invalid_set(text: str) -> ValidationError:
    return ValidationError(
        f"Invalid set format: '{text}'.\n"
        "Use: reps[@weight] [Ns], e.g. 10, 10@20, 45s, 10@20 30s (append ! for a failed set)."
    )
