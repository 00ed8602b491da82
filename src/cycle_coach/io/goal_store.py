"""
JSONL-based goal storage.

One goal per line in ``goals.jsonl``.  Updates rewrite the whole file;
goal lists are small (tens of goals per cycle).
"""

import logging
from pathlib import Path
from typing import Sequence

from ..core.errors import StoreFailure, ValidationError
from ..core.models import Goal, ProposedGoal, now_iso
from .serializers import goal_to_json_line, json_line_to_goal

logger = logging.getLogger(__name__)


class JsonlGoalStore:
    """
    Goal store backed by a JSONL file.

    Every public method is a coroutine so the store satisfies the GoalStore
    contract; any I/O or parse problem surfaces as StoreFailure.
    """

    def __init__(self, goals_path: str | Path):
        self.goals_path = Path(goals_path)

    def exists(self) -> bool:
        return self.goals_path.exists()

    def init(self) -> None:
        """Create an empty goals file (and parent directories) if missing."""
        self.goals_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.goals_path.exists():
            self.goals_path.touch()

    # -- GoalStore contract -------------------------------------------------

    async def list_active_goals(self, user_id: str, cycle: int) -> list[Goal]:
        return [g for g in self._load() if g.user_id == user_id and g.cycle == cycle and g.active]

    async def set_goal_active(self, goal_id: int, active: bool) -> Goal:
        goals = self._load()
        for i, goal in enumerate(goals):
            if goal.id == goal_id:
                goal.active = active
                goal.updated_at = now_iso()
                goals[i] = goal
                self._write(goals)
                logger.info("goal %s active=%s", goal_id, active)
                return goal
        raise StoreFailure(f"Goal {goal_id} not found")

    async def bulk_insert_goals(
        self, user_id: str, cycle: int, proposals: Sequence[ProposedGoal]
    ) -> list[Goal]:
        goals = self._load()
        next_id = max((g.id for g in goals), default=0) + 1
        stamp = now_iso()
        created: list[Goal] = []
        for offset, p in enumerate(proposals):
            try:
                goal = Goal(
                    id=next_id + offset,
                    user_id=user_id,
                    exercise_name=p.exercise_name,
                    sets=p.sets,
                    reps=p.reps,
                    weight=p.weight,
                    duration_seconds=p.duration_seconds,
                    cycle=cycle,
                    categories=list(p.categories),
                    equipment=list(p.equipment),
                    active=True,
                    notes=p.notes,
                    exercise_library_id=p.exercise_library_id,
                    created_at=stamp,
                    updated_at=stamp,
                )
            except ValueError as e:
                raise StoreFailure(f"Cannot insert goal {p.exercise_name!r}: {e}") from e
            created.append(goal)
        self._write(goals + created)
        logger.info("inserted %d goals into cycle %d", len(created), cycle)
        return created

    async def list_cycles_for_user(self, user_id: str) -> list[int]:
        return sorted({g.cycle for g in self._load() if g.user_id == user_id})

    # -- management helpers (CLI) -------------------------------------------

    async def add_goal(self, proposal: ProposedGoal, user_id: str, cycle: int) -> Goal:
        """Insert a single goal; same validation as bulk insert."""
        (goal,) = await self.bulk_insert_goals(user_id, cycle, [proposal])
        return goal

    async def list_goals(self, user_id: str, cycle: int | None = None) -> list[Goal]:
        """All goals for a user (active or not), optionally limited to one cycle."""
        return [
            g
            for g in self._load()
            if g.user_id == user_id and (cycle is None or g.cycle == cycle)
        ]

    async def get_goal(self, goal_id: int) -> Goal | None:
        for goal in self._load():
            if goal.id == goal_id:
                return goal
        return None

    # -- internals ----------------------------------------------------------

    def _load(self) -> list[Goal]:
        if not self.goals_path.exists():
            raise StoreFailure(f"Goals file not found: {self.goals_path}. Run 'init' first.")

        goals: list[Goal] = []
        try:
            with open(self.goals_path, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    if not line.strip():
                        continue
                    try:
                        goals.append(json_line_to_goal(line))
                    except ValidationError as e:
                        raise StoreFailure(
                            f"Error parsing line {line_num} in {self.goals_path}: {e}"
                        ) from e
        except OSError as e:
            raise StoreFailure(f"Cannot read {self.goals_path}: {e}") from e
        return goals

    def _write(self, goals: list[Goal]) -> None:
        try:
            with open(self.goals_path, "w", encoding="utf-8") as f:
                for goal in goals:
                    f.write(goal_to_json_line(goal) + "\n")
        except OSError as e:
            raise StoreFailure(f"Cannot write {self.goals_path}: {e}") from e
