"""
Working set of goals for the active cycle, plus tag filters.
"""

from typing import Iterable

from .models import Goal


class GoalPool:
    """
    Holds the session's copy of active goals and derives filtered candidates.

    Filters use union semantics within a dimension (any shared tag matches)
    and intersection across dimensions.  An empty filter matches everything.
    Inactive goals are never candidates, even if present in the working set.
    """

    def __init__(self, goals: Iterable[Goal] = ()):
        self._goals: list[Goal] = list(goals)
        self._categories: frozenset[str] = frozenset()
        self._equipment: frozenset[str] = frozenset()

    @property
    def goals(self) -> tuple[Goal, ...]:
        return tuple(self._goals)

    @property
    def category_filters(self) -> frozenset[str]:
        return self._categories

    @property
    def equipment_filters(self) -> frozenset[str]:
        return self._equipment

    def set_goals(self, goals: Iterable[Goal]) -> None:
        self._goals = list(goals)

    def set_filters(
        self, categories: Iterable[str] = (), equipment: Iterable[str] = ()
    ) -> None:
        self._categories = frozenset(categories)
        self._equipment = frozenset(equipment)

    def clear_filters(self) -> None:
        self.set_filters((), ())

    def get(self, goal_id: int) -> Goal | None:
        for goal in self._goals:
            if goal.id == goal_id:
                return goal
        return None

    def remove(self, goal_id: int) -> Goal | None:
        """Drop a goal from the working set; returns it, or None if absent."""
        goal = self.get(goal_id)
        if goal is not None:
            self._goals = [g for g in self._goals if g.id != goal_id]
        return goal

    def matches(self, goal: Goal) -> bool:
        if not goal.active:
            return False
        if self._categories and self._categories.isdisjoint(goal.categories):
            return False
        if self._equipment and self._equipment.isdisjoint(goal.equipment):
            return False
        return True

    def filtered_candidates(self) -> list[Goal]:
        return [g for g in self._goals if self.matches(g)]

    def available_categories(self) -> list[str]:
        """Sorted unique category tags across the working set."""
        return sorted({c for g in self._goals for c in g.categories})

    def available_equipment(self) -> list[str]:
        """Sorted unique equipment tags across the working set."""
        return sorted({e for g in self._goals for e in g.equipment})
