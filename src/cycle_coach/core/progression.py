"""
Next-cycle progression rules.

Proposes sets/reps for the next cycle from a goal and its performance in
the cycle just finished.  Rules are an ordered table of (guard, action)
pairs; the first guard that holds decides the proposal.

Tiers:
  1. no data          -> repeat
  2. target met       -> add reps, else add a set, else keep and add weight
                         (bigger rep jump when the target was significantly exceeded)
  3. target missed    -> repeat, flagged when compliance is low
"""

from dataclasses import dataclass, replace
from typing import Callable, Iterable, Sequence

from .config_loader import ProgressionRules
from .errors import ValidationError
from .models import DoneExerciseLogEntry, Goal, PerformanceSnapshot, ProposedGoal
from .performance import aggregate, entries_for_goal


@dataclass(frozen=True)
class ProgressionFacts:
    """Everything a rule guard or action may look at."""

    goal: Goal
    snapshot: PerformanceSnapshot | None
    planned_sets: int
    planned_reps: int
    significantly_exceeded: bool
    sets_compliance: float
    reps_compliance: float

    @property
    def completed(self) -> bool:
        return self.snapshot is not None and self.snapshot.was_completed

    @property
    def has_rep_target(self) -> bool:
        return self.goal.reps is not None


@dataclass(frozen=True)
class Proposal:
    sets: int
    reps: int | None
    rationale: str


Guard = Callable[[ProgressionFacts, ProgressionRules], bool]
Action = Callable[[ProgressionFacts, ProgressionRules], Proposal]


@dataclass(frozen=True)
class ProgressionRule:
    name: str
    guard: Guard
    action: Action


def _ratio(done: float, planned: float) -> float:
    return done / planned if planned else 0.0


def build_facts(
    goal: Goal, snapshot: PerformanceSnapshot | None, rules: ProgressionRules
) -> ProgressionFacts:
    planned_sets = goal.sets
    planned_reps = goal.reps or 0
    if snapshot is None:
        return ProgressionFacts(goal, None, planned_sets, planned_reps, False, 0.0, 0.0)

    factor = rules.significant_exceed_factor
    significant = (
        snapshot.total_sets_completed >= planned_sets * factor
        and snapshot.average_reps_per_set >= planned_reps * factor
    )
    return ProgressionFacts(
        goal=goal,
        snapshot=snapshot,
        planned_sets=planned_sets,
        planned_reps=planned_reps,
        significantly_exceeded=significant,
        sets_compliance=_ratio(snapshot.total_sets_completed, planned_sets),
        reps_compliance=_ratio(snapshot.average_reps_per_set, planned_reps),
    )


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def _no_data(f: ProgressionFacts, r: ProgressionRules) -> bool:
    return f.snapshot is None


def _room_for_reps(f: ProgressionFacts, r: ProgressionRules) -> bool:
    return (
        f.snapshot is not None
        and f.has_rep_target
        and f.snapshot.average_reps_per_set < r.reps_ceiling
    )


def _room_for_sets(f: ProgressionFacts, r: ProgressionRules) -> bool:
    # The added set must keep the done-set count under the ceiling.
    return (
        f.snapshot is not None
        and f.snapshot.total_sets_completed + r.sets_increment < r.sets_ceiling
    )


def _significant(f: ProgressionFacts, r: ProgressionRules) -> bool:
    return f.completed and f.significantly_exceeded


def _adequate(f: ProgressionFacts, r: ProgressionRules) -> bool:
    return f.completed and not f.significantly_exceeded


def _low_compliance(f: ProgressionFacts, r: ProgressionRules) -> bool:
    threshold = r.low_compliance_threshold
    return f.sets_compliance < threshold or f.reps_compliance < threshold


def _always(f: ProgressionFacts, r: ProgressionRules) -> bool:
    return True


def _both(a: Guard, b: Guard) -> Guard:
    return lambda f, r: a(f, r) and b(f, r)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def _repeat(rationale: str) -> Action:
    return lambda f, r: Proposal(f.goal.sets, f.goal.reps, rationale)


def _add_reps(increment: Callable[[ProgressionRules], int], label: str) -> Action:
    def action(f: ProgressionFacts, r: ProgressionRules) -> Proposal:
        n = increment(r)
        reps = (f.goal.reps or 0) + n
        return Proposal(f.goal.sets, reps, f"{label} — +{n} reps.")

    return action


def _add_sets(label: str) -> Action:
    def action(f: ProgressionFacts, r: ProgressionRules) -> Proposal:
        n = r.sets_increment
        suffix = "set" if n == 1 else "sets"
        return Proposal(f.goal.sets + n, f.goal.reps, f"{label} — +{n} {suffix}.")

    return action


def _repeat_low_compliance(f: ProgressionFacts, r: ProgressionRules) -> Proposal:
    pct = f"{r.low_compliance_threshold:.0%}"
    return Proposal(f.goal.sets, f.goal.reps, f"repeat — performance below {pct} of target.")


PROGRESSION_RULES: tuple[ProgressionRule, ...] = (
    ProgressionRule("no_data", _no_data, _repeat("repeat — no performance data.")),
    ProgressionRule(
        "strong_reps",
        _both(_significant, _room_for_reps),
        _add_reps(lambda r: r.strong_reps_increment, "strong progress"),
    ),
    ProgressionRule(
        "strong_sets", _both(_significant, _room_for_sets), _add_sets("strong progress")
    ),
    ProgressionRule(
        "strong_maintain",
        _significant,
        _repeat("maintain — strong progress, increase weight instead."),
    ),
    ProgressionRule(
        "adequate_reps",
        _both(_adequate, _room_for_reps),
        _add_reps(lambda r: r.adequate_reps_increment, "progress"),
    ),
    ProgressionRule("adequate_sets", _both(_adequate, _room_for_sets), _add_sets("progress")),
    ProgressionRule("adequate_maintain", _adequate, _repeat("maintain — increase weight instead.")),
    ProgressionRule("low_compliance", _low_compliance, _repeat_low_compliance),
    ProgressionRule(
        "consolidate", _always, _repeat("repeat — close to meeting target, consolidate.")
    ),
)


class ProgressionAdvisor:
    """Applies the rule table to produce next-cycle proposals."""

    def __init__(
        self,
        rules: ProgressionRules | None = None,
        table: Sequence[ProgressionRule] = PROGRESSION_RULES,
    ):
        self.rules = rules or ProgressionRules()
        self.table = tuple(table)

    def matching_rule(
        self, goal: Goal, snapshot: PerformanceSnapshot | None
    ) -> ProgressionRule:
        facts = build_facts(goal, snapshot, self.rules)
        for rule in self.table:
            if rule.guard(facts, self.rules):
                return rule
        return self.table[-1]

    def suggest(self, goal: Goal, snapshot: PerformanceSnapshot | None = None) -> ProposedGoal:
        """Propose next-cycle targets for one goal.  Never mutates its inputs."""
        facts = build_facts(goal, snapshot, self.rules)
        rule = self.matching_rule(goal, snapshot)
        proposal = rule.action(facts, self.rules)

        sets = max(self.rules.min_sets, proposal.sets)
        reps = proposal.reps
        if reps is not None:
            reps = max(self.rules.min_reps, reps)

        return ProposedGoal(
            exercise_name=goal.exercise_name,
            sets=sets,
            reps=reps,
            original_goal_id=goal.id,
            rationale=proposal.rationale,
            weight=goal.weight,
            duration_seconds=goal.duration_seconds,
            categories=list(goal.categories),
            equipment=list(goal.equipment),
            notes=goal.notes,
            exercise_library_id=goal.exercise_library_id,
            performance=replace(snapshot) if snapshot is not None else None,
            include=True,
        )

    def propose_next_cycle(
        self, goals: Iterable[Goal], entries: Iterable[DoneExerciseLogEntry]
    ) -> list[ProposedGoal]:
        """
        Proposals for every goal of a finished cycle.

        Goals with no logged sets get no snapshot and are proposed unchanged.
        """
        entry_list = list(entries)
        proposals = []
        for goal in goals:
            snapshot = aggregate(goal, entry_list) if entries_for_goal(goal.id, entry_list) else None
            proposals.append(self.suggest(goal, snapshot))
        return proposals


def included_proposals(proposals: Iterable[ProposedGoal]) -> list[ProposedGoal]:
    """Proposals the user kept; raises ValidationError when none are left."""
    kept = [p for p in proposals if p.include]
    if not kept:
        raise ValidationError("Select at least one goal to include in the next cycle.")
    return kept


def next_cycle_number(cycles: Iterable[int]) -> int:
    """One past the highest existing cycle, or 1 for a new user."""
    return max(cycles, default=0) + 1
