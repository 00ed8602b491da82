"""
Workout session controller.

Owns the current goal, the goal pool and both countdown timers, and is the
only place they change.  Presentation code issues commands (select a cycle,
log a set, skip, pause, change exercise, drive timers) and listens for
SessionEvents.

Store-bound commands are coroutines and single-flight: while one is in
flight ``busy`` is True and any other goal-changing command raises
SessionBusyError.  After close(), timers are stopped and results of
round-trips still in flight are dropped.
"""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Literal, Sequence

from .config import DEFAULT_REST_SECONDS
from .errors import NoSessionError, SessionBusyError, StoreFailure, ValidationError
from .goal_pool import GoalPool
from .interfaces import GoalStore, IdentityContext, LogStore, NotificationSink, NullNotifier
from .models import (
    DoneExerciseLogEntry,
    Goal,
    LogSetRequest,
    PerformanceSnapshot,
    ProposedGoal,
    TimerState,
    now_iso,
)
from .performance import aggregate, aggregate_all
from .progression import ProgressionAdvisor, included_proposals, next_cycle_number
from .selector import select_next
from .timer import CountdownTimer, TickScheduler, TimerEvent

logger = logging.getLogger(__name__)

TimerName = Literal["exercise", "rest"]
SessionEventKind = Literal["goal_changed", "performance_updated", "timer", "cycle_loaded"]


class SessionPhase(str, Enum):
    NO_GOAL = "no_goal"
    ACTIVE = "active"
    LOGGING_SET = "logging_set"


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    goal: Goal | None = None
    snapshot: PerformanceSnapshot | None = None
    timer: TimerEvent | None = None
    cycle: int | None = None


SessionListener = Callable[[SessionEvent], None]


def validate_log_request(goal: Goal, request: LogSetRequest) -> None:
    """
    Check a set submission against the goal's targets.

    Raises:
        ValidationError: Reps missing for a rep goal, duration missing for a
            timed goal, or a negative value
    """
    if goal.reps is not None and request.reps is None:
        raise ValidationError(f"Enter the reps done for {goal.exercise_name}.")
    if goal.is_timed and request.duration_seconds is None:
        raise ValidationError(f"Enter the duration done for {goal.exercise_name}.")
    for name, value in (
        ("reps", request.reps),
        ("weight", request.weight),
        ("duration", request.duration_seconds),
    ):
        if value is not None and value < 0:
            raise ValidationError(f"{name} must be non-negative, got {value}")


class SessionController:
    """Orchestrates goal selection, set logging and timers for one user session."""

    def __init__(
        self,
        goal_store: GoalStore,
        log_store: LogStore,
        identity: IdentityContext,
        notifier: NotificationSink | None = None,
        *,
        advisor: ProgressionAdvisor | None = None,
        scheduler: TickScheduler | None = None,
        rng: random.Random | None = None,
        rest_seconds: int = DEFAULT_REST_SECONDS,
    ):
        self._goal_store = goal_store
        self._log_store = log_store
        self._identity = identity
        self._notifier = notifier or NullNotifier()
        self._advisor = advisor or ProgressionAdvisor()
        self._rng = rng
        self.rest_seconds = rest_seconds

        self._pool = GoalPool()
        self._timers: dict[TimerName, CountdownTimer] = {
            "exercise": CountdownTimer("exercise", 0, scheduler),
            "rest": CountdownTimer("rest", rest_seconds, scheduler),
        }
        for t in self._timers.values():
            t.subscribe(self._on_timer_event)

        self._current: Goal | None = None
        self._phase = SessionPhase.NO_GOAL
        self._cycle: int | None = None
        self._cycles: list[int] = []
        self._busy = False
        self._closed = False
        self._listeners: list[SessionListener] = []

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def current_goal(self) -> Goal | None:
        return self._current

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def cycle(self) -> int | None:
        return self._cycle

    @property
    def cycles(self) -> list[int]:
        return list(self._cycles)

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def closed(self) -> bool:
        return self._closed

    def candidates(self) -> list[Goal]:
        return self._pool.filtered_candidates()

    def active_goals(self) -> list[Goal]:
        """Every goal in the working set, ignoring filters (change-exercise list)."""
        return [g for g in self._pool.goals if g.active]

    def available_categories(self) -> list[str]:
        return self._pool.available_categories()

    def available_equipment(self) -> list[str]:
        return self._pool.available_equipment()

    def filters(self) -> tuple[frozenset[str], frozenset[str]]:
        return self._pool.category_filters, self._pool.equipment_filters

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Cycle and filters
    # =========================================================================

    async def load_cycles(self) -> list[int]:
        """Fetch the user's cycles and open the latest one (if any)."""
        user_id = self._require_user()
        with self._single_flight("load cycles"):
            try:
                cycles = await self._goal_store.list_cycles_for_user(user_id)
            except StoreFailure as e:
                self._report_failure("load cycles", e)
                raise
            if self._closed:
                return cycles
            self._cycles = sorted(cycles)
            if not self._cycles:
                self._apply_cycle(None, [], [])
                return cycles
            await self._fetch_and_apply_cycle(user_id, self._cycles[-1])
        return cycles

    async def select_cycle(self, cycle: int | None) -> None:
        """Switch the session to another cycle.  Filters are cleared."""
        user_id = self._require_user()
        with self._single_flight("select cycle"):
            if cycle is None:
                self._apply_cycle(None, [], [])
                return
            await self._fetch_and_apply_cycle(user_id, cycle)

    def set_filters(self, categories: Iterable[str] = (), equipment: Iterable[str] = ()) -> None:
        self._ensure_idle("change filters")
        self._pool.set_filters(categories, equipment)
        self._refresh_current()

    async def _fetch_and_apply_cycle(self, user_id: str, cycle: int) -> None:
        try:
            goals = await self._goal_store.list_active_goals(user_id, cycle)
            entries = await self._log_store.list_entries_for_cycle(user_id, cycle)
        except StoreFailure as e:
            self._report_failure(f"load cycle {cycle}", e)
            raise
        if self._closed:
            return
        self._apply_cycle(cycle, goals, entries)

    def _apply_cycle(
        self, cycle: int | None, goals: list[Goal], entries: list[DoneExerciseLogEntry]
    ) -> None:
        snapshots = aggregate_all(goals, entries)
        for goal in goals:
            goal.performance = snapshots[goal.id]
        self._cycle = cycle
        self._pool.set_goals(goals)
        self._pool.clear_filters()
        logger.info("cycle %s loaded with %d active goals", cycle, len(goals))
        self._emit(SessionEvent("cycle_loaded", cycle=cycle))
        self._refresh_current()

    # =========================================================================
    # Goal commands
    # =========================================================================

    def select_next_goal(self) -> Goal | None:
        """Skip: move to another candidate without touching the skipped goal."""
        self._ensure_idle("skip")
        exclude = self._current.id if self._current else None
        self._set_current(select_next(self._pool.filtered_candidates(), exclude, self._rng))
        return self._current

    def change_current_goal(self, goal: Goal) -> None:
        """Replace the current goal with one the user picked; the pool is untouched."""
        self._ensure_idle("change exercise")
        if not goal.active:
            raise ValidationError(f"{goal.exercise_name} is paused.")
        self._set_current(goal)

    async def log_set(self, request: LogSetRequest) -> DoneExerciseLogEntry:
        """
        Record one set against the current goal and advance.

        Returns:
            The stored log entry

        Raises:
            NoSessionError: No user or no current goal
            ValidationError: Required field missing (no store call made)
            StoreFailure: Append or re-read failed (state unchanged)
        """
        user_id = self._require_user()
        goal = self._require_goal()
        try:
            validate_log_request(goal, request)
        except ValidationError as e:
            self._notifier.notify("error", str(e))
            raise

        with self._single_flight("log a set"):
            self._phase = SessionPhase.LOGGING_SET
            entry = DoneExerciseLogEntry(
                goal_id=goal.id,
                cycle=goal.cycle,
                reps=request.reps,
                user_id=user_id,
                weight=request.weight,
                duration_seconds=request.duration_seconds,
                failed=request.failed,
                notes=request.notes or None,
                logged_at=now_iso(),
            )
            try:
                stored = await self._log_store.append_entry(entry)
                entries = await self._log_store.list_entries_for_cycle(user_id, goal.cycle)
            except StoreFailure as e:
                if not self._closed:
                    self._phase = SessionPhase.ACTIVE
                    self._report_failure("log the set", e)
                raise
            if self._closed:
                return stored

            goal.performance = aggregate(goal, entries)
            self._emit(SessionEvent("performance_updated", goal=goal, snapshot=goal.performance))
            self._notifier.notify("success", f"Logged set for {goal.exercise_name}.")

            self._set_current(
                select_next(self._pool.filtered_candidates(), goal.id, self._rng), force=True
            )
            self.reset_timer("rest", self.rest_seconds)
            self.start_timer("rest")
        return stored

    async def pause_current_goal(self) -> Goal:
        """Deactivate the current goal in the store, drop it from the pool and advance."""
        self._require_user()
        goal = self._require_goal()
        with self._single_flight("pause the goal"):
            try:
                updated = await self._goal_store.set_goal_active(goal.id, False)
            except StoreFailure as e:
                if not self._closed:
                    self._report_failure(f"pause {goal.exercise_name}", e)
                raise
            if self._closed:
                return updated

            self._pool.remove(goal.id)
            goal.active = False
            self._notifier.notify("success", f"Paused {goal.exercise_name}.")
            self._set_current(select_next(self._pool.filtered_candidates(), goal.id, self._rng))
        return updated

    # =========================================================================
    # Timers
    # =========================================================================

    def start_timer(self, which: TimerName) -> None:
        if not self._closed:
            self._timers[which].start()

    def pause_timer(self, which: TimerName) -> int:
        return self._timers[which].pause()

    def reset_timer(self, which: TimerName, seconds: int | None = None) -> None:
        """Reset a timer; the exercise timer defaults to the current goal's duration."""
        if seconds is None:
            if which == "rest":
                seconds = self.rest_seconds
            else:
                seconds = (self._current.duration_seconds or 0) if self._current else 0
        self._timers[which].reset(seconds)

    def set_rest_seconds(self, seconds: int) -> None:
        """Change the rest length for the remainder of the session and reload the rest timer."""
        if seconds < 1:
            raise ValidationError(f"Rest must be at least 1 second, got {seconds}")
        self.rest_seconds = seconds
        self.reset_timer("rest", seconds)

    def timer_remaining(self, which: TimerName) -> int:
        return self._timers[which].get_remaining()

    def timer_state(self, which: TimerName) -> TimerState:
        return self._timers[which].state

    def suggested_duration_done(self) -> int | None:
        """
        Seconds worked on the current timed goal, read from the exercise timer.

        Used to pre-fill the duration field when a set is logged mid-countdown.
        None when the goal is not timed or the timer was never started.
        """
        goal = self._current
        if goal is None or not goal.is_timed:
            return None
        state = self.timer_state("exercise")
        if state.completed:
            return goal.duration_seconds
        remaining = state.remaining_seconds
        if not state.running and remaining == goal.duration_seconds:
            return None
        return goal.duration_seconds - remaining

    # =========================================================================
    # Next cycle
    # =========================================================================

    async def propose_next_cycle(self, goals: Sequence[Goal] | None = None) -> list[ProposedGoal]:
        """
        Proposals for the next cycle, one per goal.

        Defaults to the active goals of the session's cycle.  Performance is
        read from the log of each goal's own cycle.
        """
        user_id = self._require_user()
        source = list(goals) if goals is not None else self.active_goals()
        entries: list[DoneExerciseLogEntry] = []
        try:
            for cycle in sorted({g.cycle for g in source}):
                entries.extend(await self._log_store.list_entries_for_cycle(user_id, cycle))
        except StoreFailure as e:
            self._report_failure("load performance for the next cycle", e)
            raise
        return self._advisor.propose_next_cycle(source, entries)

    async def commit_next_cycle(self, proposals: Sequence[ProposedGoal]) -> list[Goal]:
        """Insert the included proposals as goals of a new cycle (max + 1)."""
        user_id = self._require_user()
        try:
            kept = included_proposals(proposals)
        except ValidationError as e:
            self._notifier.notify("error", str(e))
            raise

        with self._single_flight("create the next cycle"):
            try:
                cycles = await self._goal_store.list_cycles_for_user(user_id)
                new_cycle = next_cycle_number(cycles)
                created = await self._goal_store.bulk_insert_goals(user_id, new_cycle, kept)
            except StoreFailure as e:
                if not self._closed:
                    self._report_failure("create the next cycle", e)
                raise
            if self._closed:
                return created
            self._cycles = sorted(set(cycles) | {new_cycle})
            self._notifier.notify(
                "success", f"Cycle {new_cycle} created with {len(created)} goals."
            )
        return created

    # =========================================================================
    # Teardown
    # =========================================================================

    def close(self) -> None:
        """Stop both timers and ignore any store result that arrives later."""
        self._closed = True
        for t in self._timers.values():
            t.stop()
        logger.debug("session closed")

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_user(self) -> str:
        user_id = self._identity.user_id
        if not user_id:
            raise NoSessionError("No signed-in user; cannot start a session.")
        return user_id

    def _require_goal(self) -> Goal:
        if self._current is None:
            raise NoSessionError("No current goal selected.")
        return self._current

    def _ensure_idle(self, action: str) -> None:
        if self._closed:
            raise NoSessionError("Session is closed.")
        if self._busy:
            raise SessionBusyError(f"Cannot {action} while another operation is in progress.")

    @contextmanager
    def _single_flight(self, action: str) -> Iterator[None]:
        self._ensure_idle(action)
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _report_failure(self, action: str, exc: StoreFailure) -> None:
        logger.warning("could not %s: %s", action, exc)
        self._notifier.notify("error", f"Could not {action}: {exc}")

    def _refresh_current(self) -> None:
        candidates = self._pool.filtered_candidates()
        if self._current is not None and any(g.id == self._current.id for g in candidates):
            return
        self._set_current(select_next(candidates, None, self._rng))

    def _set_current(self, goal: Goal | None, force: bool = False) -> None:
        previous = self._current
        self._current = goal
        self._phase = SessionPhase.ACTIVE if goal is not None else SessionPhase.NO_GOAL
        changed = (previous is None) != (goal is None) or (
            previous is not None and goal is not None and previous.id != goal.id
        )
        if changed or force:
            self.reset_timer("exercise")
        if changed:
            logger.debug("current goal -> %s", goal.exercise_name if goal else None)
            self._emit(SessionEvent("goal_changed", goal=goal))
        if goal is None:
            self._notifier.notify("info", "No goals left to train in this selection.")

    def _on_timer_event(self, event: TimerEvent) -> None:
        if self._closed:
            return
        if event.kind == "completed":
            label = "Time's up" if event.timer == "exercise" else "Rest is over"
            self._notifier.notify("info", f"{label}.")
        elif event.kind == "sound":
            self._notifier.play_tone("complete")
        self._emit(SessionEvent("timer", goal=self._current, timer=event))

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
