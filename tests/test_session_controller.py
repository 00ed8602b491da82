"""
Tests for SessionController against in-memory stores.

Store fakes record their calls and can be told to fail or to block until
released, which is how busy/close behaviour is exercised.
"""

import asyncio
import random
from dataclasses import replace

import pytest

from cycle_coach.core.errors import (
    NoSessionError,
    SessionBusyError,
    StoreFailure,
    ValidationError,
)
from cycle_coach.core.interfaces import StaticIdentity
from cycle_coach.core.models import DoneExerciseLogEntry, Goal, LogSetRequest
from cycle_coach.core.session import SessionController, SessionEvent, SessionPhase
from cycle_coach.core.timer import ManualScheduler

# ---------------------------------------------------------------------------
# Fakes and builders
# ---------------------------------------------------------------------------


class FakeGoalStore:
    def __init__(self, goals: list[Goal]):
        self.goals = {g.id: g for g in goals}
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise StoreFailure(f"{name} rejected")

    async def list_active_goals(self, user_id, cycle):
        self._call("list_active_goals")
        return [
            replace(g)
            for g in self.goals.values()
            if g.user_id == user_id and g.cycle == cycle and g.active
        ]

    async def set_goal_active(self, goal_id, active):
        self._call("set_goal_active")
        goal = self.goals[goal_id]
        goal.active = active
        return replace(goal)

    async def bulk_insert_goals(self, user_id, cycle, proposals):
        self._call("bulk_insert_goals")
        next_id = max(self.goals, default=0) + 1
        created = []
        for offset, p in enumerate(proposals):
            goal = Goal(
                id=next_id + offset,
                exercise_name=p.exercise_name,
                sets=p.sets,
                reps=p.reps,
                duration_seconds=p.duration_seconds,
                cycle=cycle,
                user_id=user_id,
            )
            self.goals[goal.id] = goal
            created.append(goal)
        return created

    async def list_cycles_for_user(self, user_id):
        self._call("list_cycles_for_user")
        return sorted({g.cycle for g in self.goals.values() if g.user_id == user_id})


class FakeLogStore:
    def __init__(self) -> None:
        self.entries: list[DoneExerciseLogEntry] = []
        self.fail_on: set[str] = set()
        self.gate: asyncio.Event | None = None

    async def append_entry(self, entry):
        if self.gate is not None:
            await self.gate.wait()
        if "append_entry" in self.fail_on:
            raise StoreFailure("append rejected")
        stored = replace(entry, id=len(self.entries) + 1)
        self.entries.append(stored)
        return stored

    async def list_entries_for_cycle(self, user_id, cycle):
        if "list_entries_for_cycle" in self.fail_on:
            raise StoreFailure("list rejected")
        return [e for e in self.entries if e.user_id == user_id and e.cycle == cycle]


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self.tones: list[str] = []

    def notify(self, level, message):
        self.messages.append((level, message))

    def play_tone(self, kind):
        self.tones.append(kind)

    def levels(self) -> list[str]:
        return [level for level, _ in self.messages]


def _goal(
    goal_id: int,
    *,
    cycle: int = 1,
    reps: int | None = 10,
    duration: int | None = None,
    categories: list[str] | None = None,
    active: bool = True,
) -> Goal:
    return Goal(
        id=goal_id,
        exercise_name=f"Exercise {goal_id}",
        sets=3,
        reps=reps,
        duration_seconds=duration,
        cycle=cycle,
        categories=categories or [],
        active=active,
        user_id="u1",
    )


def _controller(goals, user_id="u1", rest_seconds=60):
    goal_store = FakeGoalStore(goals)
    log_store = FakeLogStore()
    notifier = RecordingNotifier()
    scheduler = ManualScheduler()
    controller = SessionController(
        goal_store,
        log_store,
        StaticIdentity(user_id),
        notifier,
        scheduler=scheduler,
        rng=random.Random(42),
        rest_seconds=rest_seconds,
    )
    events: list[SessionEvent] = []
    controller.subscribe(events.append)
    return controller, goal_store, log_store, notifier, scheduler, events


def _three_goals() -> list[Goal]:
    return [
        _goal(1, categories=["push"]),
        _goal(2, categories=["pull"]),
        _goal(3, categories=["core"]),
    ]


# ---------------------------------------------------------------------------
# Cycle loading and filters
# ---------------------------------------------------------------------------


class TestCycleSelection:
    @pytest.mark.asyncio
    async def test_load_cycles_opens_latest(self):
        goals = _three_goals() + [_goal(10, cycle=2), _goal(11, cycle=2)]
        controller, *_ = _controller(goals)

        cycles = await controller.load_cycles()

        assert cycles == [1, 2]
        assert controller.cycle == 2
        assert controller.phase is SessionPhase.ACTIVE
        assert controller.current_goal.id in (10, 11)

    @pytest.mark.asyncio
    async def test_load_cycles_without_goals_gives_no_goal(self):
        controller, _, _, notifier, _, _ = _controller([])

        assert await controller.load_cycles() == []
        assert controller.current_goal is None
        assert controller.phase is SessionPhase.NO_GOAL
        assert notifier.levels() == ["info"]

    @pytest.mark.asyncio
    async def test_select_cycle_clears_filters(self):
        controller, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        controller.set_filters(categories=["push"])

        await controller.select_cycle(1)

        assert controller.filters() == (frozenset(), frozenset())
        assert len(controller.candidates()) == 3

    @pytest.mark.asyncio
    async def test_select_cycle_fills_performance(self):
        controller, _, log_store, *_ = _controller(_three_goals())
        log_store.entries.append(DoneExerciseLogEntry(goal_id=2, cycle=1, reps=8, user_id="u1"))

        await controller.select_cycle(1)

        by_id = {g.id: g for g in controller.active_goals()}
        assert by_id[2].performance.total_sets_completed == 1
        assert by_id[1].performance.total_sets_completed == 0

    @pytest.mark.asyncio
    async def test_select_cycle_failure_keeps_state(self):
        controller, goal_store, _, notifier, _, _ = _controller(_three_goals())
        await controller.select_cycle(1)
        before = controller.current_goal
        goal_store.fail_on.add("list_active_goals")

        with pytest.raises(StoreFailure):
            await controller.select_cycle(2)

        assert controller.cycle == 1
        assert controller.current_goal is before
        assert notifier.levels()[-1] == "error"
        assert not controller.busy

    @pytest.mark.asyncio
    async def test_filter_replaces_current_when_excluded(self):
        controller, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        controller.change_current_goal(controller.active_goals()[0])  # push

        controller.set_filters(categories=["pull"])

        assert controller.current_goal.id == 2

    @pytest.mark.asyncio
    async def test_filter_keeps_current_when_still_candidate(self):
        controller, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        controller.change_current_goal(controller.active_goals()[1])  # pull

        controller.set_filters(categories=["pull", "core"])

        assert controller.current_goal.id == 2

    @pytest.mark.asyncio
    async def test_empty_filter_result_is_no_goal(self):
        controller, _, _, notifier, _, events = _controller(_three_goals())
        await controller.select_cycle(1)

        controller.set_filters(categories=["legs"])

        assert controller.current_goal is None
        assert controller.phase is SessionPhase.NO_GOAL
        assert notifier.messages[-1][0] == "info"
        assert events[-1].kind == "goal_changed" and events[-1].goal is None


# ---------------------------------------------------------------------------
# Goal commands
# ---------------------------------------------------------------------------


class TestLogSet:
    @pytest.mark.asyncio
    async def test_log_set_records_and_advances(self):
        controller, _, log_store, notifier, _, events = _controller(_three_goals())
        await controller.select_cycle(1)
        logged = controller.current_goal

        stored = await controller.log_set(LogSetRequest(reps=10, weight=20.0))

        assert stored.id == 1
        assert stored.goal_id == logged.id
        assert stored.user_id == "u1"
        assert stored.cycle == 1
        assert stored.logged_at
        assert len(log_store.entries) == 1

        assert logged.performance.total_sets_completed == 1
        assert logged.performance.total_volume == 200.0
        assert controller.current_goal.id != logged.id
        assert controller.phase is SessionPhase.ACTIVE

        kinds = [e.kind for e in events]
        assert "performance_updated" in kinds
        assert kinds[-1] == "goal_changed"
        assert ("success", f"Logged set for {logged.exercise_name}.") in notifier.messages

    @pytest.mark.asyncio
    async def test_log_set_starts_rest_timer(self):
        controller, _, _, _, scheduler, _ = _controller(_three_goals(), rest_seconds=60)
        await controller.select_cycle(1)

        await controller.log_set(LogSetRequest(reps=10))

        state = controller.timer_state("rest")
        assert state.running
        assert state.remaining_seconds == 60
        scheduler.advance(15)
        assert controller.timer_remaining("rest") == 45

    @pytest.mark.asyncio
    async def test_never_repeats_goal_across_many_sets(self):
        controller, *_ = _controller(_three_goals())
        await controller.select_cycle(1)

        for _ in range(20):
            previous = controller.current_goal.id
            await controller.log_set(LogSetRequest(reps=10))
            assert controller.current_goal.id != previous

    @pytest.mark.asyncio
    async def test_single_goal_stays_current_and_timer_resets(self):
        controller, _, _, _, scheduler, events = _controller([_goal(1, reps=None, duration=45)])
        await controller.select_cycle(1)
        controller.start_timer("exercise")
        scheduler.advance(10)

        await controller.log_set(LogSetRequest(duration_seconds=10))

        assert controller.current_goal.id == 1
        assert controller.timer_remaining("exercise") == 45
        assert not controller.timer_state("exercise").running
        assert [e.kind for e in events].count("goal_changed") == 1

    @pytest.mark.asyncio
    async def test_n_sets_give_n_total_sets(self):
        controller, *_ = _controller([_goal(1)])
        await controller.select_cycle(1)

        for _ in range(4):
            await controller.log_set(LogSetRequest(reps=8))

        assert controller.current_goal.performance.total_sets_completed == 4

    @pytest.mark.asyncio
    async def test_missing_reps_rejected_before_store(self):
        controller, _, log_store, notifier, _, _ = _controller(_three_goals())
        await controller.select_cycle(1)
        current = controller.current_goal

        with pytest.raises(ValidationError):
            await controller.log_set(LogSetRequest(weight=20.0))

        assert log_store.entries == []
        assert controller.current_goal is current
        assert notifier.levels()[-1] == "error"

    @pytest.mark.asyncio
    async def test_missing_duration_rejected_for_timed_goal(self):
        controller, _, log_store, *_ = _controller([_goal(1, reps=None, duration=30)])
        await controller.select_cycle(1)

        with pytest.raises(ValidationError):
            await controller.log_set(LogSetRequest())

        assert log_store.entries == []

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back(self):
        controller, _, log_store, notifier, _, _ = _controller(_three_goals())
        await controller.select_cycle(1)
        current = controller.current_goal
        log_store.fail_on.add("append_entry")

        with pytest.raises(StoreFailure):
            await controller.log_set(LogSetRequest(reps=10))

        assert controller.current_goal is current
        assert controller.phase is SessionPhase.ACTIVE
        assert not controller.busy
        assert not controller.timer_state("rest").running
        assert notifier.levels()[-1] == "error"

    @pytest.mark.asyncio
    async def test_no_current_goal(self):
        controller, *_ = _controller([])
        await controller.load_cycles()

        with pytest.raises(NoSessionError):
            await controller.log_set(LogSetRequest(reps=10))

    @pytest.mark.asyncio
    async def test_no_user(self):
        controller, *_ = _controller(_three_goals(), user_id=None)

        with pytest.raises(NoSessionError):
            await controller.load_cycles()


class TestGoalNavigation:
    @pytest.mark.asyncio
    async def test_skip_excludes_current_without_mutation(self):
        controller, goal_store, log_store, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        calls_before = list(goal_store.calls)

        for _ in range(10):
            previous = controller.current_goal.id
            controller.select_next_goal()
            assert controller.current_goal.id != previous

        assert goal_store.calls == calls_before
        assert log_store.entries == []
        assert len(controller.candidates()) == 3

    @pytest.mark.asyncio
    async def test_pause_removes_goal_and_advances(self):
        controller, goal_store, _, notifier, _, _ = _controller(_three_goals())
        await controller.select_cycle(1)
        paused = controller.current_goal

        updated = await controller.pause_current_goal()

        assert updated.active is False
        assert goal_store.goals[paused.id].active is False
        assert paused.id not in [g.id for g in controller.candidates()]
        assert controller.current_goal.id != paused.id
        assert notifier.levels()[-1] == "success"

    @pytest.mark.asyncio
    async def test_pause_last_goal_gives_no_goal(self):
        controller, *_ = _controller([_goal(1)])
        await controller.select_cycle(1)

        await controller.pause_current_goal()

        assert controller.current_goal is None
        assert controller.phase is SessionPhase.NO_GOAL

    @pytest.mark.asyncio
    async def test_pause_failure_keeps_goal(self):
        controller, goal_store, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        current = controller.current_goal
        goal_store.fail_on.add("set_goal_active")

        with pytest.raises(StoreFailure):
            await controller.pause_current_goal()

        assert controller.current_goal is current
        assert current.active is True
        assert len(controller.candidates()) == 3

    @pytest.mark.asyncio
    async def test_change_goal_leaves_pool_untouched(self):
        controller, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        target = controller.active_goals()[2]

        controller.change_current_goal(target)

        assert controller.current_goal is target
        assert len(controller.candidates()) == 3

    @pytest.mark.asyncio
    async def test_change_to_paused_goal_rejected(self):
        controller, *_ = _controller(_three_goals())
        await controller.select_cycle(1)

        with pytest.raises(ValidationError):
            controller.change_current_goal(_goal(9, active=False))


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------


class TestSessionTimers:
    @pytest.mark.asyncio
    async def test_exercise_timer_loaded_from_goal(self):
        controller, *_ = _controller([_goal(1, reps=None, duration=40)])
        await controller.select_cycle(1)

        assert controller.timer_remaining("exercise") == 40
        assert not controller.timer_state("exercise").running

    @pytest.mark.asyncio
    async def test_completion_notifies_and_plays_tone(self):
        controller, _, _, notifier, scheduler, events = _controller(_three_goals(), rest_seconds=5)
        await controller.select_cycle(1)
        controller.start_timer("rest")

        scheduler.advance(5)

        assert controller.timer_state("rest").completed
        assert ("info", "Rest is over.") in notifier.messages
        assert notifier.tones == ["complete"]
        timer_kinds = [e.timer.kind for e in events if e.kind == "timer"]
        assert timer_kinds.count("completed") == 1

    @pytest.mark.asyncio
    async def test_suggested_duration_after_pause(self):
        controller, _, _, _, scheduler, _ = _controller([_goal(1, reps=None, duration=45)])
        await controller.select_cycle(1)
        assert controller.suggested_duration_done() is None

        controller.start_timer("exercise")
        scheduler.advance(20)
        controller.pause_timer("exercise")

        assert controller.suggested_duration_done() == 20

    @pytest.mark.asyncio
    async def test_suggested_duration_none_for_rep_goal(self):
        controller, *_ = _controller([_goal(1)])
        await controller.select_cycle(1)
        assert controller.suggested_duration_done() is None

    @pytest.mark.asyncio
    async def test_reset_timer_defaults(self):
        controller, _, _, _, scheduler, _ = _controller([_goal(1, reps=None, duration=30)], rest_seconds=75)
        await controller.select_cycle(1)
        controller.start_timer("exercise")
        scheduler.advance(5)

        controller.reset_timer("exercise")
        controller.reset_timer("rest")

        assert controller.timer_remaining("exercise") == 30
        assert controller.timer_remaining("rest") == 75

    @pytest.mark.asyncio
    async def test_set_rest_seconds_applies_to_next_rest(self):
        controller, _, _, _, scheduler, _ = _controller(_three_goals(), rest_seconds=90)
        await controller.select_cycle(1)
        controller.start_timer("rest")
        scheduler.advance(10)

        controller.set_rest_seconds(45)

        assert controller.rest_seconds == 45
        assert controller.timer_remaining("rest") == 45
        assert not controller.timer_state("rest").running

        await controller.log_set(LogSetRequest(reps=10))
        assert controller.timer_remaining("rest") == 45
        assert controller.timer_state("rest").running

    def test_set_rest_seconds_rejects_zero(self):
        controller, *_ = _controller(_three_goals(), rest_seconds=90)
        with pytest.raises(ValidationError):
            controller.set_rest_seconds(0)
        assert controller.rest_seconds == 90


# ---------------------------------------------------------------------------
# Concurrency and teardown
# ---------------------------------------------------------------------------


class TestBusyAndClose:
    @pytest.mark.asyncio
    async def test_second_store_operation_rejected_while_busy(self):
        controller, _, log_store, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        log_store.gate = asyncio.Event()

        task = asyncio.create_task(controller.log_set(LogSetRequest(reps=10)))
        await asyncio.sleep(0)
        assert controller.busy
        assert controller.phase is SessionPhase.LOGGING_SET

        with pytest.raises(SessionBusyError):
            await controller.pause_current_goal()
        with pytest.raises(SessionBusyError):
            controller.select_next_goal()

        log_store.gate.set()
        await task
        assert not controller.busy
        assert len(log_store.entries) == 1

    @pytest.mark.asyncio
    async def test_results_after_close_are_discarded(self):
        controller, _, log_store, notifier, _, events = _controller(_three_goals())
        await controller.select_cycle(1)
        current = controller.current_goal
        log_store.gate = asyncio.Event()
        events.clear()
        notifier.messages.clear()

        task = asyncio.create_task(controller.log_set(LogSetRequest(reps=10)))
        await asyncio.sleep(0)
        controller.close()
        log_store.gate.set()
        await task

        assert controller.closed
        assert controller.current_goal is current
        assert current.performance.total_sets_completed == 0
        assert not controller.timer_state("rest").running
        assert events == []
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_close_stops_running_timers(self):
        controller, _, _, notifier, scheduler, _ = _controller(_three_goals(), rest_seconds=5)
        await controller.select_cycle(1)
        controller.start_timer("rest")
        scheduler.advance(2)

        controller.close()
        scheduler.advance(10)

        assert controller.timer_remaining("rest") == 3
        assert notifier.tones == []
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_commands_after_close_rejected(self):
        controller, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        controller.close()

        with pytest.raises(NoSessionError):
            controller.select_next_goal()
        with pytest.raises(NoSessionError):
            await controller.log_set(LogSetRequest(reps=10))


# ---------------------------------------------------------------------------
# Next cycle
# ---------------------------------------------------------------------------


class TestNextCycle:
    @pytest.mark.asyncio
    async def test_propose_uses_logged_performance(self):
        controller, *_ = _controller([_goal(1), _goal(2)])
        await controller.select_cycle(1)
        for _ in range(2):
            controller.change_current_goal(controller.active_goals()[0])
            await controller.log_set(LogSetRequest(reps=6))

        proposals = await controller.propose_next_cycle()
        by_goal = {p.original_goal_id: p for p in proposals}

        assert "below 70%" in by_goal[1].rationale
        assert "no performance data" in by_goal[2].rationale

    @pytest.mark.asyncio
    async def test_commit_inserts_included_into_next_cycle(self):
        goals = _three_goals() + [_goal(10, cycle=4)]
        controller, goal_store, _, notifier, _, _ = _controller(goals)
        await controller.select_cycle(1)
        proposals = await controller.propose_next_cycle()
        proposals[1].include = False

        created = await controller.commit_next_cycle(proposals)

        assert [g.cycle for g in created] == [5, 5]
        assert [g.exercise_name for g in created] == ["Exercise 1", "Exercise 3"]
        assert 5 in controller.cycles
        assert notifier.levels()[-1] == "success"

    @pytest.mark.asyncio
    async def test_commit_nothing_included_rejected(self):
        controller, goal_store, *_ = _controller(_three_goals())
        await controller.select_cycle(1)
        proposals = await controller.propose_next_cycle()
        for p in proposals:
            p.include = False

        with pytest.raises(ValidationError):
            await controller.commit_next_cycle(proposals)

        assert "bulk_insert_goals" not in goal_store.calls

    @pytest.mark.asyncio
    async def test_commit_store_failure(self):
        controller, goal_store, _, notifier, _, _ = _controller(_three_goals())
        await controller.select_cycle(1)
        proposals = await controller.propose_next_cycle()
        goal_store.fail_on.add("bulk_insert_goals")

        with pytest.raises(StoreFailure):
            await controller.commit_next_cycle(proposals)

        assert not controller.busy
        assert notifier.levels()[-1] == "error"
