"""
Tests for the JSONL stores, the local profile and the set notation parser.
"""

import pytest

from cycle_coach.core.errors import StoreFailure, ValidationError
from cycle_coach.core.models import DoneExerciseLogEntry, Goal, ProposedGoal
from cycle_coach.io.goal_store import JsonlGoalStore
from cycle_coach.io.log_store import JsonlLogStore
from cycle_coach.io.profile import LocalIdentity, get_paths
from cycle_coach.io.serializers import (
    dict_to_goal,
    entry_to_dict,
    goal_to_dict,
    parse_set_entry,
    parse_tags,
)


def _proposal(name: str, sets: int = 3, reps: int | None = 10, **kwargs) -> ProposedGoal:
    return ProposedGoal(
        exercise_name=name,
        sets=sets,
        reps=reps,
        original_goal_id=None,
        rationale="test",
        **kwargs,
    )


@pytest.fixture
def goal_store(tmp_path):
    store = JsonlGoalStore(tmp_path / "goals.jsonl")
    store.init()
    return store


@pytest.fixture
def log_store(tmp_path):
    store = JsonlLogStore(tmp_path / "done_exercises.jsonl")
    store.init()
    return store


class TestJsonlGoalStore:
    @pytest.mark.asyncio
    async def test_bulk_insert_assigns_ids_and_cycle(self, goal_store):
        created = await goal_store.bulk_insert_goals(
            "u1", 1, [_proposal("Push-up", categories=["push"]), _proposal("Plank", reps=None, duration_seconds=45)]
        )

        assert [g.id for g in created] == [1, 2]
        assert all(g.cycle == 1 and g.active for g in created)
        assert created[0].created_at

        more = await goal_store.bulk_insert_goals("u1", 2, [_proposal("Row")])
        assert more[0].id == 3

    @pytest.mark.asyncio
    async def test_list_active_goals_filters_user_cycle_and_active(self, goal_store):
        await goal_store.bulk_insert_goals("u1", 1, [_proposal("A"), _proposal("B")])
        await goal_store.bulk_insert_goals("u1", 2, [_proposal("C")])
        await goal_store.bulk_insert_goals("u2", 1, [_proposal("D")])
        await goal_store.set_goal_active(2, False)

        active = await goal_store.list_active_goals("u1", 1)

        assert [g.exercise_name for g in active] == ["A"]

    @pytest.mark.asyncio
    async def test_set_goal_active_persists(self, goal_store):
        await goal_store.bulk_insert_goals("u1", 1, [_proposal("A")])

        updated = await goal_store.set_goal_active(1, False)
        assert updated.active is False

        reloaded = await goal_store.get_goal(1)
        assert reloaded.active is False
        assert (await goal_store.set_goal_active(1, True)).active is True

    @pytest.mark.asyncio
    async def test_set_goal_active_unknown_id(self, goal_store):
        with pytest.raises(StoreFailure):
            await goal_store.set_goal_active(99, False)

    @pytest.mark.asyncio
    async def test_list_cycles_for_user(self, goal_store):
        await goal_store.bulk_insert_goals("u1", 3, [_proposal("A")])
        await goal_store.bulk_insert_goals("u1", 1, [_proposal("B")])
        await goal_store.bulk_insert_goals("u2", 7, [_proposal("C")])

        assert await goal_store.list_cycles_for_user("u1") == [1, 3]
        assert await goal_store.list_cycles_for_user("nobody") == []

    @pytest.mark.asyncio
    async def test_invalid_proposal_is_store_failure(self, goal_store):
        with pytest.raises(StoreFailure):
            await goal_store.bulk_insert_goals("u1", 1, [_proposal("  ")])

    @pytest.mark.asyncio
    async def test_missing_file_is_store_failure(self, tmp_path):
        store = JsonlGoalStore(tmp_path / "nope" / "goals.jsonl")
        with pytest.raises(StoreFailure):
            await store.list_cycles_for_user("u1")

    @pytest.mark.asyncio
    async def test_corrupt_line_is_store_failure(self, goal_store):
        goal_store.goals_path.write_text('{"id": 1, "exercise_name": "A"}\n')
        with pytest.raises(StoreFailure, match="line 1"):
            await goal_store.list_active_goals("u1", 1)


class TestJsonlLogStore:
    @pytest.mark.asyncio
    async def test_append_assigns_id_and_timestamp(self, log_store):
        first = await log_store.append_entry(DoneExerciseLogEntry(goal_id=1, cycle=1, reps=10, user_id="u1"))
        second = await log_store.append_entry(
            DoneExerciseLogEntry(goal_id=1, cycle=1, reps=8, user_id="u1", logged_at="2026-01-01T10:00:00")
        )

        assert (first.id, second.id) == (1, 2)
        assert first.logged_at
        assert second.logged_at == "2026-01-01T10:00:00"

    @pytest.mark.asyncio
    async def test_list_entries_for_cycle_newest_first(self, log_store):
        for stamp, cycle, user in [
            ("2026-01-01T10:00:00", 1, "u1"),
            ("2026-01-02T10:00:00", 1, "u1"),
            ("2026-01-03T10:00:00", 2, "u1"),
            ("2026-01-04T10:00:00", 1, "u2"),
        ]:
            await log_store.append_entry(
                DoneExerciseLogEntry(goal_id=1, cycle=cycle, reps=5, user_id=user, logged_at=stamp)
            )

        entries = await log_store.list_entries_for_cycle("u1", 1)

        assert [e.logged_at[:10] for e in entries] == ["2026-01-02", "2026-01-01"]

    @pytest.mark.asyncio
    async def test_round_trip_keeps_set_details(self, log_store):
        await log_store.append_entry(
            DoneExerciseLogEntry(
                goal_id=4, cycle=2, reps=None, user_id="u1",
                weight=12.5, duration_seconds=40, failed=True, notes="grip gave out",
            )
        )

        (entry,) = await log_store.list_entries_for_cycle("u1", 2)

        assert entry.reps is None
        assert entry.weight == 12.5
        assert entry.duration_seconds == 40
        assert entry.failed is True
        assert entry.notes == "grip gave out"


class TestSerializers:
    def test_goal_dict_uses_stored_field_names(self):
        goal = Goal(id=1, exercise_name="Squat", sets=5, reps=5, cycle=2, equipment=["rack"], active=False)
        data = goal_to_dict(goal)

        assert data["microcycle"] == 2
        assert data["active"] == 0
        assert data["equipment_needed"] == ["rack"]
        assert "performance" not in data
        assert dict_to_goal(data) == goal

    def test_goal_missing_fields(self):
        with pytest.raises(ValidationError, match="Missing fields"):
            dict_to_goal({"id": 1, "exercise_name": "A"})

    def test_goal_negative_reps(self):
        with pytest.raises(ValidationError):
            dict_to_goal({"id": 1, "exercise_name": "A", "sets": 3, "reps": -1, "microcycle": 1})

    def test_entry_dict_uses_stored_field_names(self):
        entry = DoneExerciseLogEntry(goal_id=2, cycle=3, reps=7, weight=10.0)
        data = entry_to_dict(entry)

        assert data["goal_microcycle_at_log"] == 3
        assert data["reps_done"] == 7
        assert data["weight_used"] == 10.0
        assert data["sets_done_for_this_log"] == 1

    def test_parse_tags(self):
        assert parse_tags("push, core ,,upper") == ["push", "core", "upper"]
        assert parse_tags(None) == []


class TestParseSetEntry:
    def test_bare_reps(self):
        req = parse_set_entry("10")
        assert (req.reps, req.weight, req.duration_seconds, req.failed) == (10, None, None, False)

    def test_reps_and_weight(self):
        assert parse_set_entry("8@22.5").weight == 22.5
        assert parse_set_entry("8@+20").weight == 20.0

    def test_duration_only(self):
        req = parse_set_entry("45s")
        assert req.reps is None
        assert req.duration_seconds == 45

    def test_reps_weight_and_duration(self):
        req = parse_set_entry("10@20 30s")
        assert (req.reps, req.weight, req.duration_seconds) == (10, 20.0, 30)

    def test_failed_marker(self):
        req = parse_set_entry("6!")
        assert req.reps == 6
        assert req.failed is True

    @pytest.mark.parametrize("text", ["", "abc", "10@", "10 12", "45s 30s", "-3", "1 2 3"])
    def test_invalid(self, text):
        with pytest.raises(ValidationError):
            parse_set_entry(text)


class TestLocalIdentity:
    def test_no_profile_means_no_user(self, tmp_path):
        assert LocalIdentity(tmp_path / "profile.json").user_id is None

    def test_save_keeps_existing_user_id(self, tmp_path):
        identity = LocalIdentity(tmp_path / "profile.json")
        uid = identity.save("Sam")

        assert identity.user_id == uid
        assert identity.save("Sam R.") == uid
        assert identity.load_name() == "Sam R."

    def test_data_paths(self, tmp_path):
        paths = get_paths(tmp_path)
        assert paths.goals == tmp_path / "goals.jsonl"
        assert paths.log == tmp_path / "done_exercises.jsonl"
        assert paths.profile == tmp_path / "profile.json"
