"""
Contracts for the collaborators the session engine talks to.

Store round-trips are coroutines; a store signals a failed round-trip by
raising StoreFailure.
"""

from typing import Literal, Protocol, Sequence

from .models import DoneExerciseLogEntry, Goal, ProposedGoal

NotificationLevel = Literal["success", "error", "info", "warning"]


class GoalStore(Protocol):
    async def list_active_goals(self, user_id: str, cycle: int) -> list[Goal]: ...

    async def set_goal_active(self, goal_id: int, active: bool) -> Goal: ...

    async def bulk_insert_goals(
        self, user_id: str, cycle: int, proposals: Sequence[ProposedGoal]
    ) -> list[Goal]: ...

    async def list_cycles_for_user(self, user_id: str) -> list[int]: ...


class LogStore(Protocol):
    async def append_entry(self, entry: DoneExerciseLogEntry) -> DoneExerciseLogEntry: ...

    async def list_entries_for_cycle(
        self, user_id: str, cycle: int
    ) -> list[DoneExerciseLogEntry]: ...


class IdentityContext(Protocol):
    @property
    def user_id(self) -> str | None: ...


class NotificationSink(Protocol):
    """Fire-and-forget user-facing messages and tone signals."""

    def notify(self, level: NotificationLevel, message: str) -> None: ...

    def play_tone(self, kind: str) -> None: ...


class StaticIdentity:
    """IdentityContext backed by a fixed (possibly absent) user id."""

    def __init__(self, user_id: str | None):
        self._user_id = user_id

    @property
    def user_id(self) -> str | None:
        return self._user_id


class NullNotifier:
    """NotificationSink that drops everything."""

    def notify(self, level: NotificationLevel, message: str) -> None:
        pass

    def play_tone(self, kind: str) -> None:
        pass
