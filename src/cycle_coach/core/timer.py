"""
Countdown timer state machine.

One CountdownTimer backs both the exercise timer (timed sets) and the rest
timer (between sets).  The timer never reads a clock itself: ticks are
delivered by a TickScheduler (asyncio in a live session, a manual
scheduler in tests) or by calling tick() directly.

States:

    IDLE(duration) --start--> RUNNING(remaining) <--pause/start--> PAUSED
    RUNNING --tick, remaining reaches 0--> COMPLETED
    any --reset(n)--> IDLE if n > 0 else COMPLETED
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Final, Literal, Protocol

from .config import TICK_INTERVAL_SECONDS
from .models import TimerState

logger = logging.getLogger(__name__)

TimerEventKind = Literal["tick", "paused", "completed", "sound"]


class TimerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TimerEvent:
    """Emitted to listeners on every observable timer change."""

    timer: str
    kind: TimerEventKind
    remaining: int


TimerListener = Callable[[TimerEvent], None]

# (phase, action) -> next phase.  Pairs not listed are silent no-ops.
_TRANSITIONS: Final[dict[tuple[TimerPhase, str], TimerPhase]] = {
    (TimerPhase.IDLE, "start"): TimerPhase.RUNNING,
    (TimerPhase.PAUSED, "start"): TimerPhase.RUNNING,
    (TimerPhase.RUNNING, "pause"): TimerPhase.PAUSED,
    (TimerPhase.RUNNING, "tick"): TimerPhase.RUNNING,
    (TimerPhase.RUNNING, "expire"): TimerPhase.COMPLETED,
}


# ---------------------------------------------------------------------------
# Tick sources
# ---------------------------------------------------------------------------


class TickHandle(Protocol):
    def cancel(self) -> None: ...


class TickScheduler(Protocol):
    """Delivers one callback after ``interval`` seconds."""

    def schedule(self, interval: float, callback: Callable[[], None]) -> TickHandle: ...


class AsyncioScheduler:
    """Schedules ticks on an asyncio event loop via ``call_later``."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def schedule(self, interval: float, callback: Callable[[], None]) -> TickHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(interval, callback)


class _ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Scheduler driven by explicit ``advance()`` calls.

    Callbacks fire in due order; a callback that schedules another one
    inside the advanced window fires within the same advance() call.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._pending: list[_ManualHandle] = []

    def schedule(self, interval: float, callback: Callable[[], None]) -> TickHandle:
        handle = _ManualHandle(self.now + interval, callback)
        self._pending.append(handle)
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not fired or been cancelled."""
        return sum(1 for h in self._pending if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._pending if not h.cancelled and h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self._pending.remove(handle)
            self.now = handle.due
            handle.callback()
        self._pending = [h for h in self._pending if not h.cancelled]
        self.now = target


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------


class CountdownTimer:
    """
    Integer-second countdown.

    Listeners receive "tick" with the new remaining value, "paused" with the
    captured remaining value, and "completed" followed by "sound" when the
    countdown reaches zero.
    """

    def __init__(
        self,
        name: str,
        initial_duration: int = 0,
        scheduler: TickScheduler | None = None,
        interval: float = TICK_INTERVAL_SECONDS,
    ):
        self.name = name
        self._scheduler = scheduler
        self._interval = interval
        self._pending: TickHandle | None = None
        self._listeners: list[TimerListener] = []
        self._remaining = max(0, int(initial_duration))
        self._phase = TimerPhase.IDLE if initial_duration > 0 else TimerPhase.COMPLETED

    # -- observation --------------------------------------------------------

    @property
    def phase(self) -> TimerPhase:
        return self._phase

    @property
    def state(self) -> TimerState:
        return TimerState(
            remaining_seconds=self._remaining,
            running=self._phase is TimerPhase.RUNNING,
            completed=self._phase is TimerPhase.COMPLETED,
        )

    def get_remaining(self) -> int:
        return self._remaining

    def subscribe(self, listener: TimerListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- commands -----------------------------------------------------------

    def start(self) -> None:
        """Begin or resume counting down.  No-op unless idle/paused with time left."""
        if self._remaining <= 0:
            return
        nxt = _TRANSITIONS.get((self._phase, "start"))
        if nxt is None:
            return
        self._phase = nxt
        logger.debug("timer %s started at %ss", self.name, self._remaining)
        self._schedule_tick()

    def pause(self) -> int:
        """Pause a running countdown and return the remaining seconds."""
        nxt = _TRANSITIONS.get((self._phase, "pause"))
        if nxt is None:
            return self._remaining
        self._cancel_pending()
        self._phase = nxt
        self._emit("paused")
        return self._remaining

    def reset(self, new_duration: int) -> None:
        """Load a new duration from any state; lands in IDLE (or COMPLETED if <= 0)."""
        self._cancel_pending()
        self._remaining = max(0, int(new_duration))
        self._phase = TimerPhase.IDLE if new_duration > 0 else TimerPhase.COMPLETED

    def stop(self) -> None:
        """Halt ticking immediately without emitting events (teardown)."""
        self._cancel_pending()
        if self._phase is TimerPhase.RUNNING:
            self._phase = TimerPhase.PAUSED

    def tick(self) -> None:
        """Advance one second.  Ignored unless running.

        A direct call replaces any scheduled tick, so ticks never double up.
        """
        self._cancel_pending()
        if self._phase is not TimerPhase.RUNNING:
            return
        self._remaining -= 1
        if self._remaining <= 0:
            self._remaining = 0
            self._phase = _TRANSITIONS[(TimerPhase.RUNNING, "expire")]
            logger.debug("timer %s completed", self.name)
            self._emit("completed")
            self._emit("sound")
            return
        self._phase = _TRANSITIONS[(TimerPhase.RUNNING, "tick")]
        self._emit("tick")
        if self._phase is TimerPhase.RUNNING and self._pending is None:
            self._schedule_tick()

    # -- internals ----------------------------------------------------------

    def _schedule_tick(self) -> None:
        if self._scheduler is None:
            return
        self._cancel_pending()
        self._pending = self._scheduler.schedule(self._interval, self.tick)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _emit(self, kind: TimerEventKind) -> None:
        event = TimerEvent(timer=self.name, kind=kind, remaining=self._remaining)
        for listener in list(self._listeners):
            listener(event)


def format_seconds(total_seconds: int) -> str:
    """Format seconds as MM:SS."""
    minutes, seconds = divmod(max(0, total_seconds), 60)
    return f"{minutes:02d}:{seconds:02d}"
