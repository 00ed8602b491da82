"""Shared Typer app object, shared option types, and store utilities."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Coroutine, Optional, TypeVar

import typer

from ..core.config_loader import load_progression_rules, load_rest_seconds
from ..core.errors import CycleCoachError
from ..core.interfaces import NotificationSink
from ..core.models import Goal
from ..core.performance import aggregate_all
from ..core.progression import ProgressionAdvisor
from ..core.session import SessionController
from ..core.timer import TickScheduler
from ..io.goal_store import JsonlGoalStore
from ..io.log_store import JsonlLogStore
from ..io.profile import DataPaths, LocalIdentity, get_paths, open_stores
from . import views

T = TypeVar("T")

# Shared --data-dir option type used across all commands
DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", "-D", help="Data directory (default: ~/.cycle-coach)"),
]

JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON for machine processing"),
]

app = typer.Typer(
    name="cycle-coach",
    help="Microcycle workout coach: pick the next exercise, log sets, rest, progress.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@dataclass
class Workspace:
    """Stores and identity for one data directory."""

    paths: DataPaths
    goals: JsonlGoalStore
    log: JsonlLogStore
    identity: LocalIdentity

    def require_user(self) -> str:
        """Return the local user id or exit with an error."""
        user_id = self.identity.user_id
        if not user_id:
            views.print_error(f"No profile found in {self.paths.root}")
            views.print_info("Run 'init' first to create a profile.")
            raise typer.Exit(1)
        return user_id


def get_workspace(data_dir: Path | None, require_init: bool = True) -> Workspace:
    """Open the data directory; exits if it was never initialised."""
    paths = get_paths(data_dir)
    goals, log = open_stores(paths)
    if require_init and not (goals.exists() and log.exists()):
        views.print_error(f"Data files not found in {paths.root}")
        views.print_info("Run 'init' first to create profile and data files.")
        raise typer.Exit(1)
    return Workspace(paths=paths, goals=goals, log=log, identity=LocalIdentity(paths.profile))


def build_controller(
    ws: Workspace,
    notifier: NotificationSink | None = None,
    scheduler: TickScheduler | None = None,
) -> SessionController:
    """SessionController wired to the workspace stores and its progression.yaml."""
    return SessionController(
        ws.goals,
        ws.log,
        ws.identity,
        notifier or views.ConsoleNotifier(),
        advisor=ProgressionAdvisor(load_progression_rules(ws.paths.config)),
        scheduler=scheduler,
        rest_seconds=load_rest_seconds(ws.paths.config),
    )


def run(coro: Coroutine[Any, Any, T], report: bool = True) -> T:
    """
    Run a coroutine to completion, turning domain errors into exit 1.

    Args:
        coro: Store call or controller command
        report: Print the error.  Pass False for controller commands, which
            already reported it through the ConsoleNotifier.
    """
    try:
        return asyncio.run(coro)
    except CycleCoachError as e:
        if report:
            views.print_error(str(e))
        raise typer.Exit(1)


async def latest_cycle(ws: Workspace, user_id: str) -> int | None:
    cycles = await ws.goals.list_cycles_for_user(user_id)
    return max(cycles) if cycles else None


async def goals_with_performance(
    ws: Workspace, user_id: str, cycle: int, include_paused: bool = False
) -> list[Goal]:
    """Goals of one cycle with their performance snapshot filled in."""
    goals = await ws.goals.list_goals(user_id, cycle)
    if not include_paused:
        goals = [g for g in goals if g.active]
    entries = await ws.log.list_entries_for_cycle(user_id, cycle)
    snapshots = aggregate_all(goals, entries)
    for goal in goals:
        goal.performance = snapshots[goal.id]
    return goals
