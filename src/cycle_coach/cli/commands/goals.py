"""Goal commands: init, add-goal, goals, cycles, pause-goal."""

import json
from typing import Annotated, Optional

import typer

from ...core.models import ProposedGoal
from ...io.serializers import goal_to_dict, parse_tags
from .. import views
from ..app import (
    DataDirOption,
    JsonOption,
    app,
    get_workspace,
    goals_with_performance,
    latest_cycle,
    run,
)


@app.command()
def init(
    name: Annotated[
        Optional[str],
        typer.Option("--name", "-n", help="Your display name"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Create the data directory, empty goal and log files, and a local profile.

    Safe to re-run: existing files are kept and the user id is preserved.
    """
    ws = get_workspace(data_dir, require_init=False)

    if name is None:
        current = ws.identity.load_name() or ""
        hint = f" [{current}]" if current else ""
        raw = views.console.input(f"Name{hint}: ").strip()
        name = raw or current or "athlete"

    try:
        ws.goals.init()
        ws.log.init()
    except OSError as e:
        views.print_error(f"Cannot create data files: {e}")
        raise typer.Exit(1)

    user_id = ws.identity.save(name)
    views.print_success(f"Profile ready for {name} in {ws.paths.root}")
    views.console.print(f"[dim]User id: {user_id}[/dim]")


@app.command("add-goal")
def add_goal(
    exercise: Annotated[str, typer.Argument(help="Exercise name, e.g. 'Push-up'")],
    sets: Annotated[int, typer.Option("--sets", "-s", min=1, help="Planned sets")] = 3,
    reps: Annotated[
        Optional[int],
        typer.Option("--reps", "-r", min=0, help="Planned reps per set"),
    ] = None,
    weight: Annotated[
        Optional[float],
        typer.Option("--weight", "-w", min=0, help="Working weight in kg"),
    ] = None,
    duration: Annotated[
        Optional[int],
        typer.Option("--duration", "-t", min=0, help="Seconds per set for timed exercises"),
    ] = None,
    cycle: Annotated[
        Optional[int],
        typer.Option("--cycle", "-c", min=1, help="Cycle number (default: latest, or 1)"),
    ] = None,
    categories: Annotated[
        Optional[str],
        typer.Option("--categories", help="Comma-separated tags, e.g. 'push,upper'"),
    ] = None,
    equipment: Annotated[
        Optional[str],
        typer.Option("--equipment", help="Comma-separated equipment, e.g. 'dumbbells'"),
    ] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Goal notes")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Add a goal to a cycle.

      cycle-coach add-goal "Push-up" --sets 3 --reps 10 --categories push
      cycle-coach add-goal "Plank" --sets 3 --duration 45 --categories core
    """
    if reps is None and duration is None:
        views.print_error("Give --reps, --duration, or both")
        raise typer.Exit(1)

    ws = get_workspace(data_dir)
    user_id = ws.require_user()

    proposal = ProposedGoal(
        exercise_name=exercise,
        sets=sets,
        reps=reps,
        original_goal_id=None,
        rationale="added manually",
        weight=weight,
        duration_seconds=duration,
        categories=parse_tags(categories),
        equipment=parse_tags(equipment),
        notes=notes,
    )

    async def _add():
        target = cycle or await latest_cycle(ws, user_id) or 1
        return await ws.goals.add_goal(proposal, user_id, target)

    goal = run(_add())
    views.print_success(
        f"Added goal #{goal.id}: {goal.exercise_name} {goal.describe_target()} (cycle {goal.cycle})"
    )


@app.command("goals")
def list_goals(
    cycle: Annotated[
        Optional[int],
        typer.Option("--cycle", "-c", min=1, help="Cycle number (default: latest)"),
    ] = None,
    show_all: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include paused goals"),
    ] = False,
    json_out: JsonOption = False,
    data_dir: DataDirOption = None,
) -> None:
    """Show the goals of a cycle with sets done so far."""
    ws = get_workspace(data_dir)
    user_id = ws.require_user()

    async def _load():
        target = cycle or await latest_cycle(ws, user_id)
        if target is None:
            return None, []
        return target, await goals_with_performance(ws, user_id, target, show_all)

    target, goals = run(_load())

    if json_out:
        print(json.dumps({
            "cycle": target,
            "goals": [
                {**goal_to_dict(g), "sets_done": g.performance.total_sets_completed if g.performance else 0}
                for g in goals
            ],
        }, indent=2))
        return

    if target is None:
        views.print_info("No cycles yet. Add a goal with 'add-goal'.")
        return
    views.print_goals(goals, title=f"Cycle {target}")


@app.command("cycles")
def list_cycles(
    json_out: JsonOption = False,
    data_dir: DataDirOption = None,
) -> None:
    """List your cycles with their goal counts."""
    ws = get_workspace(data_dir)
    user_id = ws.require_user()

    async def _load():
        goals = await ws.goals.list_goals(user_id)
        cycles = await ws.goals.list_cycles_for_user(user_id)
        return [
            {
                "cycle": c,
                "goals": sum(1 for g in goals if g.cycle == c),
                "active": sum(1 for g in goals if g.cycle == c and g.active),
            }
            for c in cycles
        ]

    rows = run(_load())

    if json_out:
        print(json.dumps({"cycles": rows}, indent=2))
        return

    if not rows:
        views.print_info("No cycles yet. Add a goal with 'add-goal'.")
        return
    for row in rows:
        views.console.print(
            f"  Cycle [bold]{row['cycle']}[/bold]: {row['goals']} goals ({row['active']} active)"
        )


@app.command("pause-goal")
def pause_goal(
    goal_id: Annotated[int, typer.Argument(help="Goal ID (see 'goals')")],
    resume: Annotated[
        bool,
        typer.Option("--resume", help="Re-activate a paused goal instead"),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Pause a goal so the session stops offering it (or resume it)."""
    ws = get_workspace(data_dir)
    ws.require_user()

    goal = run(ws.goals.set_goal_active(goal_id, resume))

    state = "Resumed" if goal.active else "Paused"
    views.print_success(f"{state} goal #{goal.id}: {goal.exercise_name}")


def _menu_pause_goal() -> None:
    """Interactive pause helper called from the main menu."""
    ws = get_workspace(None)
    user_id = ws.require_user()

    async def _load():
        target = await latest_cycle(ws, user_id)
        if target is None:
            return []
        return await ws.goals.list_active_goals(user_id, target)

    goals = run(_load())
    if not goals:
        views.print_info("No active goals.")
        return
    views.print_goals(goals, title="Active goals")

    raw = views.console.input("Pause goal ID (Enter to cancel): ").strip()
    if not raw:
        views.print_info("Cancelled.")
        return
    try:
        goal_id = int(raw)
    except ValueError:
        views.print_error("Enter a number")
        return
    goal = run(ws.goals.set_goal_active(goal_id, False))
    views.print_success(f"Paused goal #{goal.id}: {goal.exercise_name}")
