"""Workout commands: interactive workout session, log-set, rest."""

import asyncio
import json
from dataclasses import asdict
from typing import Annotated, Optional

import typer
from rich.markup import escape

from ...core.config_loader import load_rest_seconds
from ...core.errors import CycleCoachError, NoSessionError, SessionBusyError, StoreFailure, ValidationError
from ...core.interfaces import NullNotifier
from ...core.session import SessionController, TimerName
from ...core.timer import AsyncioScheduler, CountdownTimer, TimerEvent, format_seconds
from ...io.profile import get_paths
from ...io.serializers import entry_to_dict, parse_set_entry, parse_tags
from .. import views
from ..app import DataDirOption, JsonOption, app, build_controller, get_workspace, run

WORKOUT_HELP = """\
[bold]Commands[/bold]
  [cyan]10[/cyan] [cyan]10@20[/cyan] [cyan]45s[/cyan] [cyan]10@20 30s[/cyan]   log a set (append [cyan]![/cyan] for a failed set)
  [cyan]s[/cyan]  skip to another exercise     [cyan]p[/cyan]  pause this goal
  [cyan]c[/cyan]  change exercise              [cyan]f[/cyan]  filter by category / equipment
  [cyan]t[/cyan]  start/pause exercise timer   [cyan]tr[/cyan] reset exercise timer
  [cyan]r[/cyan]  start/pause rest timer       [cyan]st[/cyan] show timers
  [cyan]rs 60[/cyan] set rest length (seconds)
  [cyan]?[/cyan]  this help                    [cyan]q[/cyan]  quit
"""


def _toggle_timer(controller: SessionController, which: TimerName) -> None:
    state = controller.timer_state(which)
    if state.running:
        controller.pause_timer(which)
    else:
        if state.completed:
            controller.reset_timer(which)
        controller.start_timer(which)
    views.console.print(views.format_timer(which.capitalize(), controller.timer_state(which)))


def _print_timers(controller: SessionController) -> None:
    for which in ("exercise", "rest"):
        views.console.print(views.format_timer(which.capitalize(), controller.timer_state(which)))


def _change_exercise(controller: SessionController) -> None:
    goals = controller.active_goals()
    if not goals:
        views.print_info("No active goals in this cycle.")
        return
    views.print_goals(goals, title="Change exercise")
    raw = views.console.input("Goal ID (Enter to cancel): ").strip()
    if not raw:
        return
    chosen = next((g for g in goals if str(g.id) == raw), None)
    if chosen is None:
        views.print_error(f"No active goal with ID {raw}")
        return
    controller.change_current_goal(chosen)


def _choose_filters(controller: SessionController) -> None:
    categories, equipment = controller.filters()
    views.console.print(f"Categories: {', '.join(controller.available_categories()) or '-'}")
    raw_cat = views.console.input(
        f"Filter categories ({', '.join(sorted(categories)) or 'none'}): "
    ).strip()
    views.console.print(f"Equipment: {', '.join(controller.available_equipment()) or '-'}")
    raw_eq = views.console.input(
        f"Filter equipment ({', '.join(sorted(equipment)) or 'none'}): "
    ).strip()

    # '-' clears a filter, Enter keeps it
    new_cat = categories if not raw_cat else ([] if raw_cat == "-" else parse_tags(raw_cat))
    new_eq = equipment if not raw_eq else ([] if raw_eq == "-" else parse_tags(raw_eq))
    controller.set_filters(new_cat, new_eq)
    views.print_info(f"{len(controller.candidates())} exercises match.")


def _set_rest(controller: SessionController, args: list[str]) -> None:
    if len(args) != 1 or not args[0].isdigit():
        views.print_error("Usage: rs SECONDS, e.g. rs 60")
        return
    controller.set_rest_seconds(int(args[0]))
    views.console.print(views.format_timer("Rest", controller.timer_state("rest")))


async def _log_from_input(controller: SessionController, raw: str) -> None:
    try:
        request = parse_set_entry(raw)
    except ValidationError as e:
        views.print_error(str(e))
        return

    if request.duration_seconds is None:
        request.duration_seconds = controller.suggested_duration_done()
    await controller.log_set(request)
    views.console.print(views.format_timer("Rest", controller.timer_state("rest")))


async def _handle_command(controller: SessionController, raw: str) -> bool:
    """Run one workout command; returns False when the user quits."""
    cmd = raw.lower()
    if cmd in ("q", "quit", "exit"):
        return False
    if cmd in ("?", "h", "help"):
        views.console.print(WORKOUT_HELP)
    elif cmd == "s":
        controller.select_next_goal()
    elif cmd == "p":
        await controller.pause_current_goal()
    elif cmd == "c":
        _change_exercise(controller)
    elif cmd == "f":
        _choose_filters(controller)
    elif cmd == "t":
        _toggle_timer(controller, "exercise")
    elif cmd == "tr":
        controller.reset_timer("exercise")
        views.console.print(views.format_timer("Exercise", controller.timer_state("exercise")))
    elif cmd == "r":
        _toggle_timer(controller, "rest")
    elif cmd == "st":
        _print_timers(controller)
    elif cmd.split()[:1] == ["rs"]:
        _set_rest(controller, cmd.split()[1:])
    elif cmd:
        await _log_from_input(controller, raw)
    return True


async def _workout_loop(
    controller: SessionController,
    cycle: int | None,
    categories: list[str],
    equipment: list[str],
) -> None:
    try:
        if cycle is None:
            await controller.load_cycles()
        else:
            await controller.select_cycle(cycle)
        if categories or equipment:
            controller.set_filters(categories, equipment)

        if controller.cycle is not None:
            views.console.print(f"[bold]Cycle {controller.cycle}[/bold]")
        views.console.print(WORKOUT_HELP)

        while True:
            views.print_current_goal(controller.current_goal)
            try:
                raw = (await asyncio.to_thread(views.console.input, "> ")).strip()
            except EOFError:
                break
            try:
                if not await _handle_command(controller, raw):
                    break
            except (StoreFailure, ValidationError):
                # already shown by the ConsoleNotifier
                continue
            except (NoSessionError, SessionBusyError) as e:
                views.print_error(str(e))
    finally:
        controller.close()


@app.command()
def workout(
    cycle: Annotated[
        Optional[int],
        typer.Option("--cycle", "-c", min=1, help="Cycle to train (default: latest)"),
    ] = None,
    categories: Annotated[
        Optional[str],
        typer.Option("--categories", help="Only offer goals with one of these tags"),
    ] = None,
    equipment: Annotated[
        Optional[str],
        typer.Option("--equipment", help="Only offer goals needing one of these"),
    ] = None,
    no_sound: Annotated[
        bool,
        typer.Option("--no-sound", help="Do not ring the bell when a timer ends"),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """
    Run an interactive workout session.

    The session picks a random exercise from the cycle, you log each set,
    a rest countdown starts, and the next exercise is picked (never the same
    one twice in a row while others remain).
    """
    ws = get_workspace(data_dir)
    ws.require_user()

    async def _main() -> None:
        controller = build_controller(
            ws, views.ConsoleNotifier(sound=not no_sound), AsyncioScheduler()
        )
        await _workout_loop(controller, cycle, parse_tags(categories), parse_tags(equipment))

    try:
        asyncio.run(_main())
    except CycleCoachError:
        # cycle loading failed; the notifier printed why
        raise typer.Exit(1)
    views.print_info("Workout finished.")


@app.command("log-set")
def log_set(
    goal_id: Annotated[int, typer.Argument(help="Goal ID (see 'goals')")],
    entry: Annotated[
        str,
        typer.Argument(help="Set in short notation: 10, 10@20, 45s, 10@20 30s, 8! (failed)"),
    ],
    notes: Annotated[Optional[str], typer.Option("--notes", "-n", help="Set notes")] = None,
    json_out: JsonOption = False,
    data_dir: DataDirOption = None,
) -> None:
    """
    Log one set against a goal without starting a workout.

      cycle-coach log-set 3 10@20
      cycle-coach log-set 5 45s
    """
    ws = get_workspace(data_dir)
    user_id = ws.require_user()

    try:
        request = parse_set_entry(entry)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    request.notes = notes

    target = run(ws.goals.get_goal(goal_id))
    if target is None or target.user_id != user_id:
        views.print_error(f"Goal {goal_id} not found")
        raise typer.Exit(1)
    if not target.active:
        views.print_error(f"Goal {goal_id} is paused; resume it with 'pause-goal --resume'")
        raise typer.Exit(1)

    notifier = NullNotifier() if json_out else views.ConsoleNotifier(sound=False)
    controller = build_controller(ws, notifier)

    async def _log():
        try:
            await controller.select_cycle(target.cycle)
            current = next(g for g in controller.active_goals() if g.id == goal_id)
            controller.change_current_goal(current)
            stored = await controller.log_set(request)
        finally:
            controller.close()
        return current, stored

    goal, stored = run(_log(), report=json_out)

    if json_out:
        print(json.dumps({
            "entry": entry_to_dict(stored),
            "performance": asdict(goal.performance) if goal.performance else None,
        }, indent=2))
        return

    snap = goal.performance
    if snap is not None:
        views.console.print(
            f"[dim]{escape(goal.exercise_name)}: {snap.total_sets_completed}/{goal.sets} sets, "
            f"{snap.total_reps_completed} reps this cycle[/dim]"
        )


async def _countdown(timer: CountdownTimer, notifier: views.ConsoleNotifier) -> None:
    done = asyncio.Event()

    def on_event(event: TimerEvent) -> None:
        if event.kind == "tick":
            views.console.print(f"  Rest {format_seconds(event.remaining)}", end="\r")
        elif event.kind == "completed":
            views.console.print("  Rest 00:00")
            done.set()
        elif event.kind == "sound":
            notifier.play_tone("complete")

    timer.subscribe(on_event)
    views.console.print(f"  Rest {format_seconds(timer.get_remaining())}", end="\r")
    timer.start()
    try:
        await done.wait()
    finally:
        timer.stop()


@app.command()
def rest(
    seconds: Annotated[
        Optional[int],
        typer.Argument(min=1, help="Countdown length (default: session.rest_seconds)"),
    ] = None,
    no_sound: Annotated[
        bool,
        typer.Option("--no-sound", help="Do not ring the bell at the end"),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Run a rest countdown in the terminal (Ctrl+C to stop)."""
    paths = get_paths(data_dir)
    duration = seconds or load_rest_seconds(paths.config)
    notifier = views.ConsoleNotifier(sound=not no_sound)

    async def _main() -> None:
        timer = CountdownTimer("rest", duration, AsyncioScheduler())
        await _countdown(timer, notifier)

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        views.console.print()
        views.print_info("Rest stopped.")
        return
    views.print_success("Rest is over.")

