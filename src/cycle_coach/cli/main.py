"""
CLI entry point using Typer.

Provides commands for cycle-based workout training:
- init: Create profile and data files
- add-goal / goals / cycles / pause-goal: Manage goals
- workout: Interactive session (log sets, skip, pause, change, filter, timers)
- log-set: Log a single set
- rest: Rest countdown
- performance / history: Review a cycle and the sets logged in it
- next-cycle: Progress into the next cycle
"""

import logging
from typing import Annotated

import typer

from . import views
from .app import app
from .commands import cycles as _cycles
from .commands import goals as _goals
from .commands import workout as _workout
from .commands.goals import _menu_pause_goal


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show engine debug logging"),
    ] = False,
) -> None:
    """
    Microcycle workout coach. Run without a command for interactive mode.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if ctx.invoked_subcommand is not None:
        return

    # ── Interactive main menu ───────────────────────────────────────────────
    views.console.print()
    views.console.print("[bold cyan]cycle-coach[/bold cyan] - microcycle workout coach")
    views.console.print()

    menu = {
        "1": ("workout",     "Start a workout"),
        "2": ("goals",       "Show goals of the current cycle"),
        "3": ("performance", "Cycle performance"),
        "4": ("next-cycle",  "Create the next cycle"),
        "5": ("cycles",      "List cycles"),
        "6": ("rest",        "Rest countdown"),
        "7": ("history",     "Sets logged this cycle"),
        "p": ("pause-goal",  "Pause a goal"),
        "i": ("init",        "Setup / edit profile"),
        "0": ("quit",        "Quit"),
    }

    for key, (_, desc) in menu.items():
        views.console.print(f"  \\[{key}] {desc}")

    views.console.print()
    choice = views.console.input("Choose [1]: ").strip() or "1"

    if choice == "0":
        raise typer.Exit(0)

    chosen = {k: v[0] for k, v in menu.items()}.get(choice)
    if chosen is None:
        views.print_error(f"Unknown choice: {choice}")
        raise typer.Exit(1)

    if chosen == "workout":
        ctx.invoke(_workout.workout)
    elif chosen == "goals":
        ctx.invoke(_goals.list_goals)
    elif chosen == "performance":
        ctx.invoke(_cycles.performance)
    elif chosen == "next-cycle":
        ctx.invoke(_cycles.next_cycle)
    elif chosen == "cycles":
        ctx.invoke(_goals.list_cycles)
    elif chosen == "rest":
        ctx.invoke(_workout.rest)
    elif chosen == "history":
        ctx.invoke(_cycles.history)
    elif chosen == "pause-goal":
        _menu_pause_goal()
    elif chosen == "init":
        ctx.invoke(_goals.init)


if __name__ == "__main__":
    app()
