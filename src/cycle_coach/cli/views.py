"""
CLI view formatters using Rich for pretty console output.

Handles table formatting of goals, performance and next-cycle proposals,
and implements the session NotificationSink on top of the console.
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.interfaces import NotificationLevel
from ..core.models import DoneExerciseLogEntry, Goal, PerformanceSnapshot, ProposedGoal, TimerState
from ..core.timer import format_seconds

console = Console()


def _tags(values: list[str]) -> str:
    return ", ".join(values) if values else "-"


def _progress(goal: Goal) -> str:
    snap = goal.performance
    if snap is None:
        return "-"
    return f"{snap.total_sets_completed}/{goal.sets}"


def format_goal_table(goals: list[Goal], title: str = "Goals") -> Table:
    """
    Create a Rich table listing goals.

    Args:
        goals: Goals to display
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title)

    table.add_column("ID", justify="right", style="dim", width=4)
    table.add_column("Exercise", style="cyan")
    table.add_column("Target")
    table.add_column("Categories", style="magenta")
    table.add_column("Equipment", style="green")
    table.add_column("Done", justify="right", style="bold")
    table.add_column("Status")

    for goal in goals:
        table.add_row(
            str(goal.id),
            escape(goal.exercise_name),
            goal.describe_target(),
            _tags(goal.categories),
            _tags(goal.equipment),
            _progress(goal),
            "active" if goal.active else "[dim]paused[/dim]",
        )

    return table


def print_goals(goals: list[Goal], title: str = "Goals") -> None:
    if not goals:
        print_info("No goals to show.")
        return
    console.print(format_goal_table(goals, title))


def format_performance_table(goals: list[Goal], title: str = "Performance") -> Table:
    """Per-goal performance snapshot for one cycle."""
    table = Table(title=title)

    table.add_column("ID", justify="right", style="dim", width=4)
    table.add_column("Exercise", style="cyan")
    table.add_column("Sets", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Avg reps", justify="right")
    table.add_column("Avg kg", justify="right")
    table.add_column("Volume", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("On target", justify="right")
    table.add_column("Done", justify="center")

    for goal in goals:
        snap = goal.performance or PerformanceSnapshot()
        table.add_row(
            str(goal.id),
            escape(goal.exercise_name),
            f"{snap.total_sets_completed}/{snap.planned_sets or goal.sets}",
            str(snap.total_reps_completed),
            f"{snap.average_reps_per_set:.1f}",
            f"{snap.average_weight_per_set:.1f}" if snap.average_weight_per_set else "-",
            f"{snap.total_volume:.1f}" if snap.total_volume else "-",
            f"{snap.max_reps_in_set}" + (
                f" @ {snap.max_weight_in_set:.1f}" if snap.max_weight_in_set else ""
            ),
            str(snap.sets_meeting_target),
            "[green]yes[/green]" if snap.was_completed else "no",
        )

    return table


def format_proposals_table(proposals: list[ProposedGoal], title: str) -> Table:
    """
    Create a Rich table of next-cycle proposals.

    Args:
        proposals: Proposals in display order (row number = position + 1)
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title)

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Use", justify="center")
    table.add_column("Exercise", style="cyan")
    table.add_column("Sets", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Rationale", style="dim")

    for i, p in enumerate(proposals, 1):
        table.add_row(
            str(i),
            "[green]x[/green]" if p.include else " ",
            escape(p.exercise_name),
            str(p.sets),
            str(p.reps) if p.reps is not None else "-",
            f"{p.weight:.1f}" if p.weight else "-",
            f"{p.duration_seconds}s" if p.duration_seconds is not None else "-",
            escape(p.rationale),
        )

    return table


def format_log_table(
    entries: list[DoneExerciseLogEntry], names: dict[int, str], title: str = "Logged sets"
) -> Table:
    """
    Create a Rich table of logged sets, in the order given (newest first).

    Args:
        entries: Log entries to display
        names: Exercise name per goal ID
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title)

    table.add_column("#", justify="right", style="dim", width=4)
    table.add_column("Logged", style="dim")
    table.add_column("Exercise", style="cyan")
    table.add_column("Reps", justify="right", style="bold")
    table.add_column("Weight", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Failed", justify="center")
    table.add_column("Notes")

    for entry in entries:
        table.add_row(
            str(entry.id) if entry.id is not None else "-",
            entry.logged_at.replace("T", " "),
            escape(names.get(entry.goal_id, f"goal {entry.goal_id}")),
            str(entry.reps) if entry.reps is not None else "-",
            f"{entry.weight:.1f}" if entry.weight else "-",
            format_seconds(entry.duration_seconds) if entry.duration_seconds is not None else "-",
            "[red]yes[/red]" if entry.failed else "",
            escape(entry.notes or ""),
        )

    return table


def print_log(entries: list[DoneExerciseLogEntry], names: dict[int, str], title: str) -> None:
    if not entries:
        print_info("No sets logged in this cycle.")
        return
    console.print(format_log_table(entries, names, title))


def print_current_goal(goal: Goal | None) -> None:
    """Print the goal the session is currently on."""
    console.print()
    if goal is None:
        console.print("[bold]No exercise selected.[/bold]")
        return
    console.print(f"[bold cyan]{escape(goal.exercise_name)}[/bold cyan]  {goal.describe_target()}")
    details = []
    if goal.performance is not None:
        details.append(f"done {goal.performance.total_sets_completed}/{goal.sets} sets")
    if goal.categories:
        details.append(escape(_tags(goal.categories)))
    if goal.equipment:
        details.append(f"needs {escape(_tags(goal.equipment))}")
    if details:
        console.print(f"[dim]{'  |  '.join(details)}[/dim]")
    if goal.notes:
        console.print(f"[dim]Notes: {escape(goal.notes)}[/dim]")


def format_timer(label: str, state: TimerState) -> str:
    if state.completed:
        status = "done"
    elif state.running:
        status = "running"
    else:
        status = "paused"
    return f"{label} {format_seconds(state.remaining_seconds)} ({status})"


class ConsoleNotifier:
    """NotificationSink that prints to the Rich console and rings the terminal bell."""

    def __init__(self, sound: bool = True):
        self.sound = sound

    def notify(self, level: NotificationLevel, message: str) -> None:
        if level == "success":
            print_success(message)
        elif level == "error":
            print_error(message)
        elif level == "warning":
            print_warning(message)
        else:
            print_info(message)

    def play_tone(self, kind: str) -> None:
        if self.sound:
            console.bell()


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{escape(message)}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {escape(message)}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {escape(message)}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{escape(message)}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{escape(message)} \\[y/N]: ")
    return response.lower() in ("y", "yes")
