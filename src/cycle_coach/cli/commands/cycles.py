"""Cycle commands: performance review, set history and next-cycle progression."""

import json
from dataclasses import asdict
from typing import Annotated, Optional

import typer

from ...core.interfaces import NullNotifier
from ...core.models import ProposedGoal
from ...io.serializers import entry_to_dict, parse_tags
from .. import views
from ..app import (
    DataDirOption,
    JsonOption,
    app,
    build_controller,
    get_workspace,
    goals_with_performance,
    latest_cycle,
    run,
)


@app.command()
def performance(
    cycle: Annotated[
        Optional[int],
        typer.Option("--cycle", "-c", min=1, help="Cycle number (default: latest)"),
    ] = None,
    json_out: JsonOption = False,
    data_dir: DataDirOption = None,
) -> None:
    """Show per-goal performance for a cycle (sets, reps, volume, completion)."""
    ws = get_workspace(data_dir)
    user_id = ws.require_user()

    async def _load():
        target = cycle or await latest_cycle(ws, user_id)
        if target is None:
            return None, []
        return target, await goals_with_performance(ws, user_id, target, include_paused=True)

    target, goals = run(_load())

    if json_out:
        print(json.dumps({
            "cycle": target,
            "goals": [
                {"goal_id": g.id, "exercise_name": g.exercise_name, **asdict(g.performance)}
                for g in goals
                if g.performance is not None
            ],
        }, indent=2))
        return

    if target is None:
        views.print_info("No cycles yet. Add a goal with 'add-goal'.")
        return
    views.console.print(views.format_performance_table(goals, title=f"Cycle {target} performance"))


@app.command()
def history(
    cycle: Annotated[
        Optional[int],
        typer.Option("--cycle", "-c", min=1, help="Cycle number (default: latest)"),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-l", min=1, help="Show only the newest N sets"),
    ] = None,
    json_out: JsonOption = False,
    data_dir: DataDirOption = None,
) -> None:
    """
    List the sets logged in a cycle, newest first.
    """
    ws = get_workspace(data_dir)
    user_id = ws.require_user()

    async def _load():
        target = cycle or await latest_cycle(ws, user_id)
        if target is None:
            return None, [], {}
        entries = await ws.log.list_entries_for_cycle(user_id, target)
        names = {g.id: g.exercise_name for g in await ws.goals.list_goals(user_id, target)}
        return target, entries, names

    target, entries, names = run(_load())
    if limit is not None:
        entries = entries[:limit]

    if json_out:
        print(json.dumps({
            "cycle": target,
            "entries": [
                {"exercise_name": names.get(e.goal_id), **entry_to_dict(e)}
                for e in entries
            ],
        }, indent=2))
        return

    if target is None:
        views.print_info("No cycles yet. Add a goal with 'add-goal'.")
        return
    views.print_log(entries, names, title=f"Cycle {target} log")


def _proposal_to_dict(p: ProposedGoal) -> dict:
    return {
        "original_goal_id": p.original_goal_id,
        "exercise_name": p.exercise_name,
        "sets": p.sets,
        "reps": p.reps,
        "weight": p.weight,
        "duration_seconds": p.duration_seconds,
        "notes": p.notes,
        "include": p.include,
        "rationale": p.rationale,
    }


_EDITABLE_FIELDS = {"sets": int, "reps": int, "weight": float, "duration": int}


def _edit_proposal(p: ProposedGoal, text: str) -> None:
    """
    Apply ``sets=4 reps=12 weight=25 duration=45 notes=...`` to a proposal.

    ``-`` clears reps, weight or duration.  ``notes=`` takes the rest of
    the line.

    Raises:
        ValueError: Unknown field, bad number, or a goal left with neither
            reps nor duration
    """
    notes = None
    if "notes=" in text:
        text, notes = text.split("notes=", 1)

    changes: dict[str, int | float | None] = {}
    for token in text.split():
        key, sep, value = token.partition("=")
        if not sep or key not in _EDITABLE_FIELDS:
            raise ValueError(f"Cannot edit '{token}'; use sets=, reps=, weight=, duration=, notes=")
        if value == "-" and key != "sets":
            changes[key] = None
            continue
        try:
            number = _EDITABLE_FIELDS[key](value)
        except ValueError:
            raise ValueError(f"{key} must be a number, got '{value}'") from None
        if number < 0 or (key == "sets" and number < 1):
            raise ValueError(f"{key} out of range: {value}")
        changes[key] = number

    if not changes and notes is None:
        raise ValueError("Nothing to change, e.g. e 2 sets=4 reps=12")
    reps = changes.get("reps", p.reps)
    duration = changes.get("duration", p.duration_seconds)
    if reps is None and duration is None:
        raise ValueError("A goal needs reps or a duration")

    p.sets = changes.get("sets", p.sets)
    p.reps = reps
    p.weight = changes.get("weight", p.weight)
    p.duration_seconds = duration
    if notes is not None:
        p.notes = notes.strip() or None


def _review_proposals(proposals: list[ProposedGoal], title: str) -> None:
    """
    Let the user toggle and edit proposals before committing.

    Accepts row numbers separated by commas or spaces to toggle, or
    ``e ROW field=value ...`` to edit one row; Enter accepts.
    """
    while True:
        views.console.print(views.format_proposals_table(proposals, title))
        raw = views.console.input(
            "Toggle # (e.g. 2,4), edit with 'e 2 reps=12 weight=25', Enter to accept: "
        ).strip()
        if not raw:
            return
        if raw.lower().startswith("e "):
            parts = raw.split(maxsplit=2)
            if len(parts) < 3 or not parts[1].isdigit() or not 1 <= int(parts[1]) <= len(proposals):
                views.print_error(f"Usage: e ROW field=value, ROW between 1 and {len(proposals)}")
                continue
            try:
                _edit_proposal(proposals[int(parts[1]) - 1], parts[2])
            except ValueError as e:
                views.print_error(str(e))
            continue
        for token in raw.replace(",", " ").split():
            try:
                idx = int(token)
            except ValueError:
                views.print_error(f"Not a number: {token}")
                continue
            if not 1 <= idx <= len(proposals):
                views.print_error(f"Enter a number between 1 and {len(proposals)}")
                continue
            proposals[idx - 1].include = not proposals[idx - 1].include


@app.command("next-cycle")
def next_cycle(
    from_cycle: Annotated[
        Optional[int],
        typer.Option("--from-cycle", "-f", min=1, help="Cycle to progress from (default: latest)"),
    ] = None,
    exclude: Annotated[
        Optional[str],
        typer.Option("--exclude", "-x", help="Comma-separated goal IDs to leave out"),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Commit without reviewing proposals"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show proposals without creating the cycle"),
    ] = False,
    json_out: JsonOption = False,
    data_dir: DataDirOption = None,
) -> None:
    """
    Propose progressed goals for the next cycle and create it.

    Each active goal of the source cycle is proposed again with reps or sets
    raised when its targets were met, or repeated when they were not.  In
    --json mode nothing is prompted; the cycle is created only with --yes.
    """
    ws = get_workspace(data_dir)
    user_id = ws.require_user()
    controller = build_controller(ws, NullNotifier() if json_out else None)

    try:
        excluded = {int(x) for x in parse_tags(exclude)}
    except ValueError:
        views.print_error("--exclude takes goal IDs, e.g. 3,5")
        raise typer.Exit(1)

    async def _propose():
        source = from_cycle or await latest_cycle(ws, user_id)
        if source is None:
            return None, []
        goals = await ws.goals.list_active_goals(user_id, source)
        return source, await controller.propose_next_cycle(goals)

    source, proposals = run(_propose())
    if source is None or not proposals:
        if json_out:
            print(json.dumps({"from_cycle": source, "proposals": []}, indent=2))
        else:
            views.print_info("No active goals to progress.")
        return

    for p in proposals:
        if p.original_goal_id in excluded:
            p.include = False

    title = f"Proposals from cycle {source}"
    if json_out:
        commit = yes and not dry_run
    elif dry_run:
        views.console.print(views.format_proposals_table(proposals, title))
        commit = False
    elif yes:
        views.console.print(views.format_proposals_table(proposals, title))
        commit = True
    else:
        _review_proposals(proposals, title)
        commit = views.confirm_action("Create the next cycle with the checked goals?")
        if not commit:
            views.print_info("Cancelled.")

    created = []
    if commit:
        created = run(controller.commit_next_cycle(proposals), report=json_out)

    if json_out:
        print(json.dumps({
            "from_cycle": source,
            "cycle": created[0].cycle if created else None,
            "proposals": [_proposal_to_dict(p) for p in proposals],
        }, indent=2))
