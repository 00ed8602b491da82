"""
Append-only JSONL log of completed sets (``done_exercises.jsonl``).
"""

import logging
from dataclasses import replace
from pathlib import Path

from ..core.errors import StoreFailure, ValidationError
from ..core.models import DoneExerciseLogEntry, now_iso
from .serializers import entry_to_json_line, json_line_to_entry

logger = logging.getLogger(__name__)


class JsonlLogStore:
    """
    Log store backed by a JSONL file.

    Entries are only ever appended.  The store assigns ``id`` (max + 1) and
    ``logged_at`` when the caller left them empty.
    """

    def __init__(self, log_path: str | Path):
        self.log_path = Path(log_path)

    def exists(self) -> bool:
        return self.log_path.exists()

    def init(self) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.log_path.exists():
            self.log_path.touch()

    async def append_entry(self, entry: DoneExerciseLogEntry) -> DoneExerciseLogEntry:
        entries = self._load()
        stored = replace(
            entry,
            id=max((e.id or 0 for e in entries), default=0) + 1,
            logged_at=entry.logged_at or now_iso(),
        )
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry_to_json_line(stored) + "\n")
        except OSError as e:
            raise StoreFailure(f"Cannot append to {self.log_path}: {e}") from e
        logger.debug("logged set %s for goal %s", stored.id, stored.goal_id)
        return stored

    async def list_entries_for_cycle(
        self, user_id: str, cycle: int
    ) -> list[DoneExerciseLogEntry]:
        """Entries for one user and cycle, newest first."""
        entries = [e for e in self._load() if e.user_id == user_id and e.cycle == cycle]
        entries.sort(key=lambda e: (e.logged_at, e.id or 0), reverse=True)
        return entries

    def _load(self) -> list[DoneExerciseLogEntry]:
        if not self.log_path.exists():
            raise StoreFailure(f"Log file not found: {self.log_path}. Run 'init' first.")

        entries: list[DoneExerciseLogEntry] = []
        try:
            with open(self.log_path, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    if not line.strip():
                        continue
                    try:
                        entries.append(json_line_to_entry(line))
                    except ValidationError as e:
                        raise StoreFailure(
                            f"Error parsing line {line_num} in {self.log_path}: {e}"
                        ) from e
        except OSError as e:
            raise StoreFailure(f"Cannot read {self.log_path}: {e}") from e
        return entries
