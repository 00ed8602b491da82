"""
Local profile (``profile.json``) and the file layout of a data directory.
"""

import json
import uuid
from dataclasses import dataclass
from pathlib import Path

from ..core.config_loader import get_data_dir
from .goal_store import JsonlGoalStore
from .log_store import JsonlLogStore


@dataclass(frozen=True)
class DataPaths:
    """Files that make up one cycle-coach data directory."""

    root: Path

    @property
    def goals(self) -> Path:
        return self.root / "goals.jsonl"

    @property
    def log(self) -> Path:
        return self.root / "done_exercises.jsonl"

    @property
    def profile(self) -> Path:
        return self.root / "profile.json"

    @property
    def config(self) -> Path:
        return self.root / "progression.yaml"


def get_paths(data_dir: Path | None = None) -> DataPaths:
    return DataPaths(Path(data_dir) if data_dir is not None else get_data_dir())


def open_stores(paths: DataPaths) -> tuple[JsonlGoalStore, JsonlLogStore]:
    return JsonlGoalStore(paths.goals), JsonlLogStore(paths.log)


class LocalIdentity:
    """IdentityContext reading the user id from profile.json."""

    def __init__(self, profile_path: Path):
        self.profile_path = Path(profile_path)

    @property
    def user_id(self) -> str | None:
        if not self.profile_path.exists():
            return None
        try:
            with open(self.profile_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            return None
        return data.get("user_id") or None

    def load_name(self) -> str | None:
        if not self.profile_path.exists():
            return None
        try:
            with open(self.profile_path, "r", encoding="utf-8") as f:
                return json.load(f).get("name")
        except (json.JSONDecodeError, OSError):
            return None

    def save(self, name: str, user_id: str | None = None) -> str:
        """
        Write profile.json, keeping an existing user id unless one is given.

        Returns:
            The user id now on record
        """
        uid = user_id or self.user_id or uuid.uuid4().hex
        self.profile_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.profile_path, "w", encoding="utf-8") as f:
            json.dump({"user_id": uid, "name": name}, f, indent=2)
        return uid
