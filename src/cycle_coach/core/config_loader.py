"""
YAML -> typed config loader.

Loads progression thresholds and session defaults from progression.yaml
(bundled with the package) and optionally merges user overrides from
~/.cycle-coach/progression.yaml.

Usage:
    from cycle_coach.core.config_loader import load_progression_rules
    rules = load_progression_rules()
    rules.reps_ceiling  # 12 unless overridden

Keys missing from both YAML files fall back to the Python defaults in
config.py.  A YAML file that cannot be parsed is skipped with a warning.
"""

from __future__ import annotations

import importlib.resources
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .config import (
    ADEQUATE_REPS_INCREMENT,
    DATA_DIR_NAME,
    DEFAULT_REST_SECONDS,
    LOW_COMPLIANCE_THRESHOLD,
    MIN_PROPOSED_REPS,
    MIN_PROPOSED_SETS,
    REPS_CEILING,
    SETS_CEILING,
    SETS_INCREMENT,
    SIGNIFICANT_EXCEED_FACTOR,
    STRONG_REPS_INCREMENT,
)


@dataclass(frozen=True)
class ProgressionRules:
    """Tunable thresholds for next-cycle proposals."""

    significant_exceed_factor: float = SIGNIFICANT_EXCEED_FACTOR
    reps_ceiling: int = REPS_CEILING
    sets_ceiling: int = SETS_CEILING
    strong_reps_increment: int = STRONG_REPS_INCREMENT
    adequate_reps_increment: int = ADEQUATE_REPS_INCREMENT
    sets_increment: int = SETS_INCREMENT
    low_compliance_threshold: float = LOW_COMPLIANCE_THRESHOLD
    min_sets: int = MIN_PROPOSED_SETS
    min_reps: int = MIN_PROPOSED_REPS


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; warn and return {} if it cannot be read."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"cycle-coach: ignoring config file {path} ({exc})", stacklevel=2)
        return {}
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_data_dir() -> Path:
    """Return ~/.cycle-coach (not created here)."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    return home / DATA_DIR_NAME


def get_bundled_yaml_path() -> Path | None:
    """Return the path to the bundled progression.yaml, or None if not found."""
    ref = importlib.resources.files("cycle_coach").joinpath("progression.yaml")
    if ref.is_file():
        return Path(str(ref))
    candidate = Path(__file__).parent.parent / "progression.yaml"
    return candidate if candidate.exists() else None


def get_user_yaml_path() -> Path | None:
    """Return ~/.cycle-coach/progression.yaml if it exists, else None."""
    p = get_data_dir() / "progression.yaml"
    return p if p.exists() else None


def load_model_config(user_path: Path | None = None) -> dict[str, Any]:
    """
    Load and merge configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/cycle_coach/progression.yaml
    2. User override (``user_path`` or ~/.cycle-coach/progression.yaml)

    Returns:
        Merged dict of config sections.  Empty dict if no YAML available.
    """
    config: dict[str, Any] = {}

    bundled = get_bundled_yaml_path()
    if bundled is not None:
        config = _deep_merge(config, _load_yaml_file(bundled))

    user = user_path if user_path is not None else get_user_yaml_path()
    if user is not None and user.exists():
        user_cfg = _load_yaml_file(user)
        if user_cfg:
            config = _deep_merge(config, user_cfg)

    return config


def load_progression_rules(user_path: Path | None = None) -> ProgressionRules:
    """Build ProgressionRules from the merged ``progression`` YAML section."""
    section = load_model_config(user_path).get("progression", {}) or {}
    defaults = ProgressionRules()
    return ProgressionRules(
        significant_exceed_factor=float(
            section.get("significant_exceed_factor", defaults.significant_exceed_factor)
        ),
        reps_ceiling=int(section.get("reps_ceiling", defaults.reps_ceiling)),
        sets_ceiling=int(section.get("sets_ceiling", defaults.sets_ceiling)),
        strong_reps_increment=int(
            section.get("strong_reps_increment", defaults.strong_reps_increment)
        ),
        adequate_reps_increment=int(
            section.get("adequate_reps_increment", defaults.adequate_reps_increment)
        ),
        sets_increment=int(section.get("sets_increment", defaults.sets_increment)),
        low_compliance_threshold=float(
            section.get("low_compliance_threshold", defaults.low_compliance_threshold)
        ),
        min_sets=int(section.get("min_sets", defaults.min_sets)),
        min_reps=int(section.get("min_reps", defaults.min_reps)),
    )


def load_rest_seconds(user_path: Path | None = None) -> int:
    """Default rest timer duration from the ``session`` YAML section."""
    section = load_model_config(user_path).get("session", {}) or {}
    return int(section.get("rest_seconds", DEFAULT_REST_SECONDS))
