"""
Configuration constants for the workout session engine.

Python defaults for every tunable value.  The same values ship in the
bundled progression.yaml; see config_loader.py for how user overrides are
merged on top.
"""

from typing import Final

# =============================================================================
# PROGRESSION: "significantly exceeded" detection
# =============================================================================

SIGNIFICANT_EXCEED_FACTOR: Final[float] = 1.2  # sets AND avg reps >= planned x factor
REPS_CEILING: Final[int] = 12  # at or above this avg, stop adding reps
SETS_CEILING: Final[int] = 5  # at or above this many sets, stop adding sets

# =============================================================================
# PROGRESSION: increments
# =============================================================================

STRONG_REPS_INCREMENT: Final[int] = 2  # significantly exceeded
ADEQUATE_REPS_INCREMENT: Final[int] = 1  # met target, not significantly
SETS_INCREMENT: Final[int] = 1

# =============================================================================
# PROGRESSION: missed targets
# =============================================================================

LOW_COMPLIANCE_THRESHOLD: Final[float] = 0.70  # below this, flag underperformance

# =============================================================================
# PROPOSAL FLOORS
# =============================================================================

MIN_PROPOSED_SETS: Final[int] = 1
MIN_PROPOSED_REPS: Final[int] = 1

# =============================================================================
# SESSION
# =============================================================================

DEFAULT_REST_SECONDS: Final[int] = 90  # rest timer duration after a logged set
TICK_INTERVAL_SECONDS: Final[float] = 1.0

# Decimal places kept in performance snapshots
SNAPSHOT_PRECISION: Final[int] = 1

DATA_DIR_NAME: Final[str] = ".cycle-coach"
