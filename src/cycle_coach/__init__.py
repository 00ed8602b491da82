"""cycle-coach: microcycle workout sessions with set logging, rest timers and progression."""

__version__ = "0.1.0"
