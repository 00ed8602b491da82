"""Exception types raised by the session engine and its stores."""


class CycleCoachError(Exception):
    """Base class for all cycle-coach errors."""

    pass


class ValidationError(CycleCoachError):
    """Raised when submitted data is missing a required field or is invalid."""

    pass


class StoreFailure(CycleCoachError):
    """Raised when a goal or log store round-trip fails."""

    pass


class NoSessionError(CycleCoachError):
    """Raised when an operation needs a user or a current goal and has none."""

    pass


class SessionBusyError(CycleCoachError):
    """Raised when a store-bound operation is already in flight."""

    pass
