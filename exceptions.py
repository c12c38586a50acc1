"""Errors raised by the workout tracker core."""


class WorkoutTrackerError(Exception):
    """Base exception for workout tracker errors."""
    pass


class InvalidPlanError(WorkoutTrackerError):
    """Raised when a planned workout cannot be started or saved."""
    pass


class SetLockedError(WorkoutTrackerError):
    """Raised when a completed set is edited."""
    pass


class PersistenceError(WorkoutTrackerError):
    """Raised when a repository call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
