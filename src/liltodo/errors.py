"""
liltodo exception hierarchy.

Everything raised on purpose by the storage engine inherits from LiltodoError,
so callers can catch engine failures in one place. Plain OSErrors from the
filesystem are not wrapped and propagate as-is.
"""


class LiltodoError(Exception):
    """Base exception class for all liltodo errors."""


class ConfigurationError(LiltodoError):
    """Raised for invalid settings (bad environment values)."""


class NotFoundError(LiltodoError, LookupError):
    """Raised when a task id has no record file in the selected root."""

    def __init__(self, task_id, archive: bool = False):
        self.task_id = task_id
        self.archive = archive
        where = "archive" if archive else "active tasks"
        super().__init__(f"Task {task_id} not found in {where}")


class CorruptIndexError(LiltodoError):
    """Raised when a persisted index cannot be parsed. Run reindex to repair."""


class InvalidRootError(LiltodoError):
    """Raised when a non-empty directory is not a task storage root."""
