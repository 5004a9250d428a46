"""Error taxonomy for the identity and aggregation core.

Row-level problems (InvalidInput, ConsistencyTimeout) are caught by the
batch operations, logged and counted as skipped. ConfigurationMissing is
never swallowed: it reaches the caller.
"""


class AttendanceError(Exception):
    """Base class for core errors."""


class InvalidInput(AttendanceError):
    """Raised for an empty or unparseable name or date."""


class ConfigurationMissing(AttendanceError):
    """Raised when a required setting (e.g. the directory spreadsheet) is absent."""


class ConsistencyTimeout(AttendanceError):
    """Raised when a bounded wait for another writer's value is exhausted."""
