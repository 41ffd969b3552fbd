"""
Error Taxonomy

Stores raise these; they never retry and never shape messages for a
particular transport. Each class carries the HTTP status a REST layer
would map it to, so callers do not need their own lookup table.
"""

from typing import Optional


class ExpenseTrackerError(Exception):
    """Base exception for every engine failure."""
    status_code = 500


class ValidationError(ExpenseTrackerError):
    """Bad input shape or range (amount <= 0, missing/future date, empty name...)."""
    status_code = 400

    def __init__(self, message: str, issues: Optional[list] = None):
        super().__init__(message)
        self.issues = issues or []


class OverlapError(ExpenseTrackerError):
    """Budget period conflicts with an existing budget of the same category."""
    status_code = 400

    def __init__(self, message: str, conflicting_ids: Optional[list[int]] = None):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


class NotFoundError(ExpenseTrackerError):
    """Lookup, update or delete target does not exist."""
    status_code = 404


class ForbiddenError(ExpenseTrackerError):
    """Attempted mutation of the reserved Other category."""
    status_code = 403


class StorageError(ExpenseTrackerError):
    """Underlying persistence failure."""
    status_code = 500


class DuplicateError(StorageError):
    """A unique constraint rejected the write."""
    status_code = 409


class DatabaseConnectionError(StorageError):
    """Could not connect to the backing store."""
    pass


def http_status_for(error: Exception) -> int:
    """Status code a REST layer should answer with for this error."""
    if isinstance(error, ExpenseTrackerError):
        return error.status_code
    return 500
