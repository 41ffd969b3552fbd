"""Services package."""

from expense_tracker.services.storage import Database

__all__ = [
    "Database",
]
