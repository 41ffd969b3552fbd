"""
Storage Services Package

Provides the shared Database (engine + transactions) and the relational
schema the stores read and write.
"""

from expense_tracker.services.storage.database import Database
from expense_tracker.services.storage.schema import (
    budget_table,
    category_table,
    expense_table,
    from_cents,
    income_table,
    metadata,
    sum_expense_cents,
    to_cents,
)

__all__ = [
    "Database",
    "budget_table",
    "category_table",
    "expense_table",
    "from_cents",
    "income_table",
    "metadata",
    "sum_expense_cents",
    "to_cents",
]
