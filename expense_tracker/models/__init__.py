"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker system.
Every row a store returns conforms to these schemas.
"""

from expense_tracker.models.finance import (
    OTHER_CATEGORY_ID,
    Budget,
    BudgetPatch,
    Category,
    CategoryPatch,
    Expense,
    ExpensePatch,
    Income,
    IncomePatch,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "OTHER_CATEGORY_ID",
    "Budget",
    "BudgetPatch",
    "Category",
    "CategoryPatch",
    "Expense",
    "ExpensePatch",
    "Income",
    "IncomePatch",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
