"""
Audit Models for Expense Tracker

Every store mutation and every rejected request produces an event.
This provides:
1. Traceability of how a budget's spent total moved
2. Debugging information when a request is rejected
3. One consistent shape for structured log lines

DESIGN DECISION: Events are written to the structured log only. There is no
history table; the stores stay the single source of truth.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every store operation that changes state has its own event type.
    """
    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_OVERLAP_REJECTED = "budget_overlap_rejected"
    SPENT_ADJUSTED = "spent_adjusted"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSES_REASSIGNED = "expenses_reassigned"

    # Income
    INCOME_CREATED = "income_created"
    INCOME_UPDATED = "income_updated"
    INCOME_DELETED = "income_deleted"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    FORBIDDEN_MUTATION = "forbidden_mutation"

    # System events
    DATABASE_READY = "database_ready"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'budget', 'expense', 'category')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.budget_created(budget_id, category_id, spent)
        event = AuditEventBuilder.spent_adjusted(category_id, delta, touched)
    """

    @staticmethod
    def category_created(category_id: int, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category created: {name}",
            details={"name": name},
        )

    @staticmethod
    def category_updated(category_id: int, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category updated: {', '.join(fields) or 'no changes'}",
            details={"fields": fields},
        )

    @staticmethod
    def category_deleted(
        category_id: int,
        expenses_reassigned: int,
        budgets_removed: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            description=(
                f"Category deleted; {expenses_reassigned} expenses moved to Other, "
                f"{budgets_removed} budgets removed"
            ),
            details={
                "expenses_reassigned": expenses_reassigned,
                "budgets_removed": budgets_removed,
            },
        )

    @staticmethod
    def budget_created(budget_id: int, category_id: int, spent: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget created for category {category_id}",
            details={
                "category_id": category_id,
                "spent_snapshot": str(spent),
            },
        )

    @staticmethod
    def budget_updated(budget_id: int, spent: Decimal, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            entity_type="budget",
            entity_id=budget_id,
            description="Budget updated and spent re-snapshotted",
            details={
                "fields": fields,
                "spent_snapshot": str(spent),
            },
        )

    @staticmethod
    def budget_deleted(budget_id: int, category_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget deleted from category {category_id}",
            details={"category_id": category_id},
        )

    @staticmethod
    def budget_overlap_rejected(
        category_id: int,
        conflicting_ids: list[int],
        budget_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_OVERLAP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget period overlaps {len(conflicting_ids)} existing budget(s)",
            details={
                "category_id": category_id,
                "conflicting_budget_ids": conflicting_ids,
            },
        )

    @staticmethod
    def spent_adjusted(category_id: int, delta: Decimal, budgets_touched: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENT_ADJUSTED,
            severity=AuditSeverity.DEBUG,
            entity_type="category",
            entity_id=category_id,
            description=f"Spent moved by {delta} on {budgets_touched} budget(s)",
            details={
                "delta": str(delta),
                "budgets_touched": budgets_touched,
            },
        )

    @staticmethod
    def expense_created(expense_id: int, category_id: int, amount: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense recorded: {amount}",
            details={
                "category_id": category_id,
                "amount": str(amount),
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: int,
        old_category_id: int,
        new_category_id: int,
        old_amount: Decimal,
        new_amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description="Expense updated",
            details={
                "old_category_id": old_category_id,
                "new_category_id": new_category_id,
                "old_amount": str(old_amount),
                "new_amount": str(new_amount),
            },
        )

    @staticmethod
    def expense_deleted(expense_id: int, category_id: int, amount: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense deleted: {amount}",
            details={
                "category_id": category_id,
                "amount": str(amount),
            },
        )

    @staticmethod
    def expenses_reassigned(from_id: int, to_id: int, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_REASSIGNED,
            entity_type="category",
            entity_id=from_id,
            description=f"{count} expenses moved from category {from_id} to {to_id}",
            details={
                "to_category_id": to_id,
                "count": count,
            },
        )

    @staticmethod
    def income_changed(
        event_type: AuditEventType,
        income_id: int,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="income",
            entity_id=income_id,
            description=f"Income {event_type.value.split('_', 1)[1]}: {amount}",
            details={"amount": str(amount)},
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        entity_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def forbidden_mutation(category_id: int, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FORBIDDEN_MUTATION,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            description=f"Refused to {action} the reserved Other category",
            details={"action": action},
        )

    @staticmethod
    def database_ready(url: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATABASE_READY,
            description="Schema initialised and Other category seeded",
            details={"url": url},
        )

    @staticmethod
    def storage_error(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
