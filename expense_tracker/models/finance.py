"""
Core Data Models for Expense Tracker

These models define the strict schemas for every row the stores hand back.
They are designed to:
1. Enforce type safety at runtime
2. Keep money exact (Decimal, two places) all the way to storage
3. Be serializable for logging and for the UI

DESIGN DECISION: Patches are separate models where every field is Optional.
A field left as None is "absent" and keeps the stored value. A field that is
present always replaces, and is validated like any other input, so an explicit
zero amount is rejected rather than silently ignored.
"""

import datetime
from datetime import date
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# Reserved fallback category, seeded at schema init and never mutable.
OTHER_CATEGORY_ID = 1

Money = Annotated[Decimal, Field(decimal_places=2)]


# =============================================================================
# PERSISTED ENTITIES
# =============================================================================

class Category(BaseModel):
    """
    A spending category.

    Names are unique and stored case-normalized ("groceries" -> "Groceries").
    Category 1 ("Other") receives the expenses of deleted categories.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(..., ge=1)
    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Unique, case-normalized category name"
    )
    description: str = Field(
        default="",
        max_length=1000,
    )

    @property
    def is_other(self) -> bool:
        return self.id == OTHER_CATEGORY_ID


class Budget(BaseModel):
    """
    A spending limit for one category over an inclusive date window.

    `spent` is a cached aggregate. It is snapshotted from expense history when
    the budget is created or updated and then moved by deltas as expenses
    change, so it may go negative when an expense outside the window is
    removed.
    """

    id: int = Field(..., ge=1)
    category_id: int = Field(..., ge=1)
    amount: Money = Field(..., gt=0, description="Spending limit")
    spent: Money = Field(default=Decimal("0.00"), description="Cached spend")
    start_date: date
    end_date: date

    @model_validator(mode='after')
    def validate_period(self) -> 'Budget':
        if self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self

    @property
    def remaining(self) -> Decimal:
        """How much of the limit is left (negative when overspent)."""
        return self.amount - self.spent

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.amount

    def overlaps(self, start_date: date, end_date: date) -> bool:
        """Inclusive range overlap: touching boundaries count."""
        return self.start_date <= end_date and self.end_date >= start_date


class Expense(BaseModel):
    """A single categorized expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(..., ge=1)
    category_id: int = Field(..., ge=1)
    amount: Money = Field(..., gt=0)
    date: datetime.date
    description: str = Field(..., min_length=1, max_length=500)


class Income(BaseModel):
    """An income entry. Not linked to categories or budgets."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(..., ge=1)
    amount: Money = Field(..., gt=0)
    date: datetime.date
    source: str = Field(..., min_length=1, max_length=255)


# =============================================================================
# PATCHES (partial updates)
# =============================================================================

class _Patch(BaseModel):
    """Base for partial updates: None means the field is absent."""
    model_config = ConfigDict(extra="forbid")

    def present_fields(self) -> dict:
        """Fields the caller actually supplied."""
        return self.model_dump(exclude_none=True)

    @property
    def is_empty(self) -> bool:
        return not self.present_fields()


class CategoryPatch(_Patch):
    name: Optional[str] = None
    description: Optional[str] = None


class BudgetPatch(_Patch):
    category_id: Optional[int] = None
    amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ExpensePatch(_Patch):
    category_id: Optional[int] = None
    amount: Optional[Decimal] = None
    date: Optional[datetime.date] = None
    description: Optional[str] = None


class IncomePatch(_Patch):
    amount: Optional[Decimal] = None
    date: Optional[datetime.date] = None
    source: Optional[str] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (presence, types, ranges)
    Stage 2: Semantic validation (date logic, sanity checks)
    """

    entity_type: str = Field(
        ...,
        description="What was validated (budget, expense, category, income)"
    )
    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
