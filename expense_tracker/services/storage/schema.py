"""
Relational Schema

DESIGN DECISION: Storage is relational because the engine relies on:
1. Transactions, so an expense write and its budget adjustment commit together
2. Foreign keys, so budgets cannot outlive their category
3. Aggregate queries for the spent snapshot

Money is stored as integer cents. Converting at the boundary keeps SUM()
exact on every backend, including SQLite which has no decimal type.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    select,
)
from sqlalchemy.engine import Connection, Row

from expense_tracker.models.finance import Budget, Category, Expense, Income


metadata = MetaData()

category_table = Table(
    "category",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=False, default=""),
)

# Budgets go away with their category at the storage level as well;
# CategoryStore.delete also removes them explicitly in the same transaction.
budget_table = Table(
    "budget",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "category_id",
        Integer,
        ForeignKey("category.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("amount_cents", Integer, nullable=False),
    Column("spent_cents", Integer, nullable=False, default=0),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    CheckConstraint("amount_cents > 0", name="ck_budget_amount_positive"),
    CheckConstraint("end_date >= start_date", name="ck_budget_period_order"),
)

# No ON DELETE action: expenses must be reassigned before their category goes.
expense_table = Table(
    "expense",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "category_id",
        Integer,
        ForeignKey("category.id"),
        nullable=False,
        index=True,
    ),
    Column("amount_cents", Integer, nullable=False),
    Column("date", Date, nullable=False, index=True),
    Column("description", String(500), nullable=False),
    CheckConstraint("amount_cents > 0", name="ck_expense_amount_positive"),
)

income_table = Table(
    "income",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("amount_cents", Integer, nullable=False),
    Column("date", Date, nullable=False),
    Column("source", String(255), nullable=False),
    CheckConstraint("amount_cents > 0", name="ck_income_amount_positive"),
)


CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Decimal amount -> integer cents (half-up)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Integer cents -> Decimal with exactly two places."""
    return (Decimal(int(cents)) / 100).quantize(CENT)


# =============================================================================
# ROW CONVERTERS
# =============================================================================

def row_to_category(row: Row) -> Category:
    data = row._mapping
    return Category(
        id=data["id"],
        name=data["name"],
        description=data["description"] or "",
    )


def row_to_budget(row: Row) -> Budget:
    data = row._mapping
    return Budget(
        id=data["id"],
        category_id=data["category_id"],
        amount=from_cents(data["amount_cents"]),
        spent=from_cents(data["spent_cents"]),
        start_date=data["start_date"],
        end_date=data["end_date"],
    )


def row_to_expense(row: Row) -> Expense:
    data = row._mapping
    return Expense(
        id=data["id"],
        category_id=data["category_id"],
        amount=from_cents(data["amount_cents"]),
        date=data["date"],
        description=data["description"],
    )


def row_to_income(row: Row) -> Income:
    data = row._mapping
    return Income(
        id=data["id"],
        amount=from_cents(data["amount_cents"]),
        date=data["date"],
        source=data["source"],
    )


# =============================================================================
# SHARED QUERIES
# =============================================================================

def sum_expense_cents(
    conn: Connection,
    category_id: int,
    start_date: date,
    end_date: date,
) -> int:
    """Total of a category's expenses dated within [start_date, end_date]."""
    total = conn.execute(
        select(func.coalesce(func.sum(expense_table.c.amount_cents), 0)).where(
            expense_table.c.category_id == category_id,
            expense_table.c.date.between(start_date, end_date),
        )
    ).scalar_one()
    return int(total or 0)
