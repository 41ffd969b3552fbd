"""
Main Orchestrator for Expense Tracker

This module wires the stores together around one shared Database and
exposes them through a single facade the UI (or any transport layer) uses.

Dependency direction:
    ExpenseStore  -> BudgetStore          (spent adjustments)
    CategoryStore -> ExpenseStore          (reassignment on delete)
    CategoryStore -> BudgetStore           (budget removal on delete)

Nothing depends on CategoryStore, so it is built last.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from expense_tracker.audit import AuditLogger, configure_logging, get_logger
from expense_tracker.config import get_settings
from expense_tracker.services.storage import Database
from expense_tracker.stores import (
    BudgetStore,
    CategoryStore,
    ExpenseStore,
    IncomeStore,
)
from expense_tracker.validation import EntryValidator


logger = get_logger(__name__)


class BudgetStatus(BaseModel):
    """A budget joined with its category name, for display."""
    budget_id: int
    category_name: str
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    start_date: date
    end_date: date
    is_over_budget: bool


class ExpenseTracker:
    """
    Facade over the four stores.

    Each attribute is the store itself; callers use its verbs directly:

        tracker.categories.create("Groceries")
        tracker.budgets.create(2, Decimal("500"), start, end)
        tracker.expenses.create(2, Decimal("100"), day, "Weekly shop")
    """

    def __init__(
        self,
        database: Database,
        validator: Optional[EntryValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.database = database
        self.validator = validator or EntryValidator()
        self.audit_logger = audit_logger or AuditLogger()

        shared = {"validator": self.validator, "audit_logger": self.audit_logger}
        self.budgets = BudgetStore(database, **shared)
        self.expenses = ExpenseStore(database, self.budgets, **shared)
        self.categories = CategoryStore(database, self.expenses, self.budgets, **shared)
        self.income = IncomeStore(database, **shared)

    def budget_overview(self) -> list[BudgetStatus]:
        """Every budget with its category name, ordered by category then period."""
        names = {category.id: category.name for category in self.categories.list()}
        budgets = sorted(
            self.budgets.list(),
            key=lambda b: (names.get(b.category_id, ""), b.start_date),
        )
        return [
            BudgetStatus(
                budget_id=b.id,
                category_name=names.get(b.category_id, f"#{b.category_id}"),
                amount=b.amount,
                spent=b.spent,
                remaining=b.remaining,
                start_date=b.start_date,
                end_date=b.end_date,
                is_over_budget=b.is_over_budget,
            )
            for b in budgets
        ]

    def close(self) -> None:
        self.database.dispose()


def create_app_components(
    database_url: Optional[str] = None,
    validator: Optional[EntryValidator] = None,
) -> ExpenseTracker:
    """
    Factory function to create all application components.

    Configures logging, connects (with retries), creates the schema and
    seeds the Other category.

    Args:
        database_url: Overrides DATABASE_URL from the environment.
        validator: Custom validator (tests inject a fixed clock this way).

    Returns:
        A ready ExpenseTracker

    Raises:
        DatabaseConnectionError: If the database stays unreachable
        StorageError: If the schema cannot be created
    """
    settings = get_settings().app
    configure_logging("DEBUG" if settings.debug_mode else settings.log_level)

    audit_logger = AuditLogger()
    database = Database(url=database_url, audit_logger=audit_logger)
    database.connect()
    database.init_schema()

    logger.info(
        "components_ready",
        environment=settings.app_environment,
        database=database.engine.url.render_as_string(hide_password=True),
    )
    return ExpenseTracker(database, validator=validator, audit_logger=audit_logger)
