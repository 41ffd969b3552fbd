"""
Expense Store

Owns the expense table and keeps budget spent totals in step with it.

Every mutation computes what it did to its category's total and hands the
delta to BudgetStore.adjust_spent() inside the same transaction:

    create               -> +amount
    update, same cat     -> new_amount - old_amount (only if the amount moved)
    update, new cat      -> -old_amount on the old, +new_amount on the new
    delete               -> -amount

If the adjustment fails the expense write rolls back with it.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select

from expense_tracker.errors import NotFoundError
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.finance import Expense, ExpensePatch
from expense_tracker.services.storage.schema import (
    expense_table,
    from_cents,
    row_to_expense,
    sum_expense_cents,
    to_cents,
)
from expense_tracker.stores.base import BaseStore
from expense_tracker.stores.budget_store import BudgetStore
from expense_tracker.validation import coerce_amount, coerce_date


class ExpenseStore(BaseStore):
    """
    Expense persistence with budget spent propagation.
    """

    entity_type = "expense"

    def __init__(
        self,
        database,
        budget_store: BudgetStore,
        validator=None,
        audit_logger=None,
    ):
        super().__init__(database, validator=validator, audit_logger=audit_logger)
        self._budgets = budget_store

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list(self) -> list[Expense]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(expense_table).order_by(expense_table.c.date, expense_table.c.id)
            ).all()
        return [row_to_expense(row) for row in rows]

    def get_by_id(self, expense_id: int) -> Expense:
        with self._db.transaction() as conn:
            row = conn.execute(
                select(expense_table).where(expense_table.c.id == expense_id)
            ).first()
        if row is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return row_to_expense(row)

    def get_by_category(self, category_id: int) -> list[Expense]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(expense_table)
                .where(expense_table.c.category_id == category_id)
                .order_by(expense_table.c.date, expense_table.c.id)
            ).all()
        return [row_to_expense(row) for row in rows]

    def total_for_category(
        self,
        category_id: int,
        start_date: date,
        end_date: date,
    ) -> Decimal:
        """Sum of the category's expenses dated within the inclusive window."""
        with self._db.transaction() as conn:
            cents = sum_expense_cents(conn, category_id, start_date, end_date)
        return from_cents(cents)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(
        self,
        category_id: int,
        amount: Decimal,
        expense_date: date,
        description: str,
    ) -> Expense:
        """
        Record an expense and add it to the category's budgets.

        Raises:
            ValidationError: Empty description, non-positive amount,
                missing or future date, bad category id
            NotFoundError: If the category does not exist
        """
        self._raise_if_invalid(
            self._validator.validate_expense(category_id, amount, expense_date, description)
        )
        amount = from_cents(to_cents(coerce_amount(amount)))
        expense_date = coerce_date(expense_date)
        description = description.strip()

        with self._db.transaction() as conn:
            self._require_category(conn, category_id)
            result = conn.execute(
                expense_table.insert().values(
                    category_id=category_id,
                    amount_cents=to_cents(amount),
                    date=expense_date,
                    description=description,
                )
            )
            expense_id = result.inserted_primary_key[0]
            self._adjust(category_id, amount)

        self._audit.log(AuditEventBuilder.expense_created(expense_id, category_id, amount))
        return Expense(
            id=expense_id,
            category_id=category_id,
            amount=amount,
            date=expense_date,
            description=description,
        )

    def update(self, expense_id: int, patch: ExpensePatch) -> Expense:
        """
        Apply the present fields of `patch` and propagate the spent delta.

        A new date may not be in the future or earlier than the current one.

        Raises:
            NotFoundError: If the expense (or the new category) does not exist
            ValidationError: If a present field is invalid
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                select(expense_table).where(expense_table.c.id == expense_id)
            ).first()
            if row is None:
                raise NotFoundError(f"Expense not found: {expense_id}")
            current = row_to_expense(row)

            self._raise_if_invalid(
                self._validator.validate_expense_patch(current, patch),
                entity_id=expense_id,
            )
            changes = patch.present_fields()
            if not changes:
                return current

            new_category = changes.get("category_id", current.category_id)
            new_amount = from_cents(to_cents(changes.get("amount", current.amount)))
            new_date = changes.get("date", current.date)
            new_description = changes.get("description", current.description).strip()

            if new_category != current.category_id:
                self._require_category(conn, new_category)

            conn.execute(
                expense_table.update()
                .where(expense_table.c.id == expense_id)
                .values(
                    category_id=new_category,
                    amount_cents=to_cents(new_amount),
                    date=new_date,
                    description=new_description,
                )
            )

            if new_category == current.category_id:
                if new_amount != current.amount:
                    self._adjust(new_category, new_amount - current.amount)
            else:
                self._adjust(current.category_id, -current.amount)
                self._adjust(new_category, new_amount)

        self._audit.log(AuditEventBuilder.expense_updated(
            expense_id,
            old_category_id=current.category_id,
            new_category_id=new_category,
            old_amount=current.amount,
            new_amount=new_amount,
        ))
        return Expense(
            id=expense_id,
            category_id=new_category,
            amount=new_amount,
            date=new_date,
            description=new_description,
        )

    def delete(self, expense_id: int) -> None:
        """
        Delete an expense and take it back out of its category's budgets.

        Raises:
            NotFoundError: If no expense has this id
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                select(expense_table).where(expense_table.c.id == expense_id)
            ).first()
            if row is None:
                raise NotFoundError(f"Expense not found: {expense_id}")
            expense = row_to_expense(row)

            conn.execute(expense_table.delete().where(expense_table.c.id == expense_id))
            self._adjust(expense.category_id, -expense.amount)

        self._audit.log(AuditEventBuilder.expense_deleted(
            expense_id, expense.category_id, expense.amount,
        ))

    def reassign_category(self, from_id: int, to_id: int) -> int:
        """
        Move every expense of `from_id` to `to_id`.

        Budgets are not adjusted. Only the category delete cascade calls this.

        Returns:
            Number of expenses moved
        """
        with self._db.transaction() as conn:
            result = conn.execute(
                expense_table.update()
                .where(expense_table.c.category_id == from_id)
                .values(category_id=to_id)
            )
        count = result.rowcount
        self._audit.log(AuditEventBuilder.expenses_reassigned(from_id, to_id, count))
        return count

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _adjust(self, category_id: int, delta: Decimal) -> Optional[int]:
        """Forward a spent delta when the category has a budget."""
        if not self._budgets.has_budget(category_id):
            return None
        return self._budgets.adjust_spent(category_id, delta)
