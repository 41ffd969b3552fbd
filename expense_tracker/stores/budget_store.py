"""
Budget Store

Owns the budget table. Three rules live here:
1. No two budgets of one category overlap (inclusive boundaries)
2. `spent` is snapshotted from expense history on create and update
3. Expense mutations move `spent` through adjust_spent()

DESIGN DECISION: The overlap check and the write run inside one transaction
while a lock scoped to the category id is held. Two threads creating budgets
for the same category are serialized, so the loser sees the winner's row and
gets an OverlapError instead of both inserts succeeding.
"""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from expense_tracker.errors import NotFoundError, OverlapError
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.finance import Budget, BudgetPatch
from expense_tracker.services.storage.schema import (
    budget_table,
    category_table,
    from_cents,
    row_to_budget,
    sum_expense_cents,
    to_cents,
)
from expense_tracker.stores.base import BaseStore
from expense_tracker.validation import (
    coerce_amount,
    coerce_date,
    normalize_category_name,
)


class CategoryLocks:
    """Registry of re-entrant locks, one per category id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = {}

    def _lock_for(self, category_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(category_id)
            if lock is None:
                lock = self._locks[category_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *category_ids: int) -> Iterator[None]:
        """Acquire the locks for all given ids, always in ascending order."""
        with ExitStack() as stack:
            for category_id in sorted(set(category_ids)):
                lock = self._lock_for(category_id)
                lock.acquire()
                stack.callback(lock.release)
            yield


class BudgetStore(BaseStore):
    """
    Budget persistence with overlap detection and spent bookkeeping.
    """

    entity_type = "budget"

    def __init__(self, database, validator=None, audit_logger=None):
        super().__init__(database, validator=validator, audit_logger=audit_logger)
        self._locks = CategoryLocks()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list(self) -> list[Budget]:
        with self._db.transaction() as conn:
            rows = conn.execute(select(budget_table).order_by(budget_table.c.id)).all()
        return [row_to_budget(row) for row in rows]

    def get_by_id(self, budget_id: int) -> Budget:
        with self._db.transaction() as conn:
            row = self._fetch(conn, budget_id)
        if row is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        return row_to_budget(row)

    def get_by_category(self, category_id: int) -> list[Budget]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(budget_table)
                .where(budget_table.c.category_id == category_id)
                .order_by(budget_table.c.start_date)
            ).all()
        return [row_to_budget(row) for row in rows]

    def get_by_category_name(self, name: str) -> list[Budget]:
        """
        Budgets of the category with this name.

        The name is normalized the same way CategoryStore stores it, so
        "  groceries" finds "Groceries".

        Raises:
            NotFoundError: If no category has this name
        """
        normalized = normalize_category_name(name or "")
        with self._db.transaction() as conn:
            category_id = conn.execute(
                select(category_table.c.id).where(category_table.c.name == normalized)
            ).scalar_one_or_none()
            if category_id is None:
                raise NotFoundError(f"Category not found: {name!r}")
            return self.get_by_category(category_id)

    def has_budget(self, category_id: int) -> bool:
        with self._db.transaction() as conn:
            found = conn.execute(
                select(budget_table.c.id)
                .where(budget_table.c.category_id == category_id)
                .limit(1)
            ).first()
        return found is not None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(
        self,
        category_id: int,
        amount: Decimal,
        start_date: date,
        end_date: date,
    ) -> Budget:
        """
        Create a budget and snapshot its spent total.

        Raises:
            ValidationError: Bad id, non-positive amount, missing or reversed dates
            NotFoundError: If the category does not exist
            OverlapError: If the period overlaps another budget of the category
        """
        self._raise_if_invalid(
            self._validator.validate_budget(category_id, amount, start_date, end_date)
        )
        amount_cents = to_cents(coerce_amount(amount))
        start, end = coerce_date(start_date), coerce_date(end_date)

        with self._locks.hold(category_id):
            with self._db.transaction() as conn:
                self._require_category(conn, category_id)
                self._reject_overlap(conn, category_id, start, end)
                spent_cents = sum_expense_cents(conn, category_id, start, end)
                result = conn.execute(
                    budget_table.insert().values(
                        category_id=category_id,
                        amount_cents=amount_cents,
                        spent_cents=spent_cents,
                        start_date=start,
                        end_date=end,
                    )
                )
                budget_id = result.inserted_primary_key[0]

        budget = Budget(
            id=budget_id,
            category_id=category_id,
            amount=from_cents(amount_cents),
            spent=from_cents(spent_cents),
            start_date=start,
            end_date=end,
        )
        self._audit.log(AuditEventBuilder.budget_created(budget.id, category_id, budget.spent))
        return budget

    def update(self, budget_id: int, patch: BudgetPatch) -> Budget:
        """
        Apply the present fields of `patch`, then re-check and re-snapshot.

        The fresh snapshot replaces whatever adjust_spent() accumulated since
        the last one.

        Raises:
            NotFoundError: If the budget (or a new category) does not exist
            ValidationError: If the merged budget is invalid
            OverlapError: If the merged period overlaps another budget
        """
        changes = patch.present_fields()
        current = self.get_by_id(budget_id)
        target_category = changes.get("category_id", current.category_id)

        with self._locks.hold(current.category_id, target_category):
            with self._db.transaction() as conn:
                row = self._fetch(conn, budget_id)
                if row is None:
                    raise NotFoundError(f"Budget not found: {budget_id}")
                current = row_to_budget(row)

                merged = {
                    "category_id": current.category_id,
                    "amount": current.amount,
                    "start_date": current.start_date,
                    "end_date": current.end_date,
                }
                merged.update(changes)
                self._raise_if_invalid(
                    self._validator.validate_budget(**merged),
                    entity_id=budget_id,
                )

                category_id = merged["category_id"]
                start, end = coerce_date(merged["start_date"]), coerce_date(merged["end_date"])
                amount_cents = to_cents(coerce_amount(merged["amount"]))

                if category_id != current.category_id:
                    self._require_category(conn, category_id)
                self._reject_overlap(conn, category_id, start, end, exclude_id=budget_id)
                spent_cents = sum_expense_cents(conn, category_id, start, end)

                conn.execute(
                    budget_table.update()
                    .where(budget_table.c.id == budget_id)
                    .values(
                        category_id=category_id,
                        amount_cents=amount_cents,
                        spent_cents=spent_cents,
                        start_date=start,
                        end_date=end,
                    )
                )

        budget = Budget(
            id=budget_id,
            category_id=category_id,
            amount=from_cents(amount_cents),
            spent=from_cents(spent_cents),
            start_date=start,
            end_date=end,
        )
        self._audit.log(AuditEventBuilder.budget_updated(budget_id, budget.spent, sorted(changes)))
        return budget

    def delete(self, budget_id: int) -> None:
        """
        Raises:
            NotFoundError: If no budget has this id
        """
        with self._db.transaction() as conn:
            row = self._fetch(conn, budget_id)
            if row is None:
                raise NotFoundError(f"Budget not found: {budget_id}")
            conn.execute(budget_table.delete().where(budget_table.c.id == budget_id))
        self._audit.log(AuditEventBuilder.budget_deleted(budget_id, row._mapping["category_id"]))

    def delete_for_category(self, category_id: int) -> int:
        """Remove every budget of a category; returns how many went."""
        with self._db.transaction() as conn:
            result = conn.execute(
                budget_table.delete().where(budget_table.c.category_id == category_id)
            )
        return result.rowcount

    def adjust_spent(self, category_id: int, delta: Decimal) -> int:
        """
        Move `spent` by `delta` on every budget of the category.

        The expense date is not consulted: budgets whose period does not
        contain the expense move as well.

        Returns:
            Number of budgets touched
        """
        delta_cents = to_cents(Decimal(delta))
        if delta_cents == 0:
            return 0

        with self._db.transaction() as conn:
            result = conn.execute(
                budget_table.update()
                .where(budget_table.c.category_id == category_id)
                .values(spent_cents=budget_table.c.spent_cents + delta_cents)
            )
        touched = result.rowcount

        if touched:
            self._audit.log(
                AuditEventBuilder.spent_adjusted(category_id, from_cents(delta_cents), touched)
            )
        return touched

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _fetch(conn: Connection, budget_id: int):
        return conn.execute(
            select(budget_table).where(budget_table.c.id == budget_id)
        ).first()

    def _reject_overlap(
        self,
        conn: Connection,
        category_id: int,
        start: date,
        end: date,
        exclude_id: Optional[int] = None,
    ) -> None:
        query = select(budget_table.c.id).where(
            budget_table.c.category_id == category_id,
            budget_table.c.start_date <= end,
            budget_table.c.end_date >= start,
        )
        if exclude_id is not None:
            query = query.where(budget_table.c.id != exclude_id)

        conflicting = list(conn.execute(query.order_by(budget_table.c.id)).scalars())
        if conflicting:
            self._audit.log(AuditEventBuilder.budget_overlap_rejected(
                category_id, conflicting, budget_id=exclude_id,
            ))
            raise OverlapError(
                f"Budget period {start}..{end} overlaps existing budget(s) "
                f"{conflicting} for category {category_id}",
                conflicting_ids=conflicting,
            )
