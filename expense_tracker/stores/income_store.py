"""
Income Store

Plain CRUD over the income table. Income is not linked to categories or
budgets, so nothing here touches the other stores.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from expense_tracker.errors import NotFoundError
from expense_tracker.models.audit import AuditEventBuilder, AuditEventType
from expense_tracker.models.finance import Income, IncomePatch
from expense_tracker.services.storage.schema import (
    from_cents,
    income_table,
    row_to_income,
    to_cents,
)
from expense_tracker.stores.base import BaseStore
from expense_tracker.validation import coerce_amount, coerce_date


class IncomeStore(BaseStore):

    entity_type = "income"

    def list(self) -> list[Income]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(income_table).order_by(income_table.c.date, income_table.c.id)
            ).all()
        return [row_to_income(row) for row in rows]

    def get_by_id(self, income_id: int) -> Income:
        with self._db.transaction() as conn:
            row = conn.execute(
                select(income_table).where(income_table.c.id == income_id)
            ).first()
        if row is None:
            raise NotFoundError(f"Income not found: {income_id}")
        return row_to_income(row)

    def create(self, amount: Decimal, income_date: date, source: str) -> Income:
        self._raise_if_invalid(self._validator.validate_income(amount, income_date, source))
        amount = from_cents(to_cents(coerce_amount(amount)))
        income_date = coerce_date(income_date)
        source = source.strip()

        with self._db.transaction() as conn:
            result = conn.execute(
                income_table.insert().values(
                    amount_cents=to_cents(amount),
                    date=income_date,
                    source=source,
                )
            )
            income_id = result.inserted_primary_key[0]

        self._audit.log(AuditEventBuilder.income_changed(
            AuditEventType.INCOME_CREATED, income_id, amount,
        ))
        return Income(id=income_id, amount=amount, date=income_date, source=source)

    def update(self, income_id: int, patch: IncomePatch) -> Income:
        """Present fields replace; the merged entry is validated as a whole."""
        changes = patch.present_fields()

        with self._db.transaction() as conn:
            row = conn.execute(
                select(income_table).where(income_table.c.id == income_id)
            ).first()
            if row is None:
                raise NotFoundError(f"Income not found: {income_id}")
            current = row_to_income(row)
            if not changes:
                return current

            merged = current.model_dump()
            merged.update(changes)
            self._raise_if_invalid(
                self._validator.validate_income(merged["amount"], merged["date"], merged["source"]),
                entity_id=income_id,
            )
            updated = Income(
                id=income_id,
                amount=from_cents(to_cents(coerce_amount(merged["amount"]))),
                date=merged["date"],
                source=merged["source"].strip(),
            )
            conn.execute(
                income_table.update()
                .where(income_table.c.id == income_id)
                .values(
                    amount_cents=to_cents(updated.amount),
                    date=updated.date,
                    source=updated.source,
                )
            )

        self._audit.log(AuditEventBuilder.income_changed(
            AuditEventType.INCOME_UPDATED, income_id, updated.amount,
        ))
        return updated

    def delete(self, income_id: int) -> None:
        with self._db.transaction() as conn:
            amount_cents = conn.execute(
                select(income_table.c.amount_cents).where(income_table.c.id == income_id)
            ).scalar_one_or_none()
            if amount_cents is None:
                raise NotFoundError(f"Income not found: {income_id}")
            conn.execute(income_table.delete().where(income_table.c.id == income_id))
        self._audit.log(AuditEventBuilder.income_changed(
            AuditEventType.INCOME_DELETED, income_id, from_cents(amount_cents),
        ))
