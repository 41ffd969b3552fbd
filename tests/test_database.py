"""
Tests for the shared Database: schema bootstrap, transactions, error mapping.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from tenacity import wait_none

from expense_tracker.errors import (
    DatabaseConnectionError,
    DuplicateError,
    ExpenseTrackerError,
    ForbiddenError,
    NotFoundError,
    OverlapError,
    StorageError,
    ValidationError,
    http_status_for,
)
from expense_tracker.services.storage import (
    Database,
    category_table,
    expense_table,
    from_cents,
    to_cents,
)


class TestMoneyConversion:

    def test_round_trip_keeps_two_places(self):
        assert to_cents(Decimal("12.34")) == 1234
        assert from_cents(1234) == Decimal("12.34")
        assert str(from_cents(500)) == "5.00"

    def test_half_up(self):
        assert to_cents(Decimal("0.005")) == 1
        assert to_cents(Decimal("-0.005")) == -1


class TestSchema:

    def test_init_schema_is_idempotent(self, database):
        database.init_schema()
        with database.transaction() as conn:
            ids = list(conn.execute(select(category_table.c.id)).scalars())
        assert ids == [1]

    def test_in_memory_database(self):
        db = Database(url="sqlite://")
        db.init_schema()
        with db.transaction() as conn:
            name = conn.execute(select(category_table.c.name)).scalar_one()
        assert name == "Other"
        db.dispose()

    def test_unreachable_database(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Database._open_engine.retry, "wait", wait_none())
        db = Database(url=f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
        with pytest.raises(DatabaseConnectionError):
            db.connect()


class TestTransactions:

    def test_nested_calls_join_outer_transaction(self, database):
        with database.transaction() as outer:
            assert database.in_transaction
            with database.transaction() as inner:
                assert inner is outer
        assert not database.in_transaction

    def test_exception_rolls_back_whole_unit(self, database):
        with pytest.raises(RuntimeError):
            with database.transaction() as conn:
                conn.execute(category_table.insert().values(name="Travel", description=""))
                with database.transaction() as inner:
                    inner.execute(category_table.insert().values(name="Rent", description=""))
                raise RuntimeError("abort")

        with database.transaction() as conn:
            names = list(conn.execute(select(category_table.c.name)).scalars())
        assert names == ["Other"]

    def test_unique_violation_maps_to_duplicate(self, database):
        with pytest.raises(DuplicateError):
            with database.transaction() as conn:
                conn.execute(category_table.insert().values(name="Other", description=""))

    def test_foreign_keys_enforced(self, database):
        with pytest.raises(StorageError) as exc_info:
            with database.transaction() as conn:
                conn.execute(expense_table.insert().values(
                    category_id=99, amount_cents=100, date=date(2024, 1, 1), description="x",
                ))
        assert not isinstance(exc_info.value, DuplicateError)

    def test_expense_write_rolls_back_when_adjustment_fails(self, tracker, groceries, monkeypatch):
        tracker.budgets.create(groceries.id, Decimal("50"), date(2024, 1, 1), date(2024, 1, 31))

        def boom(category_id, delta):
            raise StorageError("adjust failed")

        monkeypatch.setattr(tracker.budgets, "adjust_spent", boom)

        with pytest.raises(StorageError):
            tracker.expenses.create(groceries.id, Decimal("10"), date(2024, 1, 2), "x")
        assert tracker.expenses.list() == []


class TestErrorTaxonomy:

    @pytest.mark.parametrize("error,status", [
        (ValidationError("bad"), 400),
        (OverlapError("overlap"), 400),
        (NotFoundError("missing"), 404),
        (ForbiddenError("no"), 403),
        (StorageError("broken"), 500),
        (DuplicateError("dup"), 409),
        (RuntimeError("other"), 500),
    ])
    def test_status_codes(self, error, status):
        assert http_status_for(error) == status

    def test_all_engine_errors_share_a_base(self):
        for cls in (ValidationError, OverlapError, NotFoundError, ForbiddenError, StorageError):
            assert issubclass(cls, ExpenseTrackerError)
