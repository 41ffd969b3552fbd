"""
Tests for ExpenseStore and the spent deltas it propagates.
"""

from datetime import date
from decimal import Decimal

import pytest

from expense_tracker.errors import NotFoundError, ValidationError
from expense_tracker.models.finance import ExpensePatch


JAN_START, JAN_END = date(2024, 1, 1), date(2024, 1, 31)


@pytest.fixture
def budget(tracker, groceries):
    return tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)


def spent(tracker, budget_id):
    return tracker.budgets.get_by_id(budget_id).spent


class TestExpenseCreate:

    def test_create_persists_and_adjusts(self, tracker, groceries, budget):
        expense = tracker.expenses.create(groceries.id, Decimal("100"), date(2024, 1, 15), " Weekly shop ")

        assert expense.amount == Decimal("100.00")
        assert expense.description == "Weekly shop"
        assert tracker.expenses.get_by_id(expense.id) == expense
        assert spent(tracker, budget.id) == Decimal("100.00")

    def test_create_without_budget(self, tracker, groceries):
        expense = tracker.expenses.create(groceries.id, Decimal("5"), date(2024, 1, 15), "Gum")
        assert tracker.expenses.list() == [expense]

    def test_out_of_period_expense_still_moves_spent(self, tracker, groceries, budget):
        """Adjustments ignore the budget window."""
        tracker.expenses.create(groceries.id, Decimal("20"), date(2024, 5, 1), "May")
        assert spent(tracker, budget.id) == Decimal("20.00")

    @pytest.mark.parametrize("category_id,amount,day,description", [
        (2, Decimal("10"), date(2024, 1, 1), ""),
        (2, Decimal("0"), date(2024, 1, 1), "Zero"),
        (2, Decimal("-1"), date(2024, 1, 1), "Negative"),
        (2, Decimal("10"), None, "No date"),
        (2, Decimal("10"), date(2024, 7, 1), "Future"),
        (0, Decimal("10"), date(2024, 1, 1), "No category"),
    ])
    def test_invalid_input(self, tracker, groceries, budget, category_id, amount, day, description):
        with pytest.raises(ValidationError):
            tracker.expenses.create(category_id, amount, day, description)
        assert tracker.expenses.list() == []
        assert spent(tracker, budget.id) == Decimal("0.00")

    def test_unknown_category(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.expenses.create(99, Decimal("10"), date(2024, 1, 1), "Lost")


class TestExpenseUpdate:

    @pytest.fixture
    def expense(self, tracker, groceries, budget):
        return tracker.expenses.create(groceries.id, Decimal("100"), date(2024, 1, 15), "Shop")

    def test_amount_change_applies_difference(self, tracker, budget, expense):
        updated = tracker.expenses.update(expense.id, ExpensePatch(amount=Decimal("150")))
        assert updated.amount == Decimal("150.00")
        assert spent(tracker, budget.id) == Decimal("150.00")

        tracker.expenses.update(expense.id, ExpensePatch(amount=Decimal("80")))
        assert spent(tracker, budget.id) == Decimal("80.00")

    def test_description_change_does_not_adjust(self, tracker, budget, expense):
        tracker.budgets.adjust_spent(expense.category_id, Decimal("1"))
        tracker.expenses.update(expense.id, ExpensePatch(description="Renamed"))
        assert spent(tracker, budget.id) == Decimal("101.00")

    def test_category_change_moves_amount(self, tracker, budget, expense):
        rent = tracker.categories.create("Rent")
        rent_budget = tracker.budgets.create(rent.id, Decimal("1000"), JAN_START, JAN_END)

        updated = tracker.expenses.update(
            expense.id, ExpensePatch(category_id=rent.id, amount=Decimal("120")),
        )

        assert updated.category_id == rent.id
        assert spent(tracker, budget.id) == Decimal("0.00")
        assert spent(tracker, rent_budget.id) == Decimal("120.00")

    def test_category_change_to_unbudgeted_category(self, tracker, budget, expense):
        rent = tracker.categories.create("Rent")
        tracker.expenses.update(expense.id, ExpensePatch(category_id=rent.id))
        assert spent(tracker, budget.id) == Decimal("0.00")

    def test_empty_patch_changes_nothing(self, tracker, budget, expense):
        assert tracker.expenses.update(expense.id, ExpensePatch()) == expense
        assert spent(tracker, budget.id) == Decimal("100.00")

    def test_explicit_zero_amount_rejected(self, tracker, budget, expense):
        with pytest.raises(ValidationError):
            tracker.expenses.update(expense.id, ExpensePatch(amount=Decimal("0")))
        assert tracker.expenses.get_by_id(expense.id).amount == Decimal("100.00")
        assert spent(tracker, budget.id) == Decimal("100.00")

    def test_date_can_move_later(self, tracker, expense):
        updated = tracker.expenses.update(expense.id, ExpensePatch(date=date(2024, 1, 20)))
        assert updated.date == date(2024, 1, 20)

    def test_date_cannot_move_earlier(self, tracker, expense):
        with pytest.raises(ValidationError):
            tracker.expenses.update(expense.id, ExpensePatch(date=date(2024, 1, 14)))

    def test_date_cannot_move_into_future(self, tracker, expense):
        with pytest.raises(ValidationError):
            tracker.expenses.update(expense.id, ExpensePatch(date=date(2024, 7, 1)))

    def test_unknown_new_category(self, tracker, budget, expense):
        with pytest.raises(NotFoundError):
            tracker.expenses.update(expense.id, ExpensePatch(category_id=99))
        assert spent(tracker, budget.id) == Decimal("100.00")

    def test_unknown_expense(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.expenses.update(123, ExpensePatch(amount=Decimal("1")))


class TestExpenseDelete:

    def test_delete_subtracts(self, tracker, groceries, budget):
        keep = tracker.expenses.create(groceries.id, Decimal("30"), date(2024, 1, 2), "Keep")
        drop = tracker.expenses.create(groceries.id, Decimal("70"), date(2024, 1, 3), "Drop")

        tracker.expenses.delete(drop.id)

        assert tracker.expenses.list() == [keep]
        assert spent(tracker, budget.id) == Decimal("30.00")

    def test_delete_unknown(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.expenses.delete(5)


class TestIncrementalConsistency:

    def test_spent_tracks_live_sum(self, tracker, groceries, budget):
        """Creates, updates and deletes inside the window keep spent exact."""
        a = tracker.expenses.create(groceries.id, Decimal("10.10"), date(2024, 1, 2), "a")
        b = tracker.expenses.create(groceries.id, Decimal("20.20"), date(2024, 1, 3), "b")
        c = tracker.expenses.create(groceries.id, Decimal("30.30"), date(2024, 1, 4), "c")
        tracker.expenses.update(a.id, ExpensePatch(amount=Decimal("15.15")))
        tracker.expenses.delete(b.id)
        tracker.expenses.update(c.id, ExpensePatch(date=date(2024, 1, 30)))

        live = tracker.expenses.total_for_category(groceries.id, JAN_START, JAN_END)
        assert live == Decimal("45.45")
        assert spent(tracker, budget.id) == live


class TestReassign:

    def test_reassign_moves_all(self, tracker, groceries):
        tracker.expenses.create(groceries.id, Decimal("1"), date(2024, 1, 2), "a")
        tracker.expenses.create(groceries.id, Decimal("2"), date(2024, 1, 3), "b")

        assert tracker.expenses.reassign_category(groceries.id, 1) == 2
        assert tracker.expenses.get_by_category(groceries.id) == []
        assert len(tracker.expenses.get_by_category(1)) == 2
