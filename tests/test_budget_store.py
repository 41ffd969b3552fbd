"""
Tests for BudgetStore: overlap detection, spent snapshots and adjustments.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest

from expense_tracker.errors import NotFoundError, OverlapError, ValidationError
from expense_tracker.models.finance import BudgetPatch


JAN_START, JAN_END = date(2024, 1, 1), date(2024, 1, 31)
FEB_START, FEB_END = date(2024, 2, 1), date(2024, 2, 29)


class TestBudgetCreate:

    def test_create_returns_full_row(self, tracker, groceries):
        budget = tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)

        assert budget.id >= 1
        assert budget.category_id == groceries.id
        assert budget.amount == Decimal("500.00")
        assert budget.spent == Decimal("0.00")
        assert tracker.budgets.get_by_id(budget.id) == budget

    def test_snapshot_counts_only_expenses_in_period(self, tracker, groceries):
        """Spent starts as the sum of the category's expenses within the window."""
        tracker.expenses.create(groceries.id, Decimal("40"), date(2024, 1, 1), "Start day")
        tracker.expenses.create(groceries.id, Decimal("60.50"), date(2024, 1, 31), "End day")
        tracker.expenses.create(groceries.id, Decimal("999"), date(2024, 2, 1), "Outside")
        rent = tracker.categories.create("Rent")
        tracker.expenses.create(rent.id, Decimal("1200"), date(2024, 1, 5), "Other category")

        budget = tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)

        assert budget.spent == Decimal("100.50")
        assert budget.spent == tracker.expenses.total_for_category(groceries.id, JAN_START, JAN_END)

    @pytest.mark.parametrize("category_id,amount,start,end", [
        (0, Decimal("10"), JAN_START, JAN_END),
        (2, Decimal("0"), JAN_START, JAN_END),
        (2, Decimal("-5"), JAN_START, JAN_END),
        (2, Decimal("10"), None, JAN_END),
        (2, Decimal("10"), JAN_START, None),
        (2, Decimal("10"), JAN_END, JAN_START),
    ])
    def test_invalid_input(self, tracker, groceries, category_id, amount, start, end):
        with pytest.raises(ValidationError):
            tracker.budgets.create(category_id, amount, start, end)
        assert tracker.budgets.list() == []

    def test_unknown_category(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.budgets.create(99, Decimal("10"), JAN_START, JAN_END)

    @pytest.mark.parametrize("start,end", [
        (date(2024, 1, 31), date(2024, 2, 15)),   # touches the last day
        (date(2023, 12, 1), date(2024, 1, 1)),    # touches the first day
        (date(2024, 1, 10), date(2024, 1, 12)),   # inside
        (date(2023, 12, 1), date(2024, 3, 1)),    # encloses
    ])
    def test_overlap_rejected(self, tracker, groceries, start, end):
        existing = tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)

        with pytest.raises(OverlapError) as exc_info:
            tracker.budgets.create(groceries.id, Decimal("100"), start, end)

        assert exc_info.value.conflicting_ids == [existing.id]
        assert exc_info.value.status_code == 400
        assert len(tracker.budgets.list()) == 1

    def test_adjacent_periods_allowed(self, tracker, groceries):
        tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)
        tracker.budgets.create(groceries.id, Decimal("500"), FEB_START, FEB_END)
        assert len(tracker.budgets.get_by_category(groceries.id)) == 2

    def test_same_period_in_other_category_allowed(self, tracker, groceries):
        rent = tracker.categories.create("Rent")
        tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)
        tracker.budgets.create(rent.id, Decimal("1200"), JAN_START, JAN_END)
        assert len(tracker.budgets.list()) == 2

    def test_concurrent_creates_admit_one(self, tracker, groceries):
        """Racing creators for the same period: exactly one wins."""

        def attempt(_):
            try:
                tracker.budgets.create(groceries.id, Decimal("100"), JAN_START, JAN_END)
                return "created"
            except OverlapError:
                return "overlap"

        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = list(pool.map(attempt, range(8)))

        assert outcomes.count("created") == 1
        assert outcomes.count("overlap") == 7
        assert len(tracker.budgets.get_by_category(groceries.id)) == 1


class TestBudgetUpdate:

    @pytest.fixture
    def budget(self, tracker, groceries):
        return tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)

    def test_amount_only(self, tracker, budget):
        updated = tracker.budgets.update(budget.id, BudgetPatch(amount=Decimal("750")))
        assert updated.amount == Decimal("750.00")
        assert updated.start_date == JAN_START
        assert updated.end_date == JAN_END

    def test_explicit_zero_amount_rejected(self, tracker, budget):
        with pytest.raises(ValidationError):
            tracker.budgets.update(budget.id, BudgetPatch(amount=Decimal("0")))
        assert tracker.budgets.get_by_id(budget.id).amount == Decimal("500.00")

    def test_merged_period_must_be_ordered(self, tracker, budget):
        with pytest.raises(ValidationError):
            tracker.budgets.update(budget.id, BudgetPatch(end_date=date(2023, 12, 31)))

    def test_does_not_overlap_itself(self, tracker, budget):
        updated = tracker.budgets.update(
            budget.id, BudgetPatch(start_date=date(2024, 1, 5), end_date=date(2024, 2, 5)),
        )
        assert updated.start_date == date(2024, 1, 5)

    def test_overlap_with_sibling_rejected(self, tracker, groceries, budget):
        february = tracker.budgets.create(groceries.id, Decimal("500"), FEB_START, FEB_END)
        with pytest.raises(OverlapError) as exc_info:
            tracker.budgets.update(february.id, BudgetPatch(start_date=date(2024, 1, 31)))
        assert exc_info.value.conflicting_ids == [budget.id]

    def test_resnapshot_discards_accumulated_deltas(self, tracker, groceries, budget):
        """Update recomputes spent from expenses, overwriting adjustments."""
        tracker.expenses.create(groceries.id, Decimal("30"), date(2024, 3, 1), "March")
        assert tracker.budgets.get_by_id(budget.id).spent == Decimal("30.00")

        updated = tracker.budgets.update(budget.id, BudgetPatch(amount=Decimal("600")))
        assert updated.spent == Decimal("0.00")

    def test_move_to_other_category(self, tracker, budget):
        rent = tracker.categories.create("Rent")
        tracker.expenses.create(rent.id, Decimal("1000"), date(2024, 1, 2), "January rent")

        updated = tracker.budgets.update(budget.id, BudgetPatch(category_id=rent.id))

        assert updated.category_id == rent.id
        assert updated.spent == Decimal("1000.00")

    def test_move_to_unknown_category(self, tracker, budget):
        with pytest.raises(NotFoundError):
            tracker.budgets.update(budget.id, BudgetPatch(category_id=99))

    def test_unknown_budget(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.budgets.update(42, BudgetPatch(amount=Decimal("1")))


class TestAdjustSpent:

    def test_applies_to_every_budget_of_category(self, tracker, groceries):
        """Deltas are not filtered by the budget period."""
        january = tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)
        february = tracker.budgets.create(groceries.id, Decimal("500"), FEB_START, FEB_END)

        touched = tracker.budgets.adjust_spent(groceries.id, Decimal("25.50"))

        assert touched == 2
        assert tracker.budgets.get_by_id(january.id).spent == Decimal("25.50")
        assert tracker.budgets.get_by_id(february.id).spent == Decimal("25.50")

    def test_can_go_negative(self, tracker, groceries):
        budget = tracker.budgets.create(groceries.id, Decimal("500"), JAN_START, JAN_END)
        tracker.budgets.adjust_spent(groceries.id, Decimal("-10"))
        assert tracker.budgets.get_by_id(budget.id).spent == Decimal("-10.00")

    def test_no_budgets(self, tracker, groceries):
        assert tracker.budgets.adjust_spent(groceries.id, Decimal("10")) == 0


class TestBudgetLookupAndDelete:

    def test_get_by_category_is_ordered_by_start(self, tracker, groceries):
        february = tracker.budgets.create(groceries.id, Decimal("1"), FEB_START, FEB_END)
        january = tracker.budgets.create(groceries.id, Decimal("1"), JAN_START, JAN_END)
        assert [b.id for b in tracker.budgets.get_by_category(groceries.id)] == [january.id, february.id]

    def test_get_by_category_name(self, tracker, groceries):
        budget = tracker.budgets.create(groceries.id, Decimal("1"), JAN_START, JAN_END)
        assert tracker.budgets.get_by_category_name("  groceries ") == [budget]

    def test_get_by_unknown_category_name(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.budgets.get_by_category_name("Travel")

    def test_has_budget(self, tracker, groceries):
        assert not tracker.budgets.has_budget(groceries.id)
        tracker.budgets.create(groceries.id, Decimal("1"), JAN_START, JAN_END)
        assert tracker.budgets.has_budget(groceries.id)

    def test_delete(self, tracker, groceries):
        budget = tracker.budgets.create(groceries.id, Decimal("1"), JAN_START, JAN_END)
        tracker.budgets.delete(budget.id)
        with pytest.raises(NotFoundError):
            tracker.budgets.get_by_id(budget.id)

    def test_delete_unknown(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.budgets.delete(7)

    def test_delete_for_category(self, tracker, groceries):
        tracker.budgets.create(groceries.id, Decimal("1"), JAN_START, JAN_END)
        tracker.budgets.create(groceries.id, Decimal("1"), FEB_START, FEB_END)
        assert tracker.budgets.delete_for_category(groceries.id) == 2
        assert tracker.budgets.get_by_category(groceries.id) == []
