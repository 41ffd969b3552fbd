"""
Entity Stores

BudgetStore, ExpenseStore and CategoryStore make up the consistency engine;
IncomeStore is independent of them.
"""

from expense_tracker.stores.base import BaseStore
from expense_tracker.stores.budget_store import BudgetStore, CategoryLocks
from expense_tracker.stores.category_store import CategoryStore
from expense_tracker.stores.expense_store import ExpenseStore
from expense_tracker.stores.income_store import IncomeStore

__all__ = [
    "BaseStore",
    "BudgetStore",
    "CategoryLocks",
    "CategoryStore",
    "ExpenseStore",
    "IncomeStore",
]
