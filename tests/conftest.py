"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path, with the schema created
and the Other category seeded. The validator's clock is pinned so date rules
do not depend on when the suite runs.
"""

from datetime import date

import pytest

from expense_tracker.config import get_settings
from expense_tracker.orchestrator import ExpenseTracker
from expense_tracker.services.storage import Database
from expense_tracker.validation import EntryValidator


TODAY = date(2024, 6, 30)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def database(tmp_path):
    db = Database(url=f"sqlite:///{tmp_path / 'tracker.db'}")
    db.init_schema()
    yield db
    db.dispose()


@pytest.fixture
def validator():
    return EntryValidator(today=lambda: TODAY)


@pytest.fixture
def tracker(database, validator):
    return ExpenseTracker(database, validator=validator)


@pytest.fixture
def groceries(tracker):
    return tracker.categories.create("Groceries", "Food and household")
