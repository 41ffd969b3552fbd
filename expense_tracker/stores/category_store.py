"""
Category Store

Owns the category table and the delete cascade.

The reserved Other category (id 1) is seeded by Database.init_schema() and
can be neither renamed nor removed. Deleting any other category runs as one
transaction:

    1. its expenses are reassigned to Other
    2. its budgets are deleted
    3. the category row is deleted

The budget foreign key also cascades at the storage level; step 2 makes the
application own the guarantee regardless of backend.
"""

from typing import Optional

from sqlalchemy import select

from expense_tracker.errors import ForbiddenError, NotFoundError
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.finance import OTHER_CATEGORY_ID, Category, CategoryPatch
from expense_tracker.services.storage.schema import category_table, row_to_category
from expense_tracker.stores.base import BaseStore
from expense_tracker.stores.budget_store import BudgetStore
from expense_tracker.stores.expense_store import ExpenseStore
from expense_tracker.validation import normalize_category_name


class CategoryStore(BaseStore):
    """
    Category persistence guarding the Other category.
    """

    entity_type = "category"

    def __init__(
        self,
        database,
        expense_store: ExpenseStore,
        budget_store: BudgetStore,
        validator=None,
        audit_logger=None,
    ):
        super().__init__(database, validator=validator, audit_logger=audit_logger)
        self._expenses = expense_store
        self._budgets = budget_store

    def list(self) -> list[Category]:
        with self._db.transaction() as conn:
            rows = conn.execute(select(category_table).order_by(category_table.c.id)).all()
        return [row_to_category(row) for row in rows]

    def get(self, category_id: int) -> Category:
        with self._db.transaction() as conn:
            row = conn.execute(
                select(category_table).where(category_table.c.id == category_id)
            ).first()
        if row is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return row_to_category(row)

    def create(self, name: str, description: Optional[str] = None) -> Category:
        """
        Create a category under its normalized name.

        Raises:
            ValidationError: If the name is empty or blank
            DuplicateError: If a category with the same normalized name exists
        """
        self._raise_if_invalid(self._validator.validate_category(name, description))
        name = normalize_category_name(name)
        description = (description or "").strip()

        with self._db.transaction() as conn:
            result = conn.execute(
                category_table.insert().values(name=name, description=description)
            )
            category_id = result.inserted_primary_key[0]

        self._audit.log(AuditEventBuilder.category_created(category_id, name))
        return Category(id=category_id, name=name, description=description)

    def update(self, category_id: int, patch: CategoryPatch) -> Category:
        """
        Apply the present fields of `patch`.

        Raises:
            ForbiddenError: For the Other category
            NotFoundError: If the category does not exist
            ValidationError: If a present name is blank
            DuplicateError: If the new name is taken
        """
        self._refuse_other(category_id, "update")
        changes = patch.present_fields()

        with self._db.transaction() as conn:
            row = conn.execute(
                select(category_table).where(category_table.c.id == category_id)
            ).first()
            if row is None:
                raise NotFoundError(f"Category not found: {category_id}")
            current = row_to_category(row)

            self._raise_if_invalid(
                self._validator.validate_category(
                    changes.get("name", current.name),
                    changes.get("description"),
                ),
                entity_id=category_id,
            )
            if not changes:
                return current

            values = {}
            if "name" in changes:
                values["name"] = normalize_category_name(changes["name"])
            if "description" in changes:
                values["description"] = changes["description"].strip()
            conn.execute(
                category_table.update()
                .where(category_table.c.id == category_id)
                .values(**values)
            )

        self._audit.log(AuditEventBuilder.category_updated(category_id, sorted(values)))
        return current.model_copy(update=values)

    def delete(self, category_id: int) -> None:
        """
        Reassign the category's expenses to Other, drop its budgets, then
        delete it. All or nothing.

        Raises:
            ForbiddenError: For the Other category
            NotFoundError: If the category does not exist
        """
        self._refuse_other(category_id, "delete")

        with self._db.transaction() as conn:
            self._require_category(conn, category_id)
            moved = self._expenses.reassign_category(category_id, OTHER_CATEGORY_ID)
            removed = self._budgets.delete_for_category(category_id)
            conn.execute(category_table.delete().where(category_table.c.id == category_id))

        self._audit.log(AuditEventBuilder.category_deleted(category_id, moved, removed))

    def _refuse_other(self, category_id: int, action: str) -> None:
        if category_id == OTHER_CATEGORY_ID:
            self._audit.log(AuditEventBuilder.forbidden_mutation(category_id, action))
            raise ForbiddenError("The Other category cannot be modified or deleted")
