"""
Shared plumbing for the entity stores.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from expense_tracker.audit import AuditLogger, get_logger
from expense_tracker.errors import NotFoundError, ValidationError
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.finance import ValidationResult
from expense_tracker.services.storage import Database, category_table
from expense_tracker.validation import EntryValidator


class BaseStore:
    """
    Holds the collaborators every store needs: the shared Database,
    the validator and the audit logger.
    """

    entity_type = "entity"

    def __init__(
        self,
        database: Database,
        validator: Optional[EntryValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._db = database
        self._validator = validator or EntryValidator()
        self._audit = audit_logger or AuditLogger()
        self._logger = get_logger(f"expense_tracker.stores.{self.entity_type}")

    def _raise_if_invalid(
        self,
        result: ValidationResult,
        entity_id: Optional[int] = None,
    ) -> None:
        """Turn error-level issues into ValidationError; log warnings."""
        errors = [issue for issue in result.issues if issue.severity == "error"]
        if errors:
            self._audit.log(AuditEventBuilder.validation_failed(
                entity_type=self.entity_type,
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in errors
                ],
                entity_id=entity_id,
            ))
            raise ValidationError(errors[0].message, issues=errors)

        for warning in result.warnings:
            self._logger.warning(
                "validation_warning",
                entity_type=self.entity_type,
                entity_id=entity_id,
                message=warning,
            )

    @staticmethod
    def _require_category(conn: Connection, category_id: int) -> None:
        found = conn.execute(
            select(category_table.c.id).where(category_table.c.id == category_id)
        ).first()
        if found is None:
            raise NotFoundError(f"Category not found: {category_id}")
