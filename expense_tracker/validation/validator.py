"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Type / format checks (ids are positive integers, amounts are numbers)
- Range checks (amount > 0, at most two decimal places)

STAGE 2 - SEMANTIC VALIDATION:
- Date logic (period order, no future expenses, no moving an expense back)
- Sanity checks (suspiciously large amounts are warnings, never errors)

Stage 2 only runs when stage 1 passes, so it can rely on well-typed values.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; stores turn error-level issues into ValidationError.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.models.finance import (
    Expense,
    ExpensePatch,
    ValidationIssue,
    ValidationResult,
)


def coerce_amount(value: Any) -> Optional[Decimal]:
    """Best-effort conversion to Decimal; None when the value is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not amount.is_finite():
        return None
    return amount


def coerce_date(value: Any) -> Optional[date]:
    """Accept date, datetime or ISO string; None otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def normalize_category_name(name: str) -> str:
    """Collapse whitespace and title-case: '  fast  food ' -> 'Fast Food'."""
    return " ".join(name.split()).title()


def _error(field: str, issue_type: str, message: str, suggested_fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=suggested_fix,
    )


class EntryValidator:
    """
    Validates store inputs through a two-stage pipeline.

    One instance is shared by all stores.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize validator.

        Args:
            settings: App settings (tolerances, thresholds). Loaded if None.
            today: Clock used for future-date checks; injectable for tests.
        """
        self._settings = settings or get_settings().app
        self._today = today or date.today

    # -------------------------------------------------------------------------
    # Field checks (stage 1)
    # -------------------------------------------------------------------------

    def _check_id(self, issues: list, field: str, value: Any) -> None:
        if value is None:
            issues.append(_error(field, "missing", f"{field} is required"))
        elif isinstance(value, bool) or not isinstance(value, int):
            issues.append(_error(field, "invalid_format", f"{field} must be an integer"))
        elif value <= 0:
            issues.append(_error(field, "invalid_value", f"{field} must be a positive id"))

    def _check_amount(self, issues: list, field: str, value: Any) -> None:
        if value is None:
            issues.append(_error(field, "missing", f"{field} is required"))
            return
        amount = coerce_amount(value)
        if amount is None:
            issues.append(_error(field, "invalid_format", f"{field} must be a number"))
        elif amount <= 0:
            issues.append(_error(
                field,
                "invalid_value",
                f"{field} must be greater than zero",
                suggested_fix="Enter a positive amount",
            ))
        elif amount.as_tuple().exponent < -2:
            issues.append(_error(
                field,
                "too_precise",
                f"{field} cannot have more than two decimal places",
            ))

    def _check_date(self, issues: list, field: str, value: Any) -> None:
        if value is None:
            issues.append(_error(field, "missing", f"{field} must be provided"))
        elif coerce_date(value) is None:
            issues.append(_error(field, "invalid_format", f"{field} must be a date (YYYY-MM-DD)"))

    def _check_text(self, issues: list, field: str, value: Any, max_length: int) -> None:
        if value is None or not isinstance(value, str) or not value.strip():
            issues.append(_error(field, "missing", f"{field} cannot be empty"))
        elif len(value.strip()) > max_length:
            issues.append(_error(field, "too_long", f"{field} is longer than {max_length} characters"))

    # -------------------------------------------------------------------------
    # Semantic checks (stage 2)
    # -------------------------------------------------------------------------

    def _check_not_future(self, issues: list, field: str, value: date) -> None:
        latest = self._today() + timedelta(days=self._settings.future_date_tolerance_days)
        if value > latest:
            issues.append(_error(
                field,
                "future_date",
                f"{field} ({value}) is in the future",
                suggested_fix="Record expenses on or after the day they happen",
            ))

    def _warn_large_amount(self, issues: list, field: str, amount: Decimal) -> None:
        ceiling = Decimal(str(self._settings.max_reasonable_amount))
        if amount > ceiling:
            issues.append(ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"{field} ({amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

    @staticmethod
    def _result(entity_type: str, schema_issues: list, semantic_issues: list) -> ValidationResult:
        return ValidationResult(
            entity_type=entity_type,
            schema_valid=not any(i.severity == "error" for i in schema_issues),
            semantic_valid=not any(i.severity == "error" for i in semantic_issues),
            issues=schema_issues + semantic_issues,
        )

    # -------------------------------------------------------------------------
    # Entity validation
    # -------------------------------------------------------------------------

    def validate_category(
        self,
        name: Any,
        description: Any = None,
    ) -> ValidationResult:
        """Name must be non-blank; description is optional."""
        issues: list[ValidationIssue] = []
        self._check_text(issues, "name", name, max_length=255)
        if description is not None:
            if not isinstance(description, str):
                issues.append(_error("description", "invalid_format", "description must be text"))
            elif len(description) > 1000:
                issues.append(_error("description", "too_long", "description is longer than 1000 characters"))
        return self._result("category", issues, [])

    def validate_budget(
        self,
        category_id: Any,
        amount: Any,
        start_date: Any,
        end_date: Any,
    ) -> ValidationResult:
        """Full budget validation, used for create and for merged updates."""
        schema_issues: list[ValidationIssue] = []
        self._check_id(schema_issues, "category_id", category_id)
        self._check_amount(schema_issues, "amount", amount)
        self._check_date(schema_issues, "start_date", start_date)
        self._check_date(schema_issues, "end_date", end_date)

        semantic_issues: list[ValidationIssue] = []
        if not any(i.severity == "error" for i in schema_issues):
            start, end = coerce_date(start_date), coerce_date(end_date)
            if end < start:
                semantic_issues.append(_error(
                    "end_date",
                    "inconsistent",
                    "end date must be on or after start date",
                    suggested_fix="Swap the dates or pick a later end date",
                ))
            self._warn_large_amount(semantic_issues, "amount", coerce_amount(amount))

        return self._result("budget", schema_issues, semantic_issues)

    def validate_expense(
        self,
        category_id: Any,
        amount: Any,
        expense_date: Any,
        description: Any,
    ) -> ValidationResult:
        """Validation for a new expense."""
        schema_issues: list[ValidationIssue] = []
        self._check_text(schema_issues, "description", description, max_length=500)
        self._check_amount(schema_issues, "amount", amount)
        self._check_date(schema_issues, "date", expense_date)
        self._check_id(schema_issues, "category_id", category_id)

        semantic_issues: list[ValidationIssue] = []
        if not any(i.severity == "error" for i in schema_issues):
            self._check_not_future(semantic_issues, "date", coerce_date(expense_date))
            self._warn_large_amount(semantic_issues, "amount", coerce_amount(amount))

        return self._result("expense", schema_issues, semantic_issues)

    def validate_expense_patch(
        self,
        current: Expense,
        patch: ExpensePatch,
    ) -> ValidationResult:
        """
        Validation for an expense update. Only fields present in the patch
        are checked.

        A new date may not be in the future, and may not move the expense
        earlier than its current date.
        """
        schema_issues: list[ValidationIssue] = []
        if patch.amount is not None:
            self._check_amount(schema_issues, "amount", patch.amount)
        if patch.date is not None:
            self._check_date(schema_issues, "date", patch.date)
        if patch.description is not None:
            self._check_text(schema_issues, "description", patch.description, max_length=500)
        if patch.category_id is not None:
            self._check_id(schema_issues, "category_id", patch.category_id)

        semantic_issues: list[ValidationIssue] = []
        if not any(i.severity == "error" for i in schema_issues):
            if patch.date is not None:
                new_date = coerce_date(patch.date)
                self._check_not_future(semantic_issues, "date", new_date)
                if new_date < current.date:
                    semantic_issues.append(_error(
                        "date",
                        "moved_earlier",
                        f"date cannot move earlier than the recorded date ({current.date})",
                        suggested_fix="Delete the expense and record it again",
                    ))
            if patch.amount is not None:
                self._warn_large_amount(semantic_issues, "amount", coerce_amount(patch.amount))

        return self._result("expense", schema_issues, semantic_issues)

    def validate_income(
        self,
        amount: Any,
        income_date: Any,
        source: Any,
    ) -> ValidationResult:
        """Income has no engine rules beyond well-formed fields."""
        issues: list[ValidationIssue] = []
        self._check_amount(issues, "amount", amount)
        self._check_date(issues, "date", income_date)
        self._check_text(issues, "source", source, max_length=255)
        return self._result("income", issues, [])

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the UI shows next to a rejected form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
