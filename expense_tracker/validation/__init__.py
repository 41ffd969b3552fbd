"""Input validation package."""

from expense_tracker.validation.validator import (
    EntryValidator,
    coerce_amount,
    coerce_date,
    normalize_category_name,
)

__all__ = [
    "EntryValidator",
    "coerce_amount",
    "coerce_date",
    "normalize_category_name",
]
