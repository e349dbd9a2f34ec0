"""Transaction categories and the category validator.

Created: 2026-10-04

``CategoryValidator.validate()`` is the single place that decides whether a
string is a category. Its result is always a member of the category set or
``"Other"``, whatever the input.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from pydantic import BaseModel, field_validator

from fincoach.errors import CategoryValidationError

OTHER = "Other"

CATEGORIES: tuple[str, ...] = (
    "Housing",
    "Transportation",
    "Food",
    "Utilities",
    "Insurance",
    "Healthcare",
    "Savings",
    "Personal",
    "Entertainment",
    "Education",
    "Clothing",
    "Gifts",
    "Travel",
    "Income",
    "Investment",
    OTHER,
)


class Transaction(BaseModel):
    """A transaction to categorize. Negative amounts are expenses."""

    description: str
    amount: Decimal = Decimal("0")

    @field_validator("description")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class CategoryValidator:
    """Case-insensitive membership checks against a closed category set."""

    def __init__(self, categories: Iterable[str] = CATEGORIES):
        self.categories: tuple[str, ...] = tuple(categories)
        self._by_lower = {c.lower(): c for c in self.categories}

    def canonical(self, value: str | None) -> str | None:
        """Return the canonically cased category for *value*, or None."""
        if not isinstance(value, str):
            return None
        return self._by_lower.get(value.strip().lower())

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and self.canonical(value) is not None

    def require(self, value: str | None) -> str:
        """Like ``canonical()`` but raises ``CategoryValidationError`` on a miss."""
        category = self.canonical(value)
        if category is None:
            raise CategoryValidationError(str(value))
        return category

    def validate(self, value: str | None) -> str:
        """Return the matching category or ``"Other"``."""
        return self.canonical(value) or self.fallback

    def find(self, target: str) -> str:
        """Return *target* if it is in the set, otherwise ``"Other"``."""
        return self.validate(target)

    @property
    def fallback(self) -> str:
        return self._by_lower.get(OTHER.lower(), OTHER)


def validate_category(result: str | None, categories: Iterable[str] = CATEGORIES) -> str:
    """Validate a model answer against *categories*; ``"Other"`` when it isn't one."""
    return CategoryValidator(categories).validate(result)
