"""
Core Data Models for Zen Ledger

These models define the schemas for every entity the ledger stores:
transactions, categories, budgets and the calendar periods they are
grouped by.

DESIGN DECISION: Entities are frozen Pydantic v2 models.
A snapshot handed out by the store can never be mutated in place;
edits go through the store and produce a new model via model_copy().
Persisted field names use camelCase aliases (categoryId, isRecurring, ...).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


ENTITY_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    str_strip_whitespace=True,
)

# Display fallback for transactions whose category no longer exists
UNKNOWN_CATEGORY_LABEL = "Other"
UNKNOWN_CATEGORY_COLOR = "#cbd5e1"

DEFAULT_CATEGORY_ICON = "Tags"
DEFAULT_CATEGORY_COLOR = "#6366f1"


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a money movement."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# ENTITIES
# =============================================================================

class Category(BaseModel):
    """
    A user-defined classification for transactions.

    A category flagged as recurring auto-posts one transaction of
    recurring_amount per calendar month. A recurring flag without a
    positive amount is inert.
    """
    model_config = ENTITY_CONFIG

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    icon: str = Field(default=DEFAULT_CATEGORY_ICON)
    color: str = Field(default=DEFAULT_CATEGORY_COLOR)
    is_recurring: bool = Field(default=False, alias="isRecurring")
    recurring_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        alias="recurringAmount",
        description="Fixed amount posted each month when is_recurring is set"
    )

    @property
    def posts_monthly(self) -> bool:
        """True when this category produces a monthly auto-post."""
        return (
            self.is_recurring
            and self.recurring_amount is not None
            and self.recurring_amount > 0
        )


class Transaction(BaseModel):
    """
    A single income or expense event.

    category_id may point at a category that has since been deleted;
    readers resolve that to the sentinel label instead of failing.
    """
    model_config = ENTITY_CONFIG

    id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    category_id: str = Field(..., alias="categoryId")
    type: TransactionType
    note: str = Field(default="")
    timestamp: AwareDatetime

    @field_validator("note", mode="before")
    @classmethod
    def none_note_is_empty(cls, v):
        return "" if v is None else v


class Budget(BaseModel):
    """Monthly spending cap for one (expense) category."""
    model_config = ENTITY_CONFIG

    category_id: str = Field(..., alias="categoryId")
    amount: Decimal = Field(..., gt=0)


# =============================================================================
# PERIODS
# =============================================================================

class MonthPeriod(BaseModel):
    """
    A calendar month.

    The key ("YYYY-M", month 1-indexed, no zero padding) is what the
    recurring poster records in ProcessedPeriods.
    """
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def previous(self) -> "MonthPeriod":
        """The immediately preceding month, wrapping across years."""
        if self.month == 1:
            return MonthPeriod(year=self.year - 1, month=12)
        return MonthPeriod(year=self.year, month=self.month - 1)

    def contains_date(self, day: date) -> bool:
        return day.year == self.year and day.month == self.month

    @classmethod
    def of(cls, day: date) -> "MonthPeriod":
        return cls(year=day.year, month=day.month)


class DateRange(BaseModel):
    """An explicit, inclusive range of calendar days."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start: date = Field(..., alias="from")
    end: date = Field(..., alias="to")

    @model_validator(mode='after')
    def validate_order(self) -> 'DateRange':
        if self.end < self.start:
            raise ValueError("Range end cannot be before range start")
        return self


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'type_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
    )


class ValidationResult(BaseModel):
    """Outcome of validating one ledger write."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# BUILT-IN DEFAULTS
# =============================================================================

def _category(id: str, name: str, type: TransactionType, icon: str, color: str) -> Category:
    return Category(id=id, name=name, type=type, icon=icon, color=color)


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    _category("1", "Housing", TransactionType.EXPENSE, "Home", "#6366f1"),
    _category("2", "Shopping", TransactionType.EXPENSE, "ShoppingBag", "#ec4899"),
    _category("3", "Food & Dining", TransactionType.EXPENSE, "Coffee", "#f59e0b"),
    _category("4", "Transport", TransactionType.EXPENSE, "Car", "#3b82f6"),
    _category("5", "Health", TransactionType.EXPENSE, "Heart", "#ef4444"),
    _category("6", "Entertainment", TransactionType.EXPENSE, "Gamepad2", "#8b5cf6"),
    _category("7", "Utilities", TransactionType.EXPENSE, "Zap", "#10b981"),
    _category("8", "Travel", TransactionType.EXPENSE, "Plane", "#06b6d4"),
    _category("9", "Salary", TransactionType.INCOME, "Briefcase", "#22c55e"),
    _category("10", "Investment", TransactionType.INCOME, "TrendingUp", "#14b8a6"),
    _category("11", "Bonus", TransactionType.INCOME, "Wallet", "#f97316"),
)


def default_budgets(amount: Decimal) -> tuple[Budget, ...]:
    """One budget of `amount` for every default expense category."""
    return tuple(
        Budget(category_id=cat.id, amount=amount)
        for cat in DEFAULT_CATEGORIES
        if cat.type == TransactionType.EXPENSE
    )
