"""
Data Models Package

This package contains all Pydantic models used by the ledger.
Everything the store persists or the engine returns conforms to these schemas.
"""

from zen_ledger.models.ledger import (
    DEFAULT_CATEGORIES,
    UNKNOWN_CATEGORY_COLOR,
    UNKNOWN_CATEGORY_LABEL,
    Budget,
    Category,
    DateRange,
    MonthPeriod,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    default_budgets,
)
from zen_ledger.models.reports import (
    AnnualReport,
    BudgetEvaluation,
    BudgetStatus,
    CategorySpend,
    DashboardView,
    MetricChange,
    MonthSummary,
    PeriodComparison,
    Totals,
)
from zen_ledger.models.extraction import (
    CategoryOption,
    ExtractedItem,
    ExtractionResult,
)
from zen_ledger.models.notification import (
    Notification,
    NotificationBuilder,
    NotificationKind,
    NotificationSeverity,
)

__all__ = [
    # Ledger entities
    "DEFAULT_CATEGORIES",
    "UNKNOWN_CATEGORY_COLOR",
    "UNKNOWN_CATEGORY_LABEL",
    "Budget",
    "Category",
    "DateRange",
    "MonthPeriod",
    "Transaction",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "default_budgets",
    # Reports
    "AnnualReport",
    "BudgetEvaluation",
    "BudgetStatus",
    "CategorySpend",
    "DashboardView",
    "MetricChange",
    "MonthSummary",
    "PeriodComparison",
    "Totals",
    # Extraction
    "CategoryOption",
    "ExtractedItem",
    "ExtractionResult",
    # Notifications
    "Notification",
    "NotificationBuilder",
    "NotificationKind",
    "NotificationSeverity",
]
