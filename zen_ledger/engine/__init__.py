"""
Ledger Engine

Period filtering, aggregation, recurring posting, budget checks and
receipt reconciliation.
"""

from zen_ledger.engine.budgets import BudgetEvaluator
from zen_ledger.engine.period import Window, resolve_zone
from zen_ledger.engine.reconciliation import (
    ReconciliationDraft,
    ReconciliationImporter,
    expense_options,
    normalize_extraction,
)
from zen_ledger.engine.recurring import RecurringPoster, RecurringRun

__all__ = [
    "BudgetEvaluator",
    "ReconciliationDraft",
    "ReconciliationImporter",
    "RecurringPoster",
    "RecurringRun",
    "Window",
    "expense_options",
    "normalize_extraction",
    "resolve_zone",
]
