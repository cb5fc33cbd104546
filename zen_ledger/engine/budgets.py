"""
Budget Evaluator

Checks a candidate expense against its category's monthly cap at write
time, before the write is committed.

The result is advisory: an over-budget evaluation never blocks the write,
it only makes the ledger emit a delayed warning. Exactly at the cap is
not over; the comparison is strict.

When a transaction is being edited its stored version is excluded from
the month's spend, so the new amount is not counted on top of the old one.
"""

from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Optional

from zen_ledger.engine import period as periods
from zen_ledger.models.ledger import MonthPeriod, TransactionType
from zen_ledger.models.reports import BudgetEvaluation, BudgetStatus
from zen_ledger.store import LedgerStore


class BudgetEvaluator:
    """Budget checks and usage summaries over the store's current snapshot."""

    def __init__(self, store: LedgerStore, zone: Optional[tzinfo] = None):
        self._store = store
        self._zone = zone

    def month_spend(
        self,
        category_id: str,
        month: MonthPeriod,
        exclude_transaction_id: Optional[str] = None,
    ) -> Decimal:
        """Expense total of one category in one calendar month."""
        return sum(
            (
                t.amount
                for t in self._store.transactions
                if t.type == TransactionType.EXPENSE
                and t.category_id == category_id
                and t.id != exclude_transaction_id
                and periods.in_month(t, month, self._zone)
            ),
            Decimal("0"),
        )

    def evaluate(
        self,
        category_id: str,
        month: int,
        year: int,
        candidate_amount: Decimal,
        exclude_transaction_id: Optional[str] = None,
    ) -> BudgetEvaluation:
        """
        Would adding `candidate_amount` push the category over its cap?

        Args:
            category_id: Category the candidate is booked against
            month: Calendar month (1-12) of the candidate's timestamp
            year: Calendar year of the candidate's timestamp
            candidate_amount: Amount about to be written
            exclude_transaction_id: Transaction being edited, if any

        Returns:
            BudgetEvaluation; over_budget is always False without a budget
        """
        budget = self._store.get_budget(category_id)
        if budget is None:
            return BudgetEvaluation(
                over_budget=False,
                spent_including_candidate=candidate_amount,
            )

        spent = self.month_spend(
            category_id,
            MonthPeriod(year=year, month=month),
            exclude_transaction_id,
        ) + candidate_amount

        return BudgetEvaluation(
            over_budget=spent > budget.amount,
            budget_amount=budget.amount,
            spent_including_candidate=spent,
        )

    def evaluate_at(
        self,
        category_id: str,
        timestamp: datetime,
        candidate_amount: Decimal,
        exclude_transaction_id: Optional[str] = None,
    ) -> BudgetEvaluation:
        """evaluate() for the local month a timestamp falls in."""
        month = periods.month_of(timestamp, self._zone)
        return self.evaluate(
            category_id,
            month.month,
            month.year,
            candidate_amount,
            exclude_transaction_id,
        )

    def statuses(self, window: periods.Window) -> list[BudgetStatus]:
        """Spend against budget for every expense category in a window."""
        selected = periods.select(self._store.transactions, window, self._zone)
        result = []
        for category in self._store.categories:
            if category.type != TransactionType.EXPENSE:
                continue
            spent = sum(
                (
                    t.amount
                    for t in selected
                    if t.category_id == category.id
                    and t.type == TransactionType.EXPENSE
                ),
                Decimal("0"),
            )
            budget = self._store.get_budget(category.id)
            result.append(BudgetStatus(
                category_id=category.id,
                category_name=category.name,
                budget_amount=budget.amount if budget else None,
                spent=spent,
            ))
        return result
