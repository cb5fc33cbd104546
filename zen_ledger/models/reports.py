"""
Report Models

Read-only views the aggregator and budget evaluator compute from a
transaction snapshot. None of these are persisted.
"""

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from zen_ledger.models.ledger import DateRange, MonthPeriod, Transaction


VIEW_CONFIG = ConfigDict(frozen=True)


class Totals(BaseModel):
    """Income, expense and their difference over a set of transactions."""
    model_config = VIEW_CONFIG

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class MetricChange(BaseModel):
    """Change of one metric against the previous period."""
    model_config = VIEW_CONFIG

    diff: Decimal
    pct: Decimal = Field(
        ...,
        description="Percent change; 100 when growing from zero, 0 when both are zero"
    )


class PeriodComparison(BaseModel):
    """Month-over-month change for every headline metric."""
    model_config = VIEW_CONFIG

    previous: MonthPeriod
    income: MetricChange
    expense: MetricChange
    balance: MetricChange


class CategorySpend(BaseModel):
    """One bar of the top-spend breakdown."""
    model_config = VIEW_CONFIG

    name: str
    value: Decimal
    color: str


class DashboardView(BaseModel):
    """Everything the overview screen needs for one period."""
    model_config = VIEW_CONFIG

    period: Union[MonthPeriod, DateRange]
    transactions: tuple[Transaction, ...]
    totals: Totals
    comparison: Optional[PeriodComparison] = None
    top_expenses: tuple[CategorySpend, ...] = ()


class MonthSummary(BaseModel):
    """One row of the annual report."""
    model_config = VIEW_CONFIG

    month: int = Field(..., ge=1, le=12)
    label: str
    income: Decimal
    expense: Decimal

    @property
    def savings(self) -> Decimal:
        return self.income - self.expense


class AnnualReport(BaseModel):
    """Twelve monthly rows plus year totals."""
    model_config = VIEW_CONFIG

    year: int
    months: tuple[MonthSummary, ...]

    @property
    def totals(self) -> Totals:
        return Totals(
            income=sum((m.income for m in self.months), Decimal("0")),
            expense=sum((m.expense for m in self.months), Decimal("0")),
        )


class BudgetEvaluation(BaseModel):
    """
    Result of checking a candidate write against a category budget.

    Advisory only: an over-budget evaluation never blocks the write.
    """
    model_config = VIEW_CONFIG

    over_budget: bool
    budget_amount: Optional[Decimal] = None
    spent_including_candidate: Decimal = Decimal("0")


class BudgetStatus(BaseModel):
    """Budget usage of one expense category for a period."""
    model_config = VIEW_CONFIG

    category_id: str
    category_name: str
    budget_amount: Optional[Decimal] = None
    spent: Decimal

    @property
    def percentage(self) -> Decimal:
        """Share of the cap used, capped at 100."""
        if not self.budget_amount:
            return Decimal("0")
        return min(self.spent / self.budget_amount * 100, Decimal("100"))

    @property
    def is_over(self) -> bool:
        return self.budget_amount is not None and self.spent > self.budget_amount

    @property
    def over_by(self) -> Decimal:
        if not self.is_over:
            return Decimal("0")
        return self.spent - self.budget_amount
