"""
Aggregation Engine

Pure, deterministic queries over a transaction snapshot:

1. Totals: income, expense and balance
2. Month-over-month comparison against the previous calendar month
3. Top-N expense breakdown by category
4. Annual report and the list of selectable years

Nothing here touches the store; callers pass in the snapshot they read.
"""

import calendar
from datetime import tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from zen_ledger.engine import period as periods
from zen_ledger.models.ledger import (
    UNKNOWN_CATEGORY_COLOR,
    UNKNOWN_CATEGORY_LABEL,
    Category,
    DateRange,
    MonthPeriod,
    Transaction,
    TransactionType,
)
from zen_ledger.models.reports import (
    AnnualReport,
    CategorySpend,
    DashboardView,
    MetricChange,
    MonthSummary,
    PeriodComparison,
    Totals,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")

DEFAULT_TOP_N = 10


def totals(transactions: Iterable[Transaction]) -> Totals:
    """Sum income and expense amounts."""
    income = ZERO
    expense = ZERO
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return Totals(income=income, expense=expense)


def change(current: Decimal, previous: Decimal) -> MetricChange:
    """
    Difference and percent change between two values.

    Growth from zero is reported as a flat 100% instead of dividing by zero;
    zero to zero (or to a negative value) is 0%.
    """
    diff = current - previous
    if previous == 0:
        pct = HUNDRED if current > 0 else ZERO
    else:
        pct = diff / abs(previous) * HUNDRED
    return MetricChange(diff=diff, pct=pct)


def compare_periods(
    all_transactions: Sequence[Transaction],
    period: MonthPeriod,
    zone: Optional[tzinfo],
    current: Optional[Totals] = None,
) -> PeriodComparison:
    """
    Compare a month against the one before it.

    The previous month is always taken from the full log, never from an
    already-filtered subset.
    """
    if current is None:
        current = totals(periods.select(all_transactions, period, zone))
    previous_period = period.previous()
    prev = totals(periods.select(all_transactions, previous_period, zone))

    return PeriodComparison(
        previous=previous_period,
        income=change(current.income, prev.income),
        expense=change(current.expense, prev.expense),
        balance=change(current.balance, prev.balance),
    )


def top_expenses(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    limit: int = DEFAULT_TOP_N,
) -> tuple[CategorySpend, ...]:
    """
    Largest expense groups by category name, descending.

    Transactions whose category no longer exists are grouped under the
    sentinel label. Sums are rounded to cents.
    """
    by_id = {c.id: c for c in categories}
    groups: dict[str, tuple[Decimal, str]] = {}

    for t in transactions:
        if t.type != TransactionType.EXPENSE:
            continue
        category = by_id.get(t.category_id)
        name = category.name if category else UNKNOWN_CATEGORY_LABEL
        color = category.color if category else UNKNOWN_CATEGORY_COLOR
        total, first_color = groups.get(name, (ZERO, color))
        groups[name] = (total + t.amount, first_color)

    spends = [
        CategorySpend(
            name=name,
            value=total.quantize(CENTS, rounding=ROUND_HALF_UP),
            color=color,
        )
        for name, (total, color) in groups.items()
    ]
    spends.sort(key=lambda s: s.value, reverse=True)
    return tuple(spends[:limit])


def annual_report(
    transactions: Sequence[Transaction],
    year: int,
    zone: Optional[tzinfo],
) -> AnnualReport:
    """Income and expense for each month of a year."""
    months = []
    for month in range(1, 13):
        month_totals = totals(
            periods.select(transactions, MonthPeriod(year=year, month=month), zone)
        )
        months.append(MonthSummary(
            month=month,
            label=calendar.month_abbr[month],
            income=month_totals.income,
            expense=month_totals.expense,
        ))
    return AnnualReport(year=year, months=tuple(months))


def available_years(
    transactions: Iterable[Transaction],
    current_year: int,
    zone: Optional[tzinfo],
) -> list[int]:
    """
    Years a period picker should offer, newest first.

    Spans from last year (or the earliest transaction) to two years ahead
    (or the latest transaction).
    """
    years = [periods.to_local(t.timestamp, zone).year for t in transactions]
    low = min([current_year - 1, *years])
    high = max([current_year + 2, *years])
    return list(range(high, low - 1, -1))


def dashboard(
    all_transactions: Sequence[Transaction],
    categories: Sequence[Category],
    window: periods.Window,
    zone: Optional[tzinfo],
    top_n: int = DEFAULT_TOP_N,
) -> DashboardView:
    """
    Build the overview for a month or an explicit range.

    Comparison is only defined for a calendar month; for an explicit range
    it is None.
    """
    selected = periods.select(all_transactions, window, zone)
    current = totals(selected)

    comparison = None
    if not isinstance(window, DateRange):
        comparison = compare_periods(all_transactions, window, zone, current=current)

    return DashboardView(
        period=window,
        transactions=selected,
        totals=current,
        comparison=comparison,
        top_expenses=top_expenses(selected, categories, limit=top_n),
    )
