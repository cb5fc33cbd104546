"""
Period Filter

Selects the transactions that belong to a calendar month or to an
explicit range of days. Month membership and day boundaries are judged
in the ledger's local zone, not in UTC.

The local zone is either a named IANA zone or None, meaning the host's
own local time (resolved per instant, so DST changes are honoured).

Explicit ranges are inclusive on both ends: a range from D1 to D2 covers
D1 00:00:00 through D2 23:59:59.999999 local time.
"""

from datetime import date, datetime, time, tzinfo
from typing import Iterable, Optional, Union
from zoneinfo import ZoneInfo

from zen_ledger.models.ledger import DateRange, MonthPeriod, Transaction


Window = Union[MonthPeriod, DateRange]


def resolve_zone(name: Optional[str] = None) -> Optional[tzinfo]:
    """The named IANA zone, or None for the host's local zone."""
    return ZoneInfo(name) if name else None


def to_local(instant: datetime, zone: Optional[tzinfo]) -> datetime:
    return instant.astimezone(zone)


def local_now(zone: Optional[tzinfo]) -> datetime:
    return datetime.now().astimezone(zone)


def month_of(instant: datetime, zone: Optional[tzinfo]) -> MonthPeriod:
    """The calendar month an instant falls in, in local time."""
    local = to_local(instant, zone)
    return MonthPeriod(year=local.year, month=local.month)


def local_instant(day: date, at: time, zone: Optional[tzinfo]) -> datetime:
    """An aware datetime for a wall-clock time on a local calendar day."""
    if zone is None:
        return datetime.combine(day, at).astimezone()
    return datetime.combine(day, at, tzinfo=zone)


def range_bounds(window: DateRange, zone: Optional[tzinfo]) -> tuple[datetime, datetime]:
    """Start of the first day and end of the last day, local time."""
    return (
        local_instant(window.start, time.min, zone),
        local_instant(window.end, time.max, zone),
    )


def in_month(transaction: Transaction, period: MonthPeriod, zone: Optional[tzinfo]) -> bool:
    return period.contains_date(to_local(transaction.timestamp, zone).date())


def select(
    transactions: Iterable[Transaction],
    window: Window,
    zone: Optional[tzinfo],
) -> tuple[Transaction, ...]:
    """Transactions inside the window, in log order."""
    if isinstance(window, DateRange):
        start, end = range_bounds(window, zone)
        return tuple(t for t in transactions if start <= t.timestamp <= end)
    return tuple(t for t in transactions if in_month(t, window, zone))
