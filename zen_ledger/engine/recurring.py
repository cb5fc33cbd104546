"""
Recurring Commitment Poster

Materializes one transaction per recurring category for the current
calendar month, at most once per month.

State per month key ("YYYY-M"):

    Unprocessed --(first run inside that month)--> Processed

Once a key is in ProcessedPeriods the month is frozen: running again,
restarting the process or toggling a category's recurring flag never
posts (or un-posts) anything for that month. A month with no recurring
categories is still marked, as "checked, nothing to post".

CRITICAL: The postings and the period key are persisted as one unit by
LedgerStore.mark_period_processed(). There is no code path that writes
one without the other.
"""

from datetime import datetime, time, tzinfo
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from zen_ledger.engine import period as periods
from zen_ledger.models.ledger import Category, MonthPeriod, Transaction
from zen_ledger.models.notification import NotificationBuilder
from zen_ledger.notifications import NotificationCenter
from zen_ledger.store import LedgerStore, new_id


logger = structlog.get_logger(__name__)

POSTING_TIME = time(9, 0, 0)


class RecurringRun(BaseModel):
    """What one invocation of the poster did."""
    model_config = ConfigDict(frozen=True)

    period_key: str
    already_processed: bool
    postings: tuple[Transaction, ...] = ()


def commitment_note(category: Category) -> str:
    return f"Auto-post: {category.name} Commitment"


def build_postings(
    categories: tuple[Category, ...],
    month: MonthPeriod,
    zone: Optional[tzinfo],
) -> tuple[Transaction, ...]:
    """One transaction per qualifying category, dated the 1st at 09:00 local."""
    timestamp = periods.local_instant(month.first_day, POSTING_TIME, zone)
    return tuple(
        Transaction(
            id=new_id(),
            amount=category.recurring_amount,
            category_id=category.id,
            type=category.type,
            note=commitment_note(category),
            timestamp=timestamp,
        )
        for category in categories
        if category.posts_monthly
    )


class RecurringPoster:
    """Posts the current month's recurring commitments exactly once."""

    def __init__(
        self,
        store: LedgerStore,
        zone: Optional[tzinfo] = None,
        notifications: Optional[NotificationCenter] = None,
    ):
        self._store = store
        self._zone = zone
        self._notifications = notifications

    def run(self, now: Optional[datetime] = None) -> RecurringRun:
        """
        Catch up the month containing `now` (default: the current instant).

        Raises:
            StorageError: If the postings and period key could not be
                persisted together; nothing is recorded in that case
        """
        now = now or periods.local_now(self._zone)
        month = periods.month_of(now, self._zone)

        if self._store.is_processed(month.key):
            return RecurringRun(period_key=month.key, already_processed=True)

        postings = build_postings(self._store.categories, month, self._zone)
        self._store.mark_period_processed(month.key, postings)

        logger.info("recurring_period_processed", period=month.key, postings=len(postings))

        if postings and self._notifications:
            self._notifications.emit(
                NotificationBuilder.recurring_posted(month.key, len(postings))
            )

        return RecurringRun(
            period_key=month.key,
            already_processed=False,
            postings=postings,
        )
