"""Tests for the recurring commitment poster."""

import pytest
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from zen_ledger.engine import RecurringPoster
from zen_ledger.models import Category, NotificationKind, TransactionType
from zen_ledger.notifications import NotificationCenter
from zen_ledger.services.storage import (
    CATEGORIES_SLOT,
    InMemoryBackend,
    JsonFileBackend,
    StorageError,
)
from zen_ledger.store import LedgerStore


BERLIN = ZoneInfo("Europe/Berlin")
NOW = datetime(2024, 3, 15, 10, 0, tzinfo=BERLIN)


def make_store(categories, backend=None):
    backend = backend or InMemoryBackend()
    store = LedgerStore(backend)
    store.load()
    for category in categories:
        store.add_category(category)
    return store


def rent(amount="900"):
    return Category(
        id="rent", name="Rent", type="expense",
        is_recurring=True, recurring_amount=Decimal(amount),
    )


def salary():
    return Category(
        id="pay", name="Payroll", type="income",
        is_recurring=True, recurring_amount=Decimal("3000"),
    )


class TestRecurringPoster:
    """Tests for once-per-month posting."""

    def test_posts_each_recurring_category(self):
        """Test one posting per qualifying category, on the 1st at 09:00 local."""
        store = make_store([rent(), salary()])
        run = RecurringPoster(store, BERLIN).run(NOW)

        assert run.period_key == "2024-3"
        assert not run.already_processed
        assert len(run.postings) == 2

        posting = next(p for p in run.postings if p.category_id == "rent")
        assert posting.amount == Decimal("900")
        assert posting.type == TransactionType.EXPENSE
        assert posting.note == "Auto-post: Rent Commitment"
        local = posting.timestamp.astimezone(BERLIN)
        assert (local.day, local.hour, local.minute) == (1, 9, 0)

        income = next(p for p in run.postings if p.category_id == "pay")
        assert income.type == TransactionType.INCOME

    def test_idempotent_across_runs(self):
        """Test running N times in one month posts exactly once."""
        store = make_store([rent()])
        poster = RecurringPoster(store, BERLIN)
        for _ in range(5):
            poster.run(NOW)
        assert len(store.transactions) == 1
        assert store.processed_periods == ("2024-3",)

    def test_idempotent_across_restarts(self):
        """Test a reloaded store does not post the month again."""
        backend = InMemoryBackend()
        store = make_store([rent()], backend)
        RecurringPoster(store, BERLIN).run(NOW)

        reloaded = LedgerStore(backend)
        reloaded.load()
        run = RecurringPoster(reloaded, BERLIN).run(NOW)
        assert run.already_processed
        assert len(reloaded.transactions) == 1

    def test_processed_month_is_frozen(self):
        """Test toggling a category later in the month posts nothing."""
        store = make_store([])
        poster = RecurringPoster(store, BERLIN)
        poster.run(NOW)
        store.add_category(rent())
        run = poster.run(NOW)
        assert run.already_processed
        assert store.transactions == ()

    def test_next_month_posts_again(self):
        """Test a new month gets its own postings."""
        store = make_store([rent()])
        poster = RecurringPoster(store, BERLIN)
        poster.run(NOW)
        poster.run(datetime(2024, 4, 2, 8, 0, tzinfo=BERLIN))
        assert len(store.transactions) == 2
        assert store.processed_periods == ("2024-3", "2024-4")

    def test_flag_without_amount_is_inert(self):
        """Test recurring categories without a positive amount post nothing."""
        inert = Category(id="gym", name="Gym", type="expense", is_recurring=True)
        store = make_store([inert])
        run = RecurringPoster(store, BERLIN).run(NOW)
        assert run.postings == ()
        assert store.is_processed("2024-3")

    def test_notification_only_when_posting(self):
        """Test a month with no postings emits nothing."""
        center = NotificationCenter()
        RecurringPoster(make_store([]), BERLIN, center).run(NOW)
        assert center.history == ()

        RecurringPoster(make_store([rent()]), BERLIN, center).run(NOW)
        assert [n.kind for n in center.history] == [NotificationKind.RECURRING_POSTED]
        assert center.history[0].message == "Posted 1 monthly recurring commitments"

    def test_month_judged_in_local_zone(self):
        """Test the late-evening UTC instant belongs to the next local month."""
        store = make_store([rent()])
        run = RecurringPoster(store, BERLIN).run(
            datetime(2024, 3, 31, 23, 30, tzinfo=ZoneInfo("UTC"))
        )
        assert run.period_key == "2024-4"

    def test_storage_failure_leaves_month_unprocessed(self):
        """Test a failed dual write records neither postings nor key."""

        class BrokenBackend(InMemoryBackend):
            def write_slots(self, payloads):
                if CATEGORIES_SLOT not in payloads:
                    raise StorageError("unavailable")
                super().write_slots(payloads)

        store = make_store([rent()], BrokenBackend())
        with pytest.raises(StorageError):
            RecurringPoster(store, BERLIN).run(NOW)
        assert store.transactions == ()
        assert not store.is_processed("2024-3")

    def test_failed_file_write_does_not_double_post(self, tmp_path, monkeypatch):
        """Test a failed commit on disk leaves nothing half posted after restart."""
        store = make_store([rent()], JsonFileBackend(tmp_path))

        def fail_replace(src, dst):
            raise OSError("device busy")

        monkeypatch.setattr("zen_ledger.services.storage.json_file.os.replace", fail_replace)
        with pytest.raises(StorageError):
            RecurringPoster(store, BERLIN).run(NOW)
        monkeypatch.undo()

        restarted = LedgerStore(JsonFileBackend(tmp_path))
        restarted.load()
        assert restarted.transactions == ()
        assert restarted.processed_periods == ()

        RecurringPoster(restarted, BERLIN).run(NOW)
        RecurringPoster(restarted, BERLIN).run(NOW)

        final = LedgerStore(JsonFileBackend(tmp_path))
        final.load()
        assert [t.category_id for t in final.transactions] == ["rent"]
        assert final.processed_periods == ("2024-3",)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
