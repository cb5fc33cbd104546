"""Tests for the entity store and the storage backends."""

import json
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from zen_ledger.models import Budget, Category, Transaction, TransactionType
from zen_ledger.services.storage import (
    BUDGETS_SLOT,
    CATEGORIES_SLOT,
    PROCESSED_PERIODS_SLOT,
    TRANSACTIONS_SLOT,
    InMemoryBackend,
    JsonFileBackend,
    StorageError,
)
from zen_ledger.store import LedgerStore, new_id


def make_transaction(amount="10", category_id="3", type=TransactionType.EXPENSE):
    return Transaction(
        id=new_id(),
        amount=Decimal(amount),
        category_id=category_id,
        type=type,
        timestamp=datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc),
    )


class FailingBackend(InMemoryBackend):
    """In-memory backend whose writes can be switched off."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail = False

    def write_slots(self, payloads):
        if self.fail:
            raise StorageError("disk full")
        super().write_slots(payloads)


class TestLoading:
    """Tests for LedgerStore.load()."""

    def test_empty_backend_loads_defaults(self):
        """Test absent slots fall back to defaults."""
        store = LedgerStore(InMemoryBackend())
        store.load()
        assert store.transactions == ()
        assert len(store.categories) == 11
        assert len(store.budgets) == 8
        assert store.processed_periods == ()

    def test_default_budget_amount_is_configurable(self):
        """Test the seeded budget cap."""
        store = LedgerStore(InMemoryBackend(), default_budget_amount=Decimal("250"))
        store.load()
        assert all(b.amount == Decimal("250") for b in store.budgets)

    def test_malformed_slot_falls_back(self):
        """Test invalid JSON and non-list content are treated as absent."""
        backend = InMemoryBackend({
            TRANSACTIONS_SLOT: "{not json",
            CATEGORIES_SLOT: '{"id": "1"}',
            PROCESSED_PERIODS_SLOT: "42",
        })
        store = LedgerStore(backend)
        store.load()
        assert store.transactions == ()
        assert len(store.categories) == 11
        assert store.processed_periods == ()

    def test_invalid_items_are_skipped(self):
        """Test one bad record does not discard the whole slot."""
        good = make_transaction().model_dump(mode="json", by_alias=True)
        backend = InMemoryBackend({
            TRANSACTIONS_SLOT: json.dumps([good, {"id": "x", "amount": "abc"}]),
        })
        store = LedgerStore(backend)
        store.load()
        assert len(store.transactions) == 1
        assert store.transactions[0].id == good["id"]

    def test_empty_category_list_is_kept(self):
        """Test an explicitly empty list is not replaced by defaults."""
        store = LedgerStore(InMemoryBackend({CATEGORIES_SLOT: "[]"}))
        store.load()
        assert store.categories == ()

    def test_duplicate_periods_and_budgets_are_collapsed(self):
        """Test loading dedupes period keys and per-category budgets."""
        backend = InMemoryBackend({
            PROCESSED_PERIODS_SLOT: json.dumps(["2024-3", "2024-3", "2024-4"]),
            BUDGETS_SLOT: json.dumps([
                {"categoryId": "1", "amount": "100"},
                {"categoryId": "1", "amount": "300"},
            ]),
        })
        store = LedgerStore(backend)
        store.load()
        assert store.processed_periods == ("2024-3", "2024-4")
        assert store.budgets == (Budget(category_id="1", amount=Decimal("300")),)


class TestMutations:
    """Tests for store mutation methods."""

    def test_add_transaction_prepends_and_persists(self):
        """Test new transactions go to the front of the log."""
        backend = InMemoryBackend()
        store = LedgerStore(backend)
        store.load()
        first = make_transaction("1")
        second = make_transaction("2")
        store.add_transaction(first)
        store.add_transaction(second)
        assert store.transactions == (second, first)
        saved = json.loads(backend.read_slot(TRANSACTIONS_SLOT))
        assert [t["id"] for t in saved] == [second.id, first.id]

    def test_replace_and_remove_unknown_id(self):
        """Test edits and deletes of unknown ids report False."""
        store = LedgerStore(InMemoryBackend())
        store.load()
        assert not store.replace_transaction(make_transaction())
        assert not store.remove_transaction("missing")

    def test_upsert_budget_replaces_in_place(self):
        """Test at most one budget per category."""
        store = LedgerStore(InMemoryBackend())
        store.load()
        store.upsert_budget(Budget(category_id="1", amount=Decimal("900")))
        matching = [b for b in store.budgets if b.category_id == "1"]
        assert matching == [Budget(category_id="1", amount=Decimal("900"))]
        assert len(store.budgets) == 8

    def test_remove_category_cascades_budget(self):
        """Test deleting a category deletes its budget but not its transactions."""
        store = LedgerStore(InMemoryBackend())
        store.load()
        store.add_transaction(make_transaction(category_id="1"))
        assert store.remove_category("1")
        assert store.get_category("1") is None
        assert store.get_budget("1") is None
        assert len(store.transactions) == 1

    def test_failed_write_keeps_memory_state(self):
        """Test ordinary persistence failures are logged, not raised."""
        backend = FailingBackend()
        store = LedgerStore(backend)
        store.load()
        backend.fail = True
        store.add_transaction(make_transaction())
        assert len(store.transactions) == 1
        assert backend.read_slot(TRANSACTIONS_SLOT) is None


class TestMarkPeriodProcessed:
    """Tests for the combined postings + period key write."""

    def test_writes_postings_and_key_together(self):
        """Test both slots land in a single backend write."""
        backend = InMemoryBackend()
        store = LedgerStore(backend)
        store.load()
        posting = make_transaction("900", category_id="1")
        store.mark_period_processed("2024-3", [posting])
        assert backend.write_count == 1
        assert json.loads(backend.read_slot(PROCESSED_PERIODS_SLOT)) == ["2024-3"]
        assert len(json.loads(backend.read_slot(TRANSACTIONS_SLOT))) == 1

    def test_failure_rolls_back(self):
        """Test a failed combined write leaves no trace in memory."""
        backend = FailingBackend()
        store = LedgerStore(backend)
        store.load()
        backend.fail = True
        with pytest.raises(StorageError):
            store.mark_period_processed("2024-3", [make_transaction()])
        assert store.transactions == ()
        assert not store.is_processed("2024-3")

    def test_already_processed_is_noop(self):
        """Test marking twice does not duplicate anything."""
        backend = InMemoryBackend()
        store = LedgerStore(backend)
        store.load()
        store.mark_period_processed("2024-3", [make_transaction()])
        store.mark_period_processed("2024-3", [make_transaction()])
        assert len(store.transactions) == 1
        assert store.processed_periods == ("2024-3",)


class TestJsonFileBackend:
    """Tests for the JSON file backend."""

    def test_round_trip(self, tmp_path):
        """Test state written by one store is read back by another."""
        store = LedgerStore(JsonFileBackend(tmp_path))
        store.load()
        t = make_transaction("42.10")
        store.add_transaction(t)
        store.add_category(Category(
            id="rent", name="Rent", type="expense",
            is_recurring=True, recurring_amount=Decimal("900"),
        ))

        reloaded = LedgerStore(JsonFileBackend(tmp_path))
        reloaded.load()
        assert [x.model_dump() for x in reloaded.transactions] == [t.model_dump()]
        rent = reloaded.get_category("rent")
        assert rent.is_recurring
        assert rent.recurring_amount == Decimal("900")

    def test_missing_file_reads_none(self, tmp_path):
        """Test an unwritten slot reads as None."""
        assert JsonFileBackend(tmp_path).read_slot(TRANSACTIONS_SLOT) is None

    def test_creates_data_dir(self, tmp_path):
        """Test the data directory is created on first write."""
        backend = JsonFileBackend(tmp_path / "nested" / "data")
        backend.write_slots({BUDGETS_SLOT: "[]"})
        document = json.loads((tmp_path / "nested" / "data" / "ledger.json").read_text())
        assert document == {BUDGETS_SLOT: "[]"}

    def test_writes_merge_into_one_file(self, tmp_path):
        """Test slots share one document and no temp files are left."""
        backend = JsonFileBackend(tmp_path)
        backend.write_slots({TRANSACTIONS_SLOT: "[1]", PROCESSED_PERIODS_SLOT: "[]"})
        backend.write_slot(BUDGETS_SLOT, "[2]")

        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]
        assert backend.read_slot(TRANSACTIONS_SLOT) == "[1]"
        assert backend.read_slot(BUDGETS_SLOT) == "[2]"
        assert backend.read_slot(CATEGORIES_SLOT) is None

    def test_failed_rename_keeps_previous_state(self, tmp_path, monkeypatch):
        """Test a failed multi-slot write leaves every slot as it was."""
        backend = JsonFileBackend(tmp_path)
        backend.write_slots({TRANSACTIONS_SLOT: "[]", PROCESSED_PERIODS_SLOT: "[]"})

        def fail_replace(src, dst):
            raise OSError("device busy")

        monkeypatch.setattr("zen_ledger.services.storage.json_file.os.replace", fail_replace)
        with pytest.raises(StorageError):
            backend.write_slots({TRANSACTIONS_SLOT: "[1]", PROCESSED_PERIODS_SLOT: '["2024-3"]'})
        monkeypatch.undo()

        assert backend.read_slot(TRANSACTIONS_SLOT) == "[]"
        assert backend.read_slot(PROCESSED_PERIODS_SLOT) == "[]"
        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]

    def test_unknown_slot_rejected(self, tmp_path):
        """Test writes to unknown slots fail before touching disk."""
        with pytest.raises(StorageError):
            JsonFileBackend(tmp_path).write_slots({"accounts": "[]"})
        assert list(tmp_path.iterdir()) == []

    def test_malformed_slot_falls_back(self, tmp_path):
        """Test a corrupted slot loads as defaults."""
        (tmp_path / "ledger.json").write_text(
            json.dumps({CATEGORIES_SLOT: "not json"}), encoding="utf-8"
        )
        store = LedgerStore(JsonFileBackend(tmp_path))
        store.load()
        assert len(store.categories) == 11

    @pytest.mark.parametrize("content", [
        b"[\xff\xfe garbage",
        b"not json",
        b"[1, 2, 3]",
    ])
    def test_unreadable_file_falls_back(self, tmp_path, content):
        """Test undecodable or non-object files load as defaults."""
        (tmp_path / "ledger.json").write_bytes(content)
        backend = JsonFileBackend(tmp_path)
        with pytest.raises(StorageError):
            backend.read_slot(TRANSACTIONS_SLOT)

        store = LedgerStore(backend)
        store.load()
        assert store.transactions == ()
        assert len(store.categories) == 11

    def test_write_replaces_unreadable_file(self, tmp_path):
        """Test the next write starts a fresh document."""
        (tmp_path / "ledger.json").write_bytes(b"\xff\xfe")
        backend = JsonFileBackend(tmp_path)
        backend.write_slot(BUDGETS_SLOT, "[]")
        assert backend.read_slot(BUDGETS_SLOT) == "[]"


class FakeSheet:
    """Stands in for a gspread worksheet."""

    def __init__(self, rows):
        self.rows = [list(r) for r in rows]
        self.updates = 0

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def update(self, range_name, values, raw):
        self.rows = [list(r) for r in values]
        self.updates += 1


class FakeSheetsClient:
    def __init__(self, sheet):
        self.sheet = sheet

    def get_state_sheet(self):
        return self.sheet


class TestGoogleSheetsBackend:
    """Tests for the Sheets backend with a fake worksheet."""

    def test_read_and_batch_write(self):
        """Test slots are read by row and written in a single update."""
        from zen_ledger.services.storage.google_sheets import GoogleSheetsBackend

        sheet = FakeSheet([
            ["slot", "payload", "updated_at"],
            ["budgets", '[{"categoryId": "1", "amount": "10"}]', "2024-03-01"],
        ])
        backend = GoogleSheetsBackend(FakeSheetsClient(sheet))

        assert backend.read_slot(BUDGETS_SLOT).startswith("[")
        assert backend.read_slot(TRANSACTIONS_SLOT) is None

        backend.write_slots({TRANSACTIONS_SLOT: "[]", PROCESSED_PERIODS_SLOT: '["2024-3"]'})

        assert sheet.updates == 1
        assert [row[0] for row in sheet.rows] == [
            "slot", "transactions", "budgets", "processed_periods",
        ]
        assert backend.read_slot(PROCESSED_PERIODS_SLOT) == '["2024-3"]'

    def test_store_on_sheets(self):
        """Test a store round trip through the Sheets backend."""
        from zen_ledger.services.storage.google_sheets import GoogleSheetsBackend

        backend = GoogleSheetsBackend(FakeSheetsClient(FakeSheet([["slot", "payload", "updated_at"]])))
        store = LedgerStore(backend)
        store.load()
        store.add_transaction(make_transaction("3"))

        reloaded = LedgerStore(backend)
        reloaded.load()
        assert len(reloaded.transactions) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
