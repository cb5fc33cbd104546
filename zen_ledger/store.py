"""
Entity Store

The single owner of the ledger's four collections:

    transactions, categories, budgets, processed periods

Every other component reads immutable snapshots (tuples of frozen
models). The store is the only writer: each mutation method builds the
new collection, swaps it in, and only then re-serializes the affected
slot(s) to the durable backend.

DESIGN DECISION: Ordinary writes are fire-and-forget. A failed write is
logged and the in-memory state stands; the next successful write of the
same slot re-serializes the whole collection.

The one exception is mark_period_processed(), which persists the
recurring postings and the period key as a single unit and rolls the
in-memory state back if that unit cannot be written.
"""

import json
from decimal import Decimal
from typing import Iterable, Optional, Sequence, TypeVar
from uuid import uuid4

import structlog
from pydantic import BaseModel, ValidationError

from zen_ledger.models.ledger import (
    DEFAULT_CATEGORIES,
    Budget,
    Category,
    Transaction,
    default_budgets,
)
from zen_ledger.services.storage.interface import (
    BUDGETS_SLOT,
    CATEGORIES_SLOT,
    PROCESSED_PERIODS_SLOT,
    TRANSACTIONS_SLOT,
    LedgerBackend,
    StorageError,
)


logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def new_id() -> str:
    """A globally unique opaque identifier."""
    return uuid4().hex


def _dump(models: Iterable[BaseModel]) -> str:
    return json.dumps(
        [m.model_dump(mode="json", by_alias=True, exclude_none=True) for m in models]
    )


class LedgerStore:
    """
    Owns all ledger state and its persistence.

    Call load() once before use; until then every collection is empty.
    """

    def __init__(
        self,
        backend: LedgerBackend,
        default_budget_amount: Decimal = Decimal("500"),
    ):
        self._backend = backend
        self._default_budget_amount = Decimal(str(default_budget_amount))
        self._transactions: tuple[Transaction, ...] = ()
        self._categories: tuple[Category, ...] = ()
        self._budgets: tuple[Budget, ...] = ()
        self._processed_periods: tuple[str, ...] = ()

    # =========================================================================
    # LOADING
    # =========================================================================

    def load(self) -> None:
        """Read all four slots, falling back to empty/defaults on bad content."""
        self._transactions = self._load_models(TRANSACTIONS_SLOT, Transaction, ())
        self._categories = self._load_models(
            CATEGORIES_SLOT, Category, DEFAULT_CATEGORIES
        )
        self._budgets = self._dedupe_budgets(self._load_models(
            BUDGETS_SLOT, Budget, default_budgets(self._default_budget_amount)
        ))
        self._processed_periods = self._load_periods()

        logger.info(
            "ledger_loaded",
            transactions=len(self._transactions),
            categories=len(self._categories),
            budgets=len(self._budgets),
            processed_periods=len(self._processed_periods),
        )

    def _read_json(self, slot: str):
        """Parsed slot content, or None when absent, unreadable or not a list."""
        try:
            raw = self._backend.read_slot(slot)
        except StorageError as e:
            logger.warning("slot_read_failed", slot=slot, error=str(e))
            return None
        if raw is None or not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("slot_malformed", slot=slot, error=str(e))
            return None
        if not isinstance(data, list):
            logger.warning("slot_malformed", slot=slot, error="expected a JSON array")
            return None
        return data

    def _load_models(
        self,
        slot: str,
        model: type[M],
        default: Sequence[M],
    ) -> tuple[M, ...]:
        data = self._read_json(slot)
        if data is None:
            return tuple(default)

        loaded = []
        for index, item in enumerate(data):
            try:
                loaded.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "slot_item_skipped",
                    slot=slot,
                    index=index,
                    errors=e.error_count(),
                )
        return tuple(loaded)

    def _load_periods(self) -> tuple[str, ...]:
        data = self._read_json(PROCESSED_PERIODS_SLOT)
        if data is None:
            return ()
        seen: dict[str, None] = {}
        for key in data:
            if isinstance(key, str) and key:
                seen.setdefault(key, None)
        return tuple(seen)

    @staticmethod
    def _dedupe_budgets(budgets: Sequence[Budget]) -> tuple[Budget, ...]:
        """Keep the last budget stored for each category."""
        by_category: dict[str, Budget] = {}
        for budget in budgets:
            by_category.pop(budget.category_id, None)
            by_category[budget.category_id] = budget
        return tuple(by_category.values())

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """All transactions, newest postings first."""
        return self._transactions

    @property
    def categories(self) -> tuple[Category, ...]:
        return self._categories

    @property
    def budgets(self) -> tuple[Budget, ...]:
        return self._budgets

    @property
    def processed_periods(self) -> tuple[str, ...]:
        return self._processed_periods

    def is_processed(self, period_key: str) -> bool:
        return period_key in self._processed_periods

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self._transactions if t.id == transaction_id), None)

    def get_category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self._categories if c.id == category_id), None)

    def get_budget(self, category_id: str) -> Optional[Budget]:
        return next((b for b in self._budgets if b.category_id == category_id), None)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _payload(self, slot: str) -> str:
        if slot == TRANSACTIONS_SLOT:
            return _dump(self._transactions)
        if slot == CATEGORIES_SLOT:
            return _dump(self._categories)
        if slot == BUDGETS_SLOT:
            return _dump(self._budgets)
        return json.dumps(list(self._processed_periods))

    def _persist(self, *slots: str) -> None:
        """Fire-and-forget write of the given slots."""
        try:
            self._backend.write_slots({slot: self._payload(slot) for slot in slots})
        except StorageError as e:
            logger.error("persist_failed", slots=list(slots), error=str(e))

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_transaction(self, transaction: Transaction) -> None:
        """Prepend a transaction to the log."""
        self._transactions = (transaction, *self._transactions)
        self._persist(TRANSACTIONS_SLOT)

    def replace_transaction(self, transaction: Transaction) -> bool:
        """Swap in an edited transaction by id. False if the id is unknown."""
        if self.get_transaction(transaction.id) is None:
            return False
        self._transactions = tuple(
            transaction if t.id == transaction.id else t
            for t in self._transactions
        )
        self._persist(TRANSACTIONS_SLOT)
        return True

    def remove_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction by id. False if the id is unknown."""
        remaining = tuple(t for t in self._transactions if t.id != transaction_id)
        if len(remaining) == len(self._transactions):
            return False
        self._transactions = remaining
        self._persist(TRANSACTIONS_SLOT)
        return True

    def upsert_budget(self, budget: Budget) -> None:
        """Set a category's budget, replacing an existing one in place."""
        if self.get_budget(budget.category_id) is None:
            self._budgets = (*self._budgets, budget)
        else:
            self._budgets = tuple(
                budget if b.category_id == budget.category_id else b
                for b in self._budgets
            )
        self._persist(BUDGETS_SLOT)

    def add_category(self, category: Category) -> None:
        self._categories = (*self._categories, category)
        self._persist(CATEGORIES_SLOT)

    def replace_category(self, category: Category) -> bool:
        """Swap in an edited category by id. False if the id is unknown."""
        if self.get_category(category.id) is None:
            return False
        self._categories = tuple(
            category if c.id == category.id else c
            for c in self._categories
        )
        self._persist(CATEGORIES_SLOT)
        return True

    def remove_category(self, category_id: str) -> bool:
        """
        Delete a category together with its budget.

        Transactions referencing the category are left untouched.
        """
        remaining = tuple(c for c in self._categories if c.id != category_id)
        if len(remaining) == len(self._categories):
            return False
        self._categories = remaining
        self._budgets = tuple(b for b in self._budgets if b.category_id != category_id)
        self._persist(CATEGORIES_SLOT, BUDGETS_SLOT)
        return True

    def mark_period_processed(
        self,
        period_key: str,
        postings: Sequence[Transaction] = (),
    ) -> None:
        """
        Record a month as processed, prepending its recurring postings.

        The postings and the period key are written as one unit. If that
        write fails the in-memory state is restored and StorageError is
        raised, so neither half is ever persisted alone.
        """
        if self.is_processed(period_key):
            return

        previous = (self._transactions, self._processed_periods)
        self._transactions = (*postings, *self._transactions)
        self._processed_periods = (*self._processed_periods, period_key)

        slots = [PROCESSED_PERIODS_SLOT]
        if postings:
            slots.insert(0, TRANSACTIONS_SLOT)
        try:
            self._backend.write_slots({slot: self._payload(slot) for slot in slots})
        except StorageError:
            self._transactions, self._processed_periods = previous
            raise
