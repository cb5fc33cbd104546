"""
Ledger Orchestrator

Ties the store, the engine and the external services together behind one
facade, and defines the end-to-end flows:

1. Manual write: validate -> budget check -> commit -> notify
2. Startup: load state -> catch up recurring commitments
3. Receipt: scan (async) -> draft -> user edits -> commit as one batch

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written that failed validation
- Budget checks run before the write and only ever warn
- Receipt items are drafts until commit() is called explicitly
- External-service failures become one warning, never a partial batch
"""

from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import structlog

from zen_ledger.config import LedgerSettings, get_settings
from zen_ledger.engine import aggregator
from zen_ledger.engine import period as periods
from zen_ledger.engine.budgets import BudgetEvaluator
from zen_ledger.engine.reconciliation import (
    ReconciliationDraft,
    ReconciliationImporter,
    expense_options,
)
from zen_ledger.engine.recurring import RecurringPoster, RecurringRun
from zen_ledger.models.extraction import CategoryOption, ExtractedItem
from zen_ledger.models.ledger import (
    DEFAULT_CATEGORY_COLOR,
    DEFAULT_CATEGORY_ICON,
    Budget,
    Category,
    MonthPeriod,
    Transaction,
    TransactionType,
)
from zen_ledger.models.notification import NotificationBuilder
from zen_ledger.models.reports import (
    AnnualReport,
    BudgetEvaluation,
    BudgetStatus,
    DashboardView,
)
from zen_ledger.notifications import NotificationCenter
from zen_ledger.services.extraction import (
    ExtractionError,
    GeminiReceiptExtractor,
    InsightsAgent,
)
from zen_ledger.services.extraction.gemini_service import INSIGHTS_UNAVAILABLE_MESSAGE
from zen_ledger.services.storage import (
    InMemoryBackend,
    JsonFileBackend,
    LedgerBackend,
    StorageError,
)
from zen_ledger.store import LedgerStore, new_id
from zen_ledger.validation import LedgerError, LedgerValidator, parse_amount


logger = structlog.get_logger(__name__)

When = Union[date, datetime, None]


class TransactionNotFoundError(LedgerError):
    """No transaction with the given id."""
    pass


class CategoryNotFoundError(LedgerError):
    """No category with the given id."""
    pass


class Ledger:
    """
    The ledger facade used by the presentation layer.

    All mutations are synchronous and fully applied when they return.
    Scanning a receipt and fetching insights are the only awaitables.
    """

    def __init__(
        self,
        store: LedgerStore,
        zone: Optional[tzinfo] = None,
        notifications: Optional[NotificationCenter] = None,
        extractor: Optional[GeminiReceiptExtractor] = None,
        insights_agent: Optional[InsightsAgent] = None,
        top_n: int = aggregator.DEFAULT_TOP_N,
        budget_warning_delay: float = 0.5,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._zone = zone
        self._notifications = notifications or NotificationCenter()
        self._extractor = extractor
        self._insights_agent = insights_agent
        self._top_n = top_n
        self._budget_warning_delay = budget_warning_delay
        self._clock = clock

        self._validator = LedgerValidator(store)
        self._budgets = BudgetEvaluator(store, zone)
        self._poster = RecurringPoster(store, zone, self._notifications)
        self._importer = ReconciliationImporter(
            self._validator,
            self._add_receipt_item,
            zone,
            self._notifications,
        )

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    @property
    def validator(self) -> LedgerValidator:
        return self._validator

    @property
    def zone(self) -> Optional[tzinfo]:
        return self._zone

    def now(self) -> datetime:
        """The current instant in the ledger's zone."""
        if self._clock is not None:
            return periods.to_local(self._clock(), self._zone)
        return periods.local_now(self._zone)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, now: Optional[datetime] = None) -> Optional[RecurringRun]:
        """Load persisted state and post this month's recurring commitments."""
        self._store.load()
        return self.post_recurring(now)

    def post_recurring(self, now: Optional[datetime] = None) -> Optional[RecurringRun]:
        """
        Run the recurring poster for the month containing `now`.

        A storage failure is logged and leaves the month unprocessed, so the
        next run retries it. Returns None in that case.
        """
        try:
            return self._poster.run(now or self.now())
        except StorageError as e:
            logger.error("recurring_post_failed", error=str(e))
            return None

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def _timestamp(self, when: When) -> datetime:
        """Aware timestamp for a write; dates keep the current local time of day."""
        if when is None:
            return self.now()
        if isinstance(when, datetime):
            if when.tzinfo is None:
                return periods.local_instant(when.date(), when.time(), self._zone)
            return when
        return periods.local_instant(when, self.now().time(), self._zone)

    def _check_budget(
        self,
        transaction: Transaction,
        exclude_transaction_id: Optional[str] = None,
    ) -> Optional[BudgetEvaluation]:
        if transaction.type != TransactionType.EXPENSE:
            return None
        return self._budgets.evaluate_at(
            transaction.category_id,
            transaction.timestamp,
            transaction.amount,
            exclude_transaction_id,
        )

    def _warn_if_over(
        self,
        transaction: Transaction,
        evaluation: Optional[BudgetEvaluation],
    ) -> None:
        if evaluation is None or not evaluation.over_budget:
            return
        category = self._store.get_category(transaction.category_id)
        self._notifications.emit(NotificationBuilder.budget_exceeded(
            category.name if category else None,
            evaluation.spent_including_candidate,
            evaluation.budget_amount,
            self._budget_warning_delay,
        ))

    def add_transaction(
        self,
        amount: Any,
        category_id: str,
        type: TransactionType,
        note: Optional[str] = "",
        when: When = None,
    ) -> Transaction:
        """
        Record a new income or expense.

        Raises:
            ValidationRejectedError: If the write is invalid; nothing changes
        """
        type = TransactionType(type)
        self._validator.raise_for(
            self._validator.validate_transaction(amount, category_id, type, creating=True)
        )

        transaction = Transaction(
            id=new_id(),
            amount=parse_amount(amount),
            category_id=category_id,
            type=type,
            note=note,
            timestamp=self._timestamp(when),
        )
        evaluation = self._check_budget(transaction)

        self._store.add_transaction(transaction)
        self._notifications.emit(NotificationBuilder.transaction_added(transaction.id))
        self._warn_if_over(transaction, evaluation)
        return transaction

    def update_transaction(
        self,
        transaction_id: str,
        amount: Any = None,
        category_id: Optional[str] = None,
        type: Optional[TransactionType] = None,
        note: Optional[str] = None,
        when: When = None,
    ) -> Transaction:
        """
        Edit a transaction; omitted fields keep their current value.

        The budget check excludes the transaction's stored amount.

        Raises:
            TransactionNotFoundError: If the id is unknown
            ValidationRejectedError: If the edit is invalid; nothing changes
        """
        existing = self._store.get_transaction(transaction_id)
        if existing is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")

        amount = existing.amount if amount is None else amount
        category_id = existing.category_id if category_id is None else category_id
        type = existing.type if type is None else TransactionType(type)

        self._validator.raise_for(
            self._validator.validate_transaction(amount, category_id, type, creating=False)
        )

        edited = existing.model_copy(update={
            "amount": parse_amount(amount),
            "category_id": category_id,
            "type": type,
            "note": existing.note if note is None else note,
            "timestamp": existing.timestamp if when is None else self._timestamp(when),
        })
        evaluation = self._check_budget(edited, exclude_transaction_id=transaction_id)

        self._store.replace_transaction(edited)
        self._notifications.emit(NotificationBuilder.transaction_updated(transaction_id))
        self._warn_if_over(edited, evaluation)
        return edited

    def delete_transaction(self, transaction_id: str) -> None:
        if not self._store.remove_transaction(transaction_id):
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        self._notifications.emit(NotificationBuilder.transaction_deleted(transaction_id))

    # =========================================================================
    # BUDGETS & CATEGORIES
    # =========================================================================

    def set_budget(self, category_id: str, amount: Any) -> Budget:
        """Create or replace a category's monthly cap."""
        self._validator.raise_for(self._validator.validate_budget(category_id, amount))
        budget = Budget(category_id=category_id, amount=parse_amount(amount))
        self._store.upsert_budget(budget)
        self._notifications.emit(
            NotificationBuilder.budget_updated(category_id, budget.amount)
        )
        return budget

    def add_category(
        self,
        name: str,
        type: TransactionType,
        icon: str = DEFAULT_CATEGORY_ICON,
        color: str = DEFAULT_CATEGORY_COLOR,
        is_recurring: bool = False,
        recurring_amount: Any = None,
    ) -> Category:
        self._validator.raise_for(
            self._validator.validate_category(name, is_recurring, recurring_amount)
        )
        category = Category(
            id=new_id(),
            name=name.strip(),
            type=TransactionType(type),
            icon=icon,
            color=color,
            is_recurring=is_recurring,
            recurring_amount=parse_amount(recurring_amount),
        )
        self._store.add_category(category)
        self._notifications.emit(NotificationBuilder.category_created(category.id))
        self.post_recurring()
        return category

    def update_category(self, category_id: str, **changes: Any) -> Category:
        """
        Edit a category (name, type, icon, color, is_recurring, recurring_amount).

        Existing transactions keep their category id and type.

        Raises:
            CategoryNotFoundError: If the id is unknown
            ValidationRejectedError: If the edit is invalid; nothing changes
        """
        existing = self._store.get_category(category_id)
        if existing is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")

        values = existing.model_dump()
        values.update(changes)
        values["id"] = category_id
        self._validator.raise_for(self._validator.validate_category(
            values["name"], values["is_recurring"], values["recurring_amount"]
        ))
        values["name"] = values["name"].strip()
        values["recurring_amount"] = parse_amount(values["recurring_amount"])

        category = Category.model_validate(values)
        self._store.replace_category(category)
        self._notifications.emit(NotificationBuilder.category_updated(category_id))
        self.post_recurring()
        return category

    def delete_category(self, category_id: str) -> None:
        """
        Delete a category and its budget.

        Transactions that reference it are kept and reported under the
        sentinel label.
        """
        if not self._store.remove_category(category_id):
            raise CategoryNotFoundError(f"Category {category_id} not found")
        self._notifications.emit(NotificationBuilder.category_deleted(category_id))
        self.post_recurring()

    # =========================================================================
    # VIEWS
    # =========================================================================

    def current_month(self) -> MonthPeriod:
        return periods.month_of(self.now(), self._zone)

    def dashboard(self, window: Optional[periods.Window] = None) -> DashboardView:
        """Overview for a month or explicit range (default: this month)."""
        return aggregator.dashboard(
            self._store.transactions,
            self._store.categories,
            window or self.current_month(),
            self._zone,
            top_n=self._top_n,
        )

    def annual_report(self, year: Optional[int] = None) -> AnnualReport:
        year = year or self.current_month().year
        return aggregator.annual_report(self._store.transactions, year, self._zone)

    def available_years(self) -> list[int]:
        return aggregator.available_years(
            self._store.transactions, self.current_month().year, self._zone
        )

    def budget_statuses(
        self,
        window: Optional[periods.Window] = None,
    ) -> list[BudgetStatus]:
        return self._budgets.statuses(window or self.current_month())

    # =========================================================================
    # RECEIPTS & INSIGHTS
    # =========================================================================

    def expense_categories(self) -> list[CategoryOption]:
        return expense_options(self._store.categories)

    async def scan_receipt(
        self,
        image_bytes: bytes,
        mime_type: str,
    ) -> Optional[ReconciliationDraft]:
        """
        Read a receipt into an editable draft.

        On failure one warning notification is emitted and None is
        returned; nothing is written either way.
        """
        if self._extractor is None:
            self._notifications.emit(
                NotificationBuilder.extraction_failed("Receipt extraction is not configured")
            )
            return None

        try:
            result = await self._extractor.extract(
                image_bytes,
                mime_type,
                self.expense_categories(),
                today=self.now().date(),
            )
        except ExtractionError as e:
            self._notifications.emit(NotificationBuilder.extraction_failed(str(e)))
            return None

        return ReconciliationDraft(result)

    def _add_receipt_item(
        self,
        amount: Decimal,
        category_id: str,
        note: str,
        timestamp: datetime,
    ) -> Transaction:
        return self.add_transaction(
            amount, category_id, TransactionType.EXPENSE, note, when=timestamp
        )

    def commit_reconciliation(self, draft: ReconciliationDraft) -> list[Transaction]:
        """
        Post every draft item as an expense on the draft's date.

        Raises:
            ValidationRejectedError: If any item is invalid; nothing is posted
        """
        return self._importer.commit(draft, self.expense_categories())

    def merge_receipt_items(
        self,
        items: list[ExtractedItem],
        override_date: date,
    ) -> list[Transaction]:
        """commit_reconciliation() without a draft object."""
        return self._importer.merge(items, override_date, self.expense_categories())

    async def insights(self) -> str:
        """Spending advice for the current data; never raises."""
        if self._insights_agent is None:
            return INSIGHTS_UNAVAILABLE_MESSAGE
        return await self._insights_agent.get_financial_insights(
            self._store.transactions,
            self._store.categories,
            self._store.budgets,
        )


def _create_backend(settings: LedgerSettings) -> LedgerBackend:
    if settings.storage_backend == "memory":
        return InMemoryBackend()
    if settings.storage_backend == "sheets":
        # gspread is only imported when the Sheets backend is selected
        from zen_ledger.services.storage.google_sheets import (
            GoogleSheetsBackend,
            GoogleSheetsClient,
        )
        return GoogleSheetsBackend(GoogleSheetsClient())
    return JsonFileBackend(settings.data_dir)


def create_ledger(
    backend: Optional[LedgerBackend] = None,
    notifications: Optional[NotificationCenter] = None,
    extractor: Optional[GeminiReceiptExtractor] = None,
    insights_agent: Optional[InsightsAgent] = None,
    use_gemini: bool = True,
) -> Ledger:
    """
    Factory function to create a ledger from settings.

    Args:
        backend: Storage backend; chosen from LEDGER_STORAGE_BACKEND if None
        notifications: Notification center; a fresh one if None
        extractor: Receipt extractor; built from Gemini settings if None
        insights_agent: Insights agent; built from Gemini settings if None
        use_gemini: Set to False to run without any Gemini services

    Returns:
        A ledger that has not been started yet; call start()
    """
    settings = get_settings().ledger

    if backend is None:
        backend = _create_backend(settings)

    if use_gemini and (extractor is None or insights_agent is None):
        try:
            extractor = extractor or GeminiReceiptExtractor()
            insights_agent = insights_agent or InsightsAgent(
                window=settings.insights_transaction_window
            )
        except Exception as e:
            # Gemini not configured - continue without receipts and insights
            logger.warning("gemini_not_configured", error=str(e))

    store = LedgerStore(
        backend,
        default_budget_amount=Decimal(str(settings.default_budget_amount)),
    )
    return Ledger(
        store,
        zone=periods.resolve_zone(settings.timezone),
        notifications=notifications,
        extractor=extractor,
        insights_agent=insights_agent,
        top_n=settings.top_n_categories,
        budget_warning_delay=settings.budget_warning_delay_seconds,
    )
