"""
Reconciliation Importer

Turns the line items read off a receipt into expense transactions.

Flow:
1. normalize_extraction(): untrusted extractor JSON -> ExtractionResult
2. ReconciliationDraft: the user edits items (amount, note, category),
   adds or removes lines and may override the shared date
3. ReconciliationImporter.commit(): validates the WHOLE draft, then
   posts each item through the ledger's normal add path, in order

Every item in a batch gets the same timestamp: noon local time on the
receipt date. Items are added one at a time so the budget check of a
later item sees the earlier items of the same batch.

IMPORTANT: Normalization never raises. Anything unusable is coerced to
an empty or zero value and left for the user (and commit validation)
to deal with.
"""

from datetime import date, datetime, time, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional, Sequence

import structlog

from zen_ledger.engine import period as periods
from zen_ledger.models.extraction import CategoryOption, ExtractedItem, ExtractionResult
from zen_ledger.models.ledger import Category, Transaction, TransactionType
from zen_ledger.models.notification import NotificationBuilder
from zen_ledger.notifications import NotificationCenter
from zen_ledger.validation import LedgerValidator, parse_amount


logger = structlog.get_logger(__name__)

RECEIPT_TIME = time(12, 0, 0)

DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d", "%d.%m.%Y"]

# (amount, category_id, note, timestamp) -> the committed transaction
AddExpense = Callable[[Decimal, str, str, datetime], Transaction]


# =============================================================================
# NORMALIZATION
# =============================================================================

def safe_date(value: Any) -> Optional[date]:
    """A calendar date from a date, datetime or date(-time) string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    # Drop a trailing time part ("2024-03-05 14:22", "05/03/2024T09:00")
    head = text.replace("T", " ").split(" ")[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(head, fmt).date()
        except ValueError:
            continue
    return None


def safe_amount(value: Any) -> Decimal:
    """A non-negative amount rounded to cents; zero when unusable."""
    amount = parse_amount(value)
    if amount is None or amount < 0:
        return Decimal("0")
    try:
        return amount.quantize(Decimal("0.01"))
    except InvalidOperation:
        # More digits than cent precision can hold
        logger.warning("extraction_amount_out_of_range", amount=str(amount))
        return Decimal("0")


def normalize_extraction(raw: Any, today: date) -> ExtractionResult:
    """
    Coerce an untrusted extraction payload into an ExtractionResult.

    - Missing or unreadable date -> today
    - Date with a time component -> just the date
    - Missing or non-list items -> no items
    - Non-object items are dropped
    - Non-numeric or negative amounts -> 0 (kept so the user can fix them)
    """
    if not isinstance(raw, dict):
        logger.warning("extraction_payload_malformed", payload_type=type(raw).__name__)
        raw = {}

    receipt_date = safe_date(raw.get("date")) or today

    raw_items = raw.get("items")
    if not isinstance(raw_items, list):
        raw_items = []

    items = []
    for index, entry in enumerate(raw_items):
        if not isinstance(entry, dict):
            logger.warning("extraction_item_dropped", index=index)
            continue
        category_id = entry.get("categoryId", entry.get("category_id"))
        note = entry.get("note")
        items.append(ExtractedItem(
            amount=safe_amount(entry.get("amount")),
            note=str(note) if note is not None else "",
            category_id=str(category_id) if category_id is not None else "",
        ))

    return ExtractionResult(receipt_date=receipt_date, items=items)


def expense_options(categories: Iterable[Category]) -> list[CategoryOption]:
    """The expense categories offered to the extractor."""
    return [
        CategoryOption(id=c.id, name=c.name)
        for c in categories
        if c.type == TransactionType.EXPENSE
    ]


# =============================================================================
# DRAFT
# =============================================================================

def _item_field(name: str) -> str:
    """Attribute name of an ExtractedItem field given its name or alias."""
    for field_name, info in ExtractedItem.model_fields.items():
        if name in (field_name, info.alias):
            return field_name
    raise ValueError(f"Unknown receipt item field: {name}")


class ReconciliationDraft:
    """
    Editable, uncommitted receipt items.

    A draft never touches the store; only ReconciliationImporter.commit()
    does.
    """

    def __init__(self, extraction: ExtractionResult):
        self.extraction_id = extraction.extraction_id
        self.receipt_date: date = extraction.receipt_date
        self._items: list[ExtractedItem] = [
            item.model_copy() for item in extraction.items
        ]

    @property
    def items(self) -> tuple[ExtractedItem, ...]:
        return tuple(self._items)

    @property
    def total(self) -> Decimal:
        return sum((item.amount for item in self._items), Decimal("0"))

    def add_item(
        self,
        amount: Any = Decimal("0"),
        note: str = "",
        category_id: str = "",
    ) -> ExtractedItem:
        item = ExtractedItem(amount=amount, note=note, category_id=category_id)
        self._items.append(item)
        return item

    def update_item(self, index: int, **changes: Any) -> ExtractedItem:
        """
        Change fields of one item (amount, note, category_id).

        Fields may be named by attribute or by alias (categoryId).

        Raises:
            IndexError: If there is no item at `index`
            ValueError: If a field name is unknown
            pydantic.ValidationError: If a new value is invalid
        """
        item = self._items[index]
        for name, value in changes.items():
            setattr(item, _item_field(name), value)
        return item

    def remove_item(self, index: int) -> ExtractedItem:
        return self._items.pop(index)

    def override_date(self, day: date) -> None:
        self.receipt_date = day

    def unresolved_items(
        self,
        expense_categories: Iterable[CategoryOption],
    ) -> list[tuple[int, ExtractedItem]]:
        """Items whose category is not one of the available expense categories."""
        allowed = {c.id for c in expense_categories}
        return [
            (index, item)
            for index, item in enumerate(self._items)
            if item.category_id not in allowed
        ]


# =============================================================================
# IMPORTER
# =============================================================================

class ReconciliationImporter:
    """Commits receipt items as expense transactions."""

    def __init__(
        self,
        validator: LedgerValidator,
        add_expense: AddExpense,
        zone: Optional[tzinfo] = None,
        notifications: Optional[NotificationCenter] = None,
    ):
        self._validator = validator
        self._add_expense = add_expense
        self._zone = zone
        self._notifications = notifications

    def timestamp_for(self, day: date) -> datetime:
        """Shared timestamp of a batch: noon local time on the receipt date."""
        return periods.local_instant(day, RECEIPT_TIME, self._zone)

    def merge(
        self,
        items: Sequence[ExtractedItem],
        override_date: date,
        expense_categories: Iterable[CategoryOption],
    ) -> list[Transaction]:
        """
        Post every item as an expense on `override_date`.

        Raises:
            ValidationRejectedError: If any item is invalid; nothing is posted
        """
        result = self._validator.validate_receipt_items(
            items, [c.id for c in expense_categories]
        )
        self._validator.raise_for(result)

        timestamp = self.timestamp_for(override_date)
        committed = [
            self._add_expense(item.amount, item.category_id, item.note, timestamp)
            for item in items
        ]

        logger.info(
            "reconciliation_committed",
            items=len(committed),
            receipt_date=override_date.isoformat(),
        )
        if self._notifications:
            self._notifications.emit(NotificationBuilder.reconciliation_posted(
                len(committed), override_date.isoformat()
            ))
        return committed

    def commit(
        self,
        draft: ReconciliationDraft,
        expense_categories: Iterable[CategoryOption],
    ) -> list[Transaction]:
        return self.merge(draft.items, draft.receipt_date, expense_categories)
