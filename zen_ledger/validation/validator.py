"""
Write Validation

Every ledger write is checked BEFORE any state changes. A write with at
least one error-level issue is rejected as a whole.

Checks:
- Amounts must parse as a number and be greater than zero
- A transaction's category must exist
- On creation, a transaction's type must match its category's type
- Budgets need a positive cap for an existing category
- Categories need a non-empty name

IMPORTANT: Validation NEVER silently fixes issues. It reports them; the
caller decides whether to raise.

Edits are deliberately not type-checked against the category: an edited
transaction may drift from its category's type.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Sequence

from zen_ledger.models.extraction import ExtractedItem
from zen_ledger.models.ledger import (
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from zen_ledger.store import LedgerStore


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationRejectedError(LedgerError):
    """A write failed validation; nothing was changed."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(messages or "Validation failed")


def parse_amount(value: Any) -> Optional[Decimal]:
    """A finite Decimal for numeric input, None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


class LedgerValidator:
    """Validates proposed writes against the store's current snapshot."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def _check_amount(
        self,
        amount: Any,
        field: str = "amount",
    ) -> list[ValidationIssue]:
        parsed = parse_amount(amount)
        if parsed is None:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"Amount ({amount!r}) is not a number",
            )]
        if parsed <= 0:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            )]
        return []

    def validate_transaction(
        self,
        amount: Any,
        category_id: Optional[str],
        type: TransactionType,
        creating: bool = True,
    ) -> ValidationResult:
        """
        Check a transaction write.

        Args:
            amount: Proposed amount (any numeric representation)
            category_id: Proposed category
            type: Proposed transaction type
            creating: True for a new transaction; edits skip the type check

        Returns:
            ValidationResult with all issues found
        """
        issues = self._check_amount(amount)

        if not category_id:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="missing",
                message="A category is required",
            ))
            return ValidationResult(issues=issues)

        category = self._store.get_category(category_id)
        if category is None:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_reference",
                message=f"Category {category_id} does not exist",
            ))
        elif creating and category.type != type:
            issues.append(ValidationIssue(
                field="type",
                issue_type="type_mismatch",
                message=(
                    f"Category {category.name} is for {category.type.value} "
                    f"records, not {TransactionType(type).value}"
                ),
            ))

        return ValidationResult(issues=issues)

    def validate_budget(self, category_id: str, amount: Any) -> ValidationResult:
        issues = self._check_amount(amount)
        if self._store.get_category(category_id) is None:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_reference",
                message=f"Category {category_id} does not exist",
            ))
        return ValidationResult(issues=issues)

    def validate_category(
        self,
        name: Optional[str],
        is_recurring: bool = False,
        recurring_amount: Any = None,
    ) -> ValidationResult:
        issues = []
        if not name or not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Category name cannot be empty",
            ))

        if recurring_amount is not None:
            parsed = parse_amount(recurring_amount)
            if parsed is None or parsed < 0:
                issues.append(ValidationIssue(
                    field="recurring_amount",
                    issue_type="invalid_value",
                    message="Recurring amount must be a non-negative number",
                ))
        elif is_recurring:
            # Allowed, but nothing will be posted until an amount is set
            issues.append(ValidationIssue(
                field="recurring_amount",
                issue_type="missing",
                message="Recurring category has no monthly amount",
                severity="warning",
            ))

        return ValidationResult(issues=issues)

    def validate_receipt_items(
        self,
        items: Sequence[ExtractedItem],
        expense_category_ids: Iterable[str],
    ) -> ValidationResult:
        """Check every item of a reconciliation draft before any is written."""
        allowed = set(expense_category_ids)
        issues = []
        if not items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="empty",
                message="There are no receipt items to import",
            ))

        for index, item in enumerate(items):
            issues.extend(self._check_amount(item.amount, field=f"items[{index}].amount"))
            if item.category_id not in allowed:
                issues.append(ValidationIssue(
                    field=f"items[{index}].category_id",
                    issue_type="unknown_reference",
                    message=(
                        f"Item {index + 1} ({item.note or 'no note'}) needs an "
                        f"expense category"
                    ),
                ))

        return ValidationResult(issues=issues)

    @staticmethod
    def raise_for(result: ValidationResult) -> None:
        """Raise ValidationRejectedError if the result has errors."""
        if result.has_errors:
            raise ValidationRejectedError(result)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Short text summary of a validation result.

        This is what the presentation layer shows next to a rejected form.
        """
        if not result.issues:
            return "All checks passed."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        warnings = [i for i in result.issues if i.severity == "warning"]

        if errors:
            lines.append("This record could not be saved:")
            for issue in errors:
                lines.append(f"   • {issue.message}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("Please note:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
