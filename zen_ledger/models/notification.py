"""
Notification Models

Every ledger mutation produces a short user-facing notification.
The presentation layer decides how to show them; the engine only emits.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationSeverity(str, Enum):
    """How prominently a notification should be shown."""
    INFO = "info"
    WARN = "warn"


class NotificationKind(str, Enum):
    """What triggered the notification."""
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Budgets
    BUDGET_UPDATED = "budget_updated"
    BUDGET_EXCEEDED = "budget_exceeded"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Automated postings
    RECURRING_POSTED = "recurring_posted"
    RECONCILIATION_POSTED = "reconciliation_posted"

    # External services
    EXTRACTION_FAILED = "extraction_failed"


class Notification(BaseModel):
    """A single user-facing notification event."""
    model_config = ConfigDict(frozen=True)

    kind: NotificationKind
    message: str = Field(..., max_length=500)
    severity: NotificationSeverity = NotificationSeverity.INFO
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="How long the sink should wait before showing this"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "delay_seconds": self.delay_seconds,
            "details": self.details,
        }


class NotificationBuilder:
    """
    Helper class to build notifications with the standard wording.

    Usage:
        note = NotificationBuilder.transaction_added(transaction_id)
        note = NotificationBuilder.budget_exceeded("Shopping", spent, cap, 0.5)
    """

    @staticmethod
    def transaction_added(transaction_id: str) -> Notification:
        return Notification(
            kind=NotificationKind.TRANSACTION_ADDED,
            message="Record added",
            details={"transaction_id": transaction_id},
        )

    @staticmethod
    def transaction_updated(transaction_id: str) -> Notification:
        return Notification(
            kind=NotificationKind.TRANSACTION_UPDATED,
            message="Record updated",
            details={"transaction_id": transaction_id},
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> Notification:
        return Notification(
            kind=NotificationKind.TRANSACTION_DELETED,
            message="Record deleted",
            details={"transaction_id": transaction_id},
        )

    @staticmethod
    def budget_updated(category_id: str, amount: Decimal) -> Notification:
        return Notification(
            kind=NotificationKind.BUDGET_UPDATED,
            message="Budget updated",
            details={"category_id": category_id, "amount": str(amount)},
        )

    @staticmethod
    def budget_exceeded(
        category_name: Optional[str],
        spent: Decimal,
        budget_amount: Decimal,
        delay_seconds: float,
    ) -> Notification:
        return Notification(
            kind=NotificationKind.BUDGET_EXCEEDED,
            severity=NotificationSeverity.WARN,
            message=f"Warning: Budget exceeded for {category_name}!",
            delay_seconds=delay_seconds,
            details={
                "spent": str(spent),
                "budget_amount": str(budget_amount),
            },
        )

    @staticmethod
    def category_created(category_id: str) -> Notification:
        return Notification(
            kind=NotificationKind.CATEGORY_CREATED,
            message="Label created",
            details={"category_id": category_id},
        )

    @staticmethod
    def category_updated(category_id: str) -> Notification:
        return Notification(
            kind=NotificationKind.CATEGORY_UPDATED,
            message="Label updated",
            details={"category_id": category_id},
        )

    @staticmethod
    def category_deleted(category_id: str) -> Notification:
        return Notification(
            kind=NotificationKind.CATEGORY_DELETED,
            message="Label deleted",
            details={"category_id": category_id},
        )

    @staticmethod
    def recurring_posted(period_key: str, count: int) -> Notification:
        return Notification(
            kind=NotificationKind.RECURRING_POSTED,
            message=f"Posted {count} monthly recurring commitments",
            details={"period": period_key, "count": count},
        )

    @staticmethod
    def reconciliation_posted(count: int, receipt_date: str) -> Notification:
        return Notification(
            kind=NotificationKind.RECONCILIATION_POSTED,
            message=f"Imported {count} receipt items",
            details={"count": count, "date": receipt_date},
        )

    @staticmethod
    def extraction_failed(error_message: str) -> Notification:
        return Notification(
            kind=NotificationKind.EXTRACTION_FAILED,
            severity=NotificationSeverity.WARN,
            message="Could not read the receipt. Please try again or enter items manually.",
            details={"error": error_message},
        )
