"""
Abstract Storage Interface

DESIGN DECISION: The durable store is a plain key-value store of four
named slots, each holding one serialized collection:

    transactions, categories, budgets, processed_periods

Backends only move opaque JSON text in and out. Parsing, defaults and
the handling of malformed content live in the entity store, so every
backend behaves the same way when a slot is missing or corrupted.

write_slots() takes several slots at once and MUST apply them as one
unit: either every slot in the call is persisted or none is.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional


TRANSACTIONS_SLOT = "transactions"
CATEGORIES_SLOT = "categories"
BUDGETS_SLOT = "budgets"
PROCESSED_PERIODS_SLOT = "processed_periods"

ALL_SLOTS = (
    TRANSACTIONS_SLOT,
    CATEGORIES_SLOT,
    BUDGETS_SLOT,
    PROCESSED_PERIODS_SLOT,
)


class LedgerBackend(ABC):
    """
    Abstract interface for durable ledger storage.

    Any storage implementation (JSON files, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    def read_slot(self, slot: str) -> Optional[str]:
        """
        Read the raw serialized content of a slot.

        Args:
            slot: One of ALL_SLOTS

        Returns:
            The stored text, or None if the slot has never been written

        Raises:
            StorageError: If the backend cannot be read at all
        """
        pass

    @abstractmethod
    def write_slots(self, payloads: Mapping[str, str]) -> None:
        """
        Persist one or more slots as a single unit.

        Args:
            payloads: Mapping of slot name to serialized content

        Raises:
            StorageError: If the write fails (nothing was persisted)
        """
        pass

    def write_slot(self, slot: str, payload: str) -> None:
        """Persist a single slot."""
        self.write_slots({slot: payload})


def check_slots(payloads: Mapping[str, str]) -> None:
    """Reject slot names outside ALL_SLOTS."""
    unknown = set(payloads) - set(ALL_SLOTS)
    if unknown:
        raise StorageError(f"Unknown storage slot(s): {', '.join(sorted(unknown))}")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
