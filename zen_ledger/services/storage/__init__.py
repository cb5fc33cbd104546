"""
Storage Services Package

Provides the abstract slot-store interface and its implementations.
JSON files are the default backend; Google Sheets and in-memory storage
are drop-in replacements.
"""

from zen_ledger.services.storage.interface import (
    ALL_SLOTS,
    BUDGETS_SLOT,
    CATEGORIES_SLOT,
    PROCESSED_PERIODS_SLOT,
    TRANSACTIONS_SLOT,
    ConnectionError,
    LedgerBackend,
    StorageError,
)
from zen_ledger.services.storage.json_file import JsonFileBackend
from zen_ledger.services.storage.memory import InMemoryBackend

__all__ = [
    # Interface
    "ALL_SLOTS",
    "BUDGETS_SLOT",
    "CATEGORIES_SLOT",
    "PROCESSED_PERIODS_SLOT",
    "TRANSACTIONS_SLOT",
    "LedgerBackend",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Implementations
    "InMemoryBackend",
    "JsonFileBackend",
]
