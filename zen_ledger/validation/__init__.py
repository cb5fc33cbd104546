"""Write validation for the ledger."""

from zen_ledger.validation.validator import (
    LedgerError,
    LedgerValidator,
    ValidationRejectedError,
    parse_amount,
)

__all__ = [
    "LedgerError",
    "LedgerValidator",
    "ValidationRejectedError",
    "parse_amount",
]
