"""Receipt extraction and spending insights (Gemini)."""

from zen_ledger.services.extraction.gemini_service import (
    ExtractionError,
    ExtractionFailedError,
    GeminiReceiptExtractor,
    InsightsAgent,
)

__all__ = [
    "ExtractionError",
    "ExtractionFailedError",
    "GeminiReceiptExtractor",
    "InsightsAgent",
]
