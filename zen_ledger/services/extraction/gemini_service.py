"""
Gemini Receipt Extraction and Spending Insights

Two narrow uses of the LLM:

1. RECEIPT EXTRACTOR:
   - CAN: Read line items (amount, note) off a receipt image
   - CAN: Propose one of the given expense categories per item
   - CANNOT: Write anything; its output is a draft the user must commit
   - No retry: a failed call is reported once and the user rescans

2. INSIGHTS AGENT:
   - CAN: Turn recent transactions and budgets into a short piece of advice
   - NEVER raises; a failure becomes a fixed fallback sentence

The LLM is a READER, not a BOOKKEEPER. Every amount it returns is
normalized and validated before it can reach the ledger.
"""

import json
from datetime import date
from typing import Any, Optional, Sequence

import google.generativeai as genai
import structlog

from zen_ledger.config import get_settings
from zen_ledger.engine.reconciliation import normalize_extraction
from zen_ledger.models.extraction import CategoryOption, ExtractionResult
from zen_ledger.models.ledger import Budget, Category, Transaction


logger = structlog.get_logger(__name__)

NO_TRANSACTIONS_MESSAGE = "Add some transactions to get AI-powered insights!"
EMPTY_INSIGHT_MESSAGE = "I'm analyzing your spending... Stay tuned for insights!"
INSIGHTS_UNAVAILABLE_MESSAGE = (
    "Insights are currently unavailable, but your progress looks great!"
)

INSIGHTS_SYSTEM_INSTRUCTION = (
    "You are a friendly personal finance expert. Provide concise, encouraging, "
    "and helpful advice based on the user's spending habits. If they are under "
    "budget, praise them. If over, suggest one small way to save."
)


class ExtractionError(Exception):
    """Base exception for receipt extraction errors."""
    pass


class ExtractionFailedError(ExtractionError):
    """The extraction call or its response could not be used."""
    pass


def _extract_json(text: str) -> Any:
    """Parse the JSON object in a model response, tolerating code fences."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in model response")
    return json.loads(text[start:end])


class GeminiReceiptExtractor:
    """
    Reads receipt line items with a multimodal Gemini model.

    Pass `model` to use an already-built client (or a test double) instead
    of configuring one from GeminiSettings.
    """

    def __init__(self, model: Optional[Any] = None):
        if model is not None:
            self._model = model
        else:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    def _build_prompt(self, categories: Sequence[CategoryOption]) -> str:
        category_lines = "\n".join(f'- "{c.id}": {c.name}' for c in categories)
        return f"""You are reading a shopping receipt for a personal finance ledger.

List every purchased line item on the receipt with its final price.

Available expense categories (id: name):
{category_lines}

Respond with ONLY a JSON object in this exact format:
{{"date": "YYYY-MM-DD", "items": [{{"amount": 12.5, "note": "short item description", "categoryId": "id"}}]}}

Rules:
- "date" is the purchase date printed on the receipt
- "amount" is a positive number without currency symbols
- "categoryId" MUST be one of the ids listed above
- Do not include totals, subtotals, tax lines or payment lines as items"""

    async def extract(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: Sequence[CategoryOption],
        today: Optional[date] = None,
    ) -> ExtractionResult:
        """
        Extract receipt items from an image.

        Args:
            image_bytes: Raw image content
            mime_type: Image MIME type (e.g. image/jpeg)
            categories: Expense categories the model may assign
            today: Fallback date when the receipt has none

        Returns:
            Normalized ExtractionResult (a draft, not yet committed)

        Raises:
            ExtractionFailedError: If the call fails or returns no usable JSON
        """
        prompt = self._build_prompt(categories)
        try:
            response = await self._model.generate_content_async([
                prompt,
                {"mime_type": mime_type, "data": image_bytes},
            ])
            payload = _extract_json(response.text.strip())
            result = normalize_extraction(payload, today or date.today())
        except Exception as e:
            logger.warning("receipt_extraction_failed", error=str(e))
            raise ExtractionFailedError(f"Could not read receipt: {e}") from e

        logger.info(
            "receipt_extracted",
            extraction_id=str(result.extraction_id),
            items=len(result.items),
            receipt_date=result.receipt_date.isoformat(),
        )
        return result


class InsightsAgent:
    """
    Short, friendly spending advice from recent activity.

    Only the data passed in is summarized for the model.
    """

    def __init__(self, model: Optional[Any] = None, window: int = 20):
        self._window = window
        if model is not None:
            self._model = model
        else:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=settings.model_name,
            system_instruction=INSIGHTS_SYSTEM_INSTRUCTION,
            generation_config={
                "temperature": settings.insights_temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    def _build_prompt(
        self,
        transactions: Sequence[Transaction],
        categories: Sequence[Category],
        budgets: Sequence[Budget],
    ) -> str:
        names = {c.id: c.name for c in categories}
        recent = sorted(transactions, key=lambda t: t.timestamp, reverse=True)
        summary = [
            {
                "amount": str(t.amount),
                "type": t.type.value,
                "category": names.get(t.category_id, "Unknown"),
                "date": t.timestamp.date().isoformat(),
            }
            for t in recent[:self._window]
        ]
        budget_summary = [
            {"category": names.get(b.category_id, "Unknown"), "limit": str(b.amount)}
            for b in budgets
        ]
        return (
            "Based on my recent financial activity, provide a short (max 150 words), "
            "friendly, and actionable insight.\n"
            f"Transactions: {json.dumps(summary)}\n"
            f"Budgets: {json.dumps(budget_summary)}"
        )

    async def get_financial_insights(
        self,
        transactions: Sequence[Transaction],
        categories: Sequence[Category],
        budgets: Sequence[Budget],
    ) -> str:
        """Advice text; never raises."""
        if not transactions:
            return NO_TRANSACTIONS_MESSAGE

        prompt = self._build_prompt(transactions, categories, budgets)
        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning("insights_failed", error=str(e))
            return INSIGHTS_UNAVAILABLE_MESSAGE

        return text or EMPTY_INSIGHT_MESSAGE
