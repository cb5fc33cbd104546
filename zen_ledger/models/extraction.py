"""
Receipt Extraction Models

CRITICAL: Everything in here is PROPOSED data, NOT verified.
The extraction service returns untrusted JSON; these models hold the
normalized form of it until the user commits the draft.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class ExtractedItem(BaseModel):
    """One line item read off a receipt. Mutable until committed."""
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    amount: Decimal = Field(default=Decimal("0"), ge=0)
    note: str = Field(default="")
    category_id: str = Field(default="", alias="categoryId")


class ExtractionResult(BaseModel):
    """Normalized output of one extraction call."""

    extraction_id: UUID = Field(
        default_factory=uuid4,
        description="Unique ID for this extraction attempt"
    )
    receipt_date: date = Field(
        ...,
        description="Date printed on the receipt, shared by every item"
    )
    items: list[ExtractedItem] = Field(default_factory=list)


class CategoryOption(BaseModel):
    """An expense category offered to the extraction model."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
