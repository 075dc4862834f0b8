"""Structured drafts produced by the invoice scanner."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rental_invoicing.calculators.numeric import ZERO, safe_parse_int

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d.%m.%Y", "%Y/%m/%d", "%m-%d-%Y")


class PriceSource(str, Enum):
    DATABASE = "database"
    DEFAULT = "default"


class MatchConfidence(str, Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"


def parse_loose_date(value: Any) -> date | None:
    """Parse the date shapes vision and OCR output produce; None when unrecognized."""
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


class ExtractedEquipmentLine(BaseModel):
    """Equipment as written on the slip. Never carries a price."""

    model_config = ConfigDict(extra="ignore")

    equipment_name: str = ""
    quantity: int = 1

    @field_validator("equipment_name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str:
        return str(value).strip() if value is not None else ""

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, value: Any) -> int:
        return max(1, safe_parse_int(value, fallback=1))


class ExtractedInvoiceDraft(BaseModel):
    """Invoice fields extracted from a rental slip image or OCR text.

    Every field has a default so partial extractions still validate.
    """

    model_config = ConfigDict(extra="ignore")

    customer_name: str = ""
    phone_number: str = ""
    rental_start_date: date | None = None
    rental_duration_days: int = 1
    notes: str = ""
    equipment: list[ExtractedEquipmentLine] = Field(default_factory=list)

    @field_validator("customer_name", "phone_number", "notes", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return str(value).strip() if value is not None else ""

    @field_validator("rental_start_date", mode="before")
    @classmethod
    def _start_date(cls, value: Any) -> date | None:
        return parse_loose_date(value)

    @field_validator("rental_duration_days", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> int:
        return max(1, safe_parse_int(value, fallback=1))

    @field_validator("equipment", mode="before")
    @classmethod
    def _equipment(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, ExtractedEquipmentLine))]


class ResolvedEquipmentLine(BaseModel):
    """Extracted line after catalog matching."""

    equipment_id: UUID | None = None
    equipment_name: str
    description: str = ""
    daily_rate: Decimal = ZERO
    quantity: int = 1
    extracted_name: str
    price_source: PriceSource
    match_confidence: MatchConfidence


class ResolvedInvoiceDraft(BaseModel):
    """Draft ready to prefill an invoice form."""

    customer_name: str = ""
    phone_number: str = ""
    rental_start_date: date | None = None
    rental_duration_days: int = 1
    notes: str = ""
    equipment: list[ResolvedEquipmentLine] = Field(default_factory=list)

    @property
    def unmatched_count(self) -> int:
        return sum(1 for e in self.equipment if e.match_confidence == MatchConfidence.NO_MATCH)
