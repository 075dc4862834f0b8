"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class AssignmentRole(str, Enum):
    """Invoice-level commission roles."""

    ORGANIZER = "organizer"
    SETUP = "setup"


class RateSource(str, Enum):
    """Where a line item's rate came from."""

    CATALOG = "catalog"
    MANUAL = "manual"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class InvoiceTotals:
    """Computed money figures for one invoice."""

    equipment_subtotal: Decimal
    transport_amount: Decimal
    transport_discount: Decimal
    services_total: Decimal
    invoice_subtotal: Decimal
    vat_amount: Decimal
    total_due: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "equipment_subtotal": self.equipment_subtotal,
            "transport_amount": self.transport_amount,
            "transport_discount": self.transport_discount,
            "services_total": self.services_total,
            "invoice_subtotal": self.invoice_subtotal,
            "vat_amount": self.vat_amount,
            "total_due": self.total_due,
        }


@dataclass
class LineCandidate:
    """A resolved line item before persistence."""

    equipment_id: UUID | None
    equipment_name: str
    quantity: int
    rate: Decimal
    rental_days: int
    item_discount_amount: Decimal
    rate_source: RateSource
    line_total: Decimal


@dataclass(frozen=True)
class CommissionShare:
    """Commission computed for one assignment."""

    role: str | None
    commission_percentage: Decimal
    base_amount: Decimal
    commission_amount: Decimal
