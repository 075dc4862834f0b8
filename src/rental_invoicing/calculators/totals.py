"""Invoice totals calculator.

Single source of truth for subtotal, tax and total-due computation. The
persistence path, the audit endpoint and the renderer all call it, so the
stored row, the API response and the rendered document agree.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from rental_invoicing.calculators.numeric import (
    ZERO,
    round_to_cents,
    safe_parse_number,
)
from rental_invoicing.calculators.types import InvoiceTotals

logger = logging.getLogger(__name__)

ONE = Decimal("1")
CONSISTENCY_TOLERANCE = Decimal("0.01")


def _field(source: Any, name: str, default: Any = None) -> Any:
    """Read a field from a mapping or an attribute-style object."""
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


class InvoiceCalculator:
    """Pure invoice arithmetic.

    Formulas:
    - line_total = quantity * rate * days - item_discount
    - service_total = amount - discount
    - invoice_subtotal = equipment_subtotal + transport - transport_discount + services_total
    - total_due = invoice_subtotal + vat_amount

    Discounts are not clamped: an over-discounted line or service yields a
    negative total.
    """

    @staticmethod
    def calculate_line_total(
        quantity: Any,
        rate: Any,
        days: Any,
        discount: Any = None,
    ) -> Decimal:
        """Calculate one line total. Quantity and days default to 1, rate and discount to 0."""
        qty = safe_parse_number(quantity, fallback=ONE)
        unit_rate = safe_parse_number(rate)
        rental_days = safe_parse_number(days, fallback=ONE)
        item_discount = safe_parse_number(discount)
        return qty * unit_rate * rental_days - item_discount

    @staticmethod
    def calculate_item_total(item: Any) -> Decimal:
        """Calculate a line total from a mapping or object with line fields."""
        days = _field(item, "rental_days")
        if days is None:
            days = _field(item, "days")
        return InvoiceCalculator.calculate_line_total(
            _field(item, "quantity"),
            _field(item, "rate"),
            days,
            _field(item, "item_discount_amount"),
        )

    @staticmethod
    def calculate_equipment_subtotal(items: Iterable[Any] | None) -> Decimal:
        """Sum line totals for all items."""
        if not items:
            return ZERO
        total = ZERO
        for item in items:
            total += InvoiceCalculator.calculate_item_total(item)
        return total

    @staticmethod
    def calculate_service_total(service: Any) -> Decimal:
        """Net amount of one service (amount - discount)."""
        amount = safe_parse_number(_field(service, "amount"))
        discount = safe_parse_number(_field(service, "discount"))
        return amount - discount

    @staticmethod
    def calculate_services_total(services: Iterable[Any] | None) -> Decimal:
        """Sum of (amount - discount) over services. None or empty gives 0."""
        if not services:
            return ZERO
        total = ZERO
        for service in services:
            total += InvoiceCalculator.calculate_service_total(service)
        return total

    @staticmethod
    def calculate_tax(invoice_subtotal: Decimal, tax_rate: Any) -> Decimal:
        """Tax on the invoice subtotal, rounded to cents."""
        return round_to_cents(invoice_subtotal * safe_parse_number(tax_rate))

    @staticmethod
    def calculate_invoice_subtotal(
        equipment_subtotal: Decimal,
        transport_amount: Decimal,
        transport_discount: Decimal,
        services_total: Decimal,
    ) -> Decimal:
        return equipment_subtotal + transport_amount - transport_discount + services_total

    @staticmethod
    def calculate_invoice_totals(invoice: Any) -> InvoiceTotals:
        """Compute all invoice totals from stored or submitted values.

        Args:
            invoice: Mapping or object exposing equipment_subtotal,
                transport_amount, transport_discount, vat_amount and services.

        Returns:
            InvoiceTotals where total_due is exactly
            equipment_subtotal + transport_amount - transport_discount
            + services_total + vat_amount.
        """
        equipment_subtotal = safe_parse_number(_field(invoice, "equipment_subtotal"))
        transport_amount = safe_parse_number(_field(invoice, "transport_amount"))
        transport_discount = safe_parse_number(_field(invoice, "transport_discount"))
        vat_amount = safe_parse_number(_field(invoice, "vat_amount"))

        services = _field(invoice, "services")
        if isinstance(services, (str, bytes, Mapping)):
            services = None
        services_total = InvoiceCalculator.calculate_services_total(services)

        invoice_subtotal = InvoiceCalculator.calculate_invoice_subtotal(
            equipment_subtotal, transport_amount, transport_discount, services_total
        )
        total_due = invoice_subtotal + vat_amount

        return InvoiceTotals(
            equipment_subtotal=equipment_subtotal,
            transport_amount=transport_amount,
            transport_discount=transport_discount,
            services_total=services_total,
            invoice_subtotal=invoice_subtotal,
            vat_amount=vat_amount,
            total_due=total_due,
        )

    @staticmethod
    def validate_invoice_calculations(invoice: Any) -> bool:
        """Check the stored total_due against a recomputation.

        Returns True when they differ by less than 0.01. Advisory only:
        callers decide what a False means.
        """
        calculated = InvoiceCalculator.calculate_invoice_totals(invoice)
        stored_total_due = safe_parse_number(_field(invoice, "total_due"))
        difference = abs(calculated.total_due - stored_total_due)
        consistent = difference < CONSISTENCY_TOLERANCE
        if not consistent:
            logger.warning(
                "Invoice %s total_due mismatch: stored=%s calculated=%s",
                _field(invoice, "invoice_number", "<unsaved>"),
                stored_total_due,
                calculated.total_due,
            )
        return consistent


def rental_days_between(start: date | datetime, end: date | datetime) -> int:
    """Rental days between two dates, rounded up, minimum 1."""
    delta = abs(end - start)
    days = math.ceil(delta.total_seconds() / 86400)
    return max(1, days)


# Module-level aliases for the calculator's public operations
calculate_line_total = InvoiceCalculator.calculate_line_total
calculate_services_total = InvoiceCalculator.calculate_services_total
calculate_invoice_totals = InvoiceCalculator.calculate_invoice_totals
validate_invoice_calculations = InvoiceCalculator.validate_invoice_calculations
