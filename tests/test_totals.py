"""Unit tests for InvoiceCalculator.

Covers line, service and invoice totals plus the consistency check.
"""

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from hypothesis import given, strategies as st

from rental_invoicing.calculators.totals import (
    InvoiceCalculator,
    calculate_invoice_totals,
    calculate_line_total,
    calculate_services_total,
    rental_days_between,
    validate_invoice_calculations,
)

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestLineTotal:
    """quantity * rate * days - discount."""

    def test_line_with_discount(self):
        assert calculate_line_total(2, Decimal("25.50"), 3, Decimal("10")) == Decimal("143.00")

    def test_missing_quantity_and_days_default_to_one(self):
        assert calculate_line_total(None, "40", "", None) == Decimal("40")

    def test_unparseable_rate_is_zero(self):
        assert calculate_line_total(3, "call us", 2) == Decimal("0")

    def test_over_discount_goes_negative(self):
        """Discounts are not clamped."""
        assert calculate_line_total(1, 10, 1, 25) == Decimal("-15")

    def test_item_total_accepts_days_alias(self):
        item = {"quantity": 2, "rate": "10", "days": 3}
        assert InvoiceCalculator.calculate_item_total(item) == Decimal("60")

    def test_equipment_subtotal_from_objects(self):
        items = [
            SimpleNamespace(quantity=2, rate=Decimal("50"), rental_days=2, item_discount_amount=0),
            SimpleNamespace(quantity=1, rate=Decimal("15"), rental_days=1, item_discount_amount=5),
        ]
        assert InvoiceCalculator.calculate_equipment_subtotal(items) == Decimal("210")

    def test_equipment_subtotal_empty(self):
        assert InvoiceCalculator.calculate_equipment_subtotal(None) == Decimal("0")
        assert InvoiceCalculator.calculate_equipment_subtotal([]) == Decimal("0")


class TestServicesTotal:
    def test_empty_or_none_is_zero(self):
        assert calculate_services_total(None) == Decimal("0")
        assert calculate_services_total([]) == Decimal("0")

    def test_sum_of_amount_minus_discount(self):
        services = [
            {"amount": "100", "discount": "10"},
            {"amount": 50},
            {"amount": "x", "discount": "5"},
        ]
        assert calculate_services_total(services) == Decimal("135")

    @given(st.lists(st.tuples(money, money), max_size=8))
    def test_matches_sum_property(self, pairs):
        services = [{"amount": a, "discount": d} for a, d in pairs]
        assert calculate_services_total(services) == sum((a - d for a, d in pairs), Decimal("0"))


class TestInvoiceTotals:
    """Subtotal and total-due identities."""

    def test_worked_scenario(self):
        invoice = {
            "equipment_subtotal": "200",
            "transport_amount": "50",
            "transport_discount": "10",
            "services": [{"amount": "30", "discount": "5"}],
            "vat_amount": "0",
        }
        totals = calculate_invoice_totals(invoice)
        assert totals.services_total == Decimal("25")
        assert totals.invoice_subtotal == Decimal("265")
        assert totals.total_due == Decimal("265.00")

    def test_missing_fields_are_zero(self):
        totals = calculate_invoice_totals({})
        assert totals.total_due == Decimal("0")
        assert totals.services_total == Decimal("0")

    def test_services_not_a_list_are_ignored(self):
        totals = calculate_invoice_totals({"equipment_subtotal": 10, "services": "oops"})
        assert totals.services_total == Decimal("0")
        assert totals.total_due == Decimal("10")

    @given(money, money, money, st.lists(st.tuples(money, money), max_size=5), money)
    def test_total_due_identity(self, equipment, transport, transport_discount, services, vat):
        invoice = SimpleNamespace(
            equipment_subtotal=equipment,
            transport_amount=transport,
            transport_discount=transport_discount,
            services=[{"amount": a, "discount": d} for a, d in services],
            vat_amount=vat,
        )
        totals = calculate_invoice_totals(invoice)
        services_total = sum((a - d for a, d in services), Decimal("0"))
        assert totals.services_total == services_total
        assert totals.total_due == (
            equipment + transport - transport_discount + services_total + vat
        )
        assert totals.total_due == totals.invoice_subtotal + totals.vat_amount

    def test_tax_is_rounded_to_cents(self):
        assert InvoiceCalculator.calculate_tax(Decimal("99.99"), "0.15") == Decimal("15.00")
        assert InvoiceCalculator.calculate_tax(Decimal("10.03"), Decimal("0.15")) == Decimal("1.50")


class TestValidateInvoiceCalculations:
    def _invoice(self, total_due):
        return {
            "invoice_number": "INV-000001-001",
            "equipment_subtotal": "200",
            "transport_amount": "50",
            "transport_discount": "10",
            "services": [{"amount": "30", "discount": "5"}],
            "vat_amount": "0",
            "total_due": total_due,
        }

    def test_exact_total_is_consistent(self):
        assert validate_invoice_calculations(self._invoice("265.00")) is True

    def test_off_by_two_cents_is_inconsistent(self, caplog):
        assert validate_invoice_calculations(self._invoice("265.02")) is False
        assert "mismatch" in caplog.text

    def test_sub_cent_difference_is_tolerated(self):
        assert validate_invoice_calculations(self._invoice("265.005")) is True


class TestRentalDaysBetween:
    def test_same_day_is_one(self):
        assert rental_days_between(date(2025, 1, 5), date(2025, 1, 5)) == 1

    def test_whole_days(self):
        assert rental_days_between(date(2025, 1, 5), date(2025, 1, 8)) == 3

    def test_partial_day_rounds_up(self):
        start = datetime(2025, 1, 5, 9, 0)
        end = datetime(2025, 1, 6, 10, 0)
        assert rental_days_between(start, end) == 2
