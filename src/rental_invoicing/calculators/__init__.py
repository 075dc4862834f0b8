"""Invoice and commission calculators."""

from rental_invoicing.calculators.commission import CommissionCalculator
from rental_invoicing.calculators.numeric import round_to_cents, safe_parse_int, safe_parse_number
from rental_invoicing.calculators.totals import (
    InvoiceCalculator,
    calculate_invoice_totals,
    calculate_line_total,
    calculate_services_total,
    rental_days_between,
    validate_invoice_calculations,
)
from rental_invoicing.calculators.types import InvoiceTotals

__all__ = [
    "CommissionCalculator",
    "InvoiceCalculator",
    "InvoiceTotals",
    "calculate_invoice_totals",
    "calculate_line_total",
    "calculate_services_total",
    "rental_days_between",
    "round_to_cents",
    "safe_parse_int",
    "safe_parse_number",
    "validate_invoice_calculations",
]
