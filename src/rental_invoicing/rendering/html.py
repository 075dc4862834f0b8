"""HTML rendering of invoices through Jinja2 templates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from rental_invoicing.calculators.numeric import ZERO, round_to_cents
from rental_invoicing.calculators.totals import InvoiceCalculator
from rental_invoicing.rendering.formatters import Formatters
from rental_invoicing.rendering.template_config import TemplateConfig

if TYPE_CHECKING:
    from rental_invoicing.models import Invoice

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
INVOICE_TEMPLATE = "invoice.html.j2"


@dataclass
class ItemView:
    equipment_name: str
    quantity: int
    rental_days: int
    rate: Decimal
    item_discount_amount: Decimal = ZERO
    description: str = ""

    @property
    def line_total(self) -> Decimal:
        return InvoiceCalculator.calculate_item_total(self)


@dataclass
class ServiceView:
    name: str
    amount: Decimal
    discount: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return InvoiceCalculator.calculate_service_total(self)


@dataclass
class InvoiceView:
    """Everything the invoice template displays.

    Exposes the attributes InvoiceCalculator reads, so the rendered totals
    come from the same computation as the stored ones.
    """

    invoice_number: str
    issued_on: date
    customer_name: str
    rental_start_date: date
    rental_duration_days: int = 1
    customer_phone: str = ""
    customer_email: str = ""
    customer_address: str = ""
    items: list[ItemView] = field(default_factory=list)
    services: list[ServiceView] = field(default_factory=list)
    transport_amount: Decimal = ZERO
    transport_discount: Decimal = ZERO
    vat_amount: Decimal = ZERO
    status: str = "unpaid"
    notes: str = ""

    @property
    def equipment_subtotal(self) -> Decimal:
        return InvoiceCalculator.calculate_equipment_subtotal(self.items)

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> InvoiceView:
        """Build a view from a fully loaded invoice row."""
        customer = invoice.customer
        return cls(
            invoice_number=invoice.invoice_number,
            issued_on=invoice.created_at.date() if invoice.created_at else date.today(),
            customer_name=customer.name if customer else "",
            customer_phone=(customer.phone or "") if customer else "",
            customer_email=(customer.email or "") if customer else "",
            customer_address=(customer.address or "") if customer else "",
            rental_start_date=invoice.rental_start_date,
            rental_duration_days=invoice.rental_duration_days,
            items=[
                ItemView(
                    equipment_name=item.equipment_name,
                    description=(item.equipment.description or "") if item.equipment else "",
                    quantity=item.quantity,
                    rental_days=item.rental_days,
                    rate=item.rate,
                    item_discount_amount=item.item_discount_amount,
                )
                for item in invoice.items
            ],
            services=[
                ServiceView(name=s.name, amount=s.amount, discount=s.discount)
                for s in invoice.services
            ],
            transport_amount=invoice.transport_amount,
            transport_discount=invoice.transport_discount,
            vat_amount=invoice.vat_amount,
            status=invoice.status,
            notes=invoice.notes or "",
        )

    @classmethod
    def sample(cls, config: TemplateConfig, tax_rate: Decimal) -> InvoiceView:
        """Placeholder invoice for previewing a template."""
        view = cls(
            invoice_number=f"{config.number_prefix}-001",
            issued_on=date.today(),
            customer_name="Sample Customer",
            customer_phone="(555) 987-6543",
            customer_email="customer@example.com",
            customer_address="456 Customer Ave\nSample City, SC 54321",
            rental_start_date=date.today(),
            items=[
                ItemView(
                    equipment_name="Professional Microphone",
                    description="Wireless handheld microphone with receiver",
                    quantity=2,
                    rental_days=1,
                    rate=Decimal("25.00"),
                ),
                ItemView(
                    equipment_name="Speaker System",
                    description="Full range PA speakers with stands",
                    quantity=1,
                    rental_days=1,
                    rate=Decimal("75.00"),
                ),
            ],
            transport_amount=Decimal("15.00"),
            notes="Sample invoice for template preview",
        )
        subtotal = InvoiceCalculator.calculate_invoice_subtotal(
            view.equipment_subtotal, view.transport_amount, view.transport_discount, ZERO
        )
        view.vat_amount = InvoiceCalculator.calculate_tax(subtotal, tax_rate)
        return view


class InvoiceHtmlRenderer:
    """Renders an InvoiceView with a TemplateConfig into a standalone HTML page."""

    def __init__(self, templates_dir: Path | None = None):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )

    def render(
        self,
        view: InvoiceView,
        config: TemplateConfig,
        formatters: Formatters | None = None,
        generated_at: datetime | None = None,
    ) -> str:
        fmt = formatters or Formatters(currency=config.currency)
        totals = InvoiceCalculator.calculate_invoice_totals(view)
        template = self.env.get_template(INVOICE_TEMPLATE)
        html = template.render(
            invoice=view,
            totals=totals,
            config=config,
            fmt=fmt,
            generated_at=generated_at or datetime.now(timezone.utc),
        )
        logger.debug(
            "Rendered invoice %s (%d bytes, total_due=%s)",
            view.invoice_number,
            len(html),
            round_to_cents(totals.total_due),
        )
        return html
