"""Invoice service - orchestrates line resolution, totals and commissions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.calculators.numeric import ZERO, round_to_cents, safe_parse_number
from rental_invoicing.calculators.totals import InvoiceCalculator
from rental_invoicing.calculators.types import InvoiceTotals, LineCandidate, RateSource
from rental_invoicing.config import Settings, get_settings
from rental_invoicing.models import (
    Customer,
    Equipment,
    Invoice,
    InvoiceItem,
    InvoiceService as InvoiceServiceLine,
)
from rental_invoicing.rendering.template_config import TemplateConfig
from rental_invoicing.services.catalog_service import EquipmentService
from rental_invoicing.services.commission_service import CommissionService
from rental_invoicing.services.customer_service import CustomerService
from rental_invoicing.services.errors import (
    ConflictError,
    FieldError,
    InvoiceNumberExhaustedError,
    InvoiceValidationError,
)
from rental_invoicing.services.invoice_number import generate_invoice_number
from rental_invoicing.services.loaders import invoice_load_options, require_invoice
from rental_invoicing.services.state_machine import (
    InvoiceStateMachine,
    InvoiceStatus,
    normalize_status,
)
from rental_invoicing.services.template_service import TemplateService

logger = logging.getLogger(__name__)


@dataclass
class LineItemInput:
    """Requested equipment line.

    equipment_id set: catalog rate unless rate overrides it.
    equipment_id unset: equipment_name is looked up by exact name, else the
    line is kept unmatched with the given rate (or 0).
    """

    quantity: int = 1
    rental_days: int = 1
    equipment_id: UUID | None = None
    equipment_name: str | None = None
    rate: Decimal | None = None
    item_discount_amount: Decimal = ZERO


@dataclass
class ServiceLineInput:
    """Requested service. service_id identifies an existing service to keep."""

    name: str
    amount: Decimal = ZERO
    discount: Decimal = ZERO
    service_id: UUID | None = None


@dataclass
class CustomerInput:
    name: str
    phone: str | None = None
    email: str | None = None
    address: str | None = None


@dataclass
class InvoiceInput:
    """Payload for creating or fully updating an invoice."""

    rental_start_date: date
    items: list[LineItemInput]
    rental_duration_days: int = 1
    customer_id: UUID | None = None
    customer: CustomerInput | None = None
    services: list[ServiceLineInput] = field(default_factory=list)
    transport_amount: Decimal = ZERO
    transport_discount: Decimal = ZERO
    # None: tax = subtotal * template tax rate (or DEFAULT_TAX_RATE)
    tax_amount: Decimal | None = None
    template_id: UUID | None = None
    status: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CalendarEquipment:
    name: str
    quantity: int


@dataclass(frozen=True)
class CalendarEvent:
    """One rental on the calendar. end is inclusive: start + duration - 1."""

    invoice_id: UUID
    invoice_number: str
    title: str
    start: date
    end: date
    duration: int
    total_due: Decimal
    status: str
    customer_name: str | None
    equipment: list[CalendarEquipment]


@dataclass(frozen=True)
class TotalsAudit:
    """Stored total_due compared against a fresh calculation."""

    invoice_id: UUID
    invoice_number: str
    stored_total_due: Decimal
    calculated: InvoiceTotals
    consistent: bool

    @property
    def difference(self) -> Decimal:
        return self.calculated.total_due - self.stored_total_due


def calendar_end_date(start: date, duration_days: int) -> date:
    """Last rental day, inclusive."""
    return start + timedelta(days=max(1, duration_days or 1) - 1)


class InvoiceService:
    """Service for invoice lifecycle.

    Operations:
    - create_invoice: resolve lines, compute totals, allocate a number
    - update_invoice: replace lines, merge services, recompute commissions
    - change_status: validated status transition
    - delete_invoice: hard delete unless commission was already paid
    - list_invoices / calendar_events / audit_totals: read paths

    All totals come from InvoiceCalculator.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        number_factory: Callable[[str], str] = generate_invoice_number,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.number_factory = number_factory
        self.equipment_service = EquipmentService(session)
        self.customer_service = CustomerService(session)
        self.template_service = TemplateService(session)
        self.commission_service = CommissionService(session, self.settings.commission_policy)

    # ===== Reads =====

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        """Load an invoice with items, services and assignments; NotFoundError if absent."""
        return await require_invoice(self.session, invoice_id)

    async def list_invoices(
        self,
        status: str | None = None,
        customer_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Invoice], int]:
        """Filtered page of invoices, newest first, plus the total match count.

        start_date/end_date bound the rental start date (inclusive).
        """
        conditions = []
        if status:
            conditions.append(Invoice.status == normalize_status(status))
        if customer_id is not None:
            conditions.append(Invoice.customer_id == customer_id)
        if start_date is not None:
            conditions.append(Invoice.rental_start_date >= start_date)
        if end_date is not None:
            conditions.append(Invoice.rental_start_date <= end_date)

        total = await self.session.scalar(
            select(func.count()).select_from(Invoice).where(*conditions)
        )
        result = await self.session.execute(
            select(Invoice)
            .where(*conditions)
            .options(*invoice_load_options())
            .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total or 0

    async def calendar_events(
        self, year: int | None = None, month: int | None = None
    ) -> list[CalendarEvent]:
        """Non-cancelled rentals, optionally limited to one year and/or month."""
        conditions = [Invoice.status != InvoiceStatus.CANCELLED.value]
        if year is not None:
            conditions.append(extract("year", Invoice.rental_start_date) == year)
        if month is not None:
            conditions.append(extract("month", Invoice.rental_start_date) == month)

        result = await self.session.execute(
            select(Invoice)
            .where(*conditions)
            .options(*invoice_load_options())
            .order_by(Invoice.rental_start_date, Invoice.invoice_number)
        )

        events: list[CalendarEvent] = []
        for invoice in result.scalars().all():
            customer_name = invoice.customer.name if invoice.customer else None
            events.append(
                CalendarEvent(
                    invoice_id=invoice.invoice_id,
                    invoice_number=invoice.invoice_number,
                    title=f"{customer_name} - {invoice.invoice_number}",
                    start=invoice.rental_start_date,
                    end=calendar_end_date(invoice.rental_start_date, invoice.rental_duration_days),
                    duration=invoice.rental_duration_days or 1,
                    total_due=invoice.total_due,
                    status=invoice.status,
                    customer_name=customer_name,
                    equipment=[
                        CalendarEquipment(name=item.equipment_name, quantity=item.quantity)
                        for item in invoice.items
                    ],
                )
            )
        return events

    async def audit_totals(self, invoice_id: UUID) -> TotalsAudit:
        """Recompute totals from the stored row. Advisory; never modifies it."""
        invoice = await self.get_invoice(invoice_id)
        calculated = InvoiceCalculator.calculate_invoice_totals(invoice)
        return TotalsAudit(
            invoice_id=invoice.invoice_id,
            invoice_number=invoice.invoice_number,
            stored_total_due=invoice.total_due,
            calculated=calculated,
            consistent=InvoiceCalculator.validate_invoice_calculations(invoice),
        )

    # ===== Writes =====

    async def create_invoice(self, data: InvoiceInput) -> Invoice:
        """Create an invoice with its lines, services and totals in one transaction."""
        self._validate(data)
        status = normalize_status(data.status) if data.status else InvoiceStatus.UNPAID.value

        customer = await self._resolve_customer(data)
        config = await self.template_service.resolve_config(data.template_id)
        candidates = await self._resolve_lines(data.items)

        invoice = Invoice(
            invoice_number=await self._allocate_invoice_number(config.number_prefix),
            customer_id=customer.customer_id,
            customer=customer,
            template_id=data.template_id,
            rental_start_date=data.rental_start_date,
            rental_duration_days=data.rental_duration_days,
            status=status,
            notes=data.notes,
            items=[],
            services=[],
            employee_assignments=[],
        )
        self._apply_lines(invoice, candidates)
        self._merge_services(invoice, data.services)
        self._apply_totals(invoice, data, config)
        self.session.add(invoice)
        await self.session.flush()

        logger.info(
            "Created invoice %s: %d lines, total_due=%s",
            invoice.invoice_number,
            len(invoice.items),
            invoice.total_due,
        )
        return await require_invoice(self.session, invoice.invoice_id, refresh=True)

    async def update_invoice(self, invoice_id: UUID, data: InvoiceInput) -> Invoice:
        """Replace lines, merge services by id and recompute totals and commissions."""
        self._validate(data)
        invoice = await self.get_invoice(invoice_id)

        if data.status:
            target = normalize_status(data.status)
            if target != invoice.status:
                InvoiceStateMachine.validate_transition(invoice.status, target)
                invoice.status = target

        customer = await self._resolve_customer(data)
        if data.customer is not None and data.customer_id is not None:
            await self.customer_service.update_customer(
                customer.customer_id,
                {
                    "name": data.customer.name,
                    "phone": data.customer.phone,
                    "email": data.customer.email,
                    "address": data.customer.address,
                },
            )
        config = await self.template_service.resolve_config(data.template_id)
        candidates = await self._resolve_lines(data.items)

        invoice.customer_id = customer.customer_id
        invoice.customer = customer
        invoice.template_id = data.template_id
        invoice.rental_start_date = data.rental_start_date
        invoice.rental_duration_days = data.rental_duration_days
        invoice.notes = data.notes

        self._apply_lines(invoice, candidates)
        self._merge_services(invoice, data.services)
        self._apply_totals(invoice, data, config)
        self.commission_service.recalculate_invoice_commissions(invoice)
        await self.session.flush()

        logger.info("Updated invoice %s: total_due=%s", invoice.invoice_number, invoice.total_due)
        return await require_invoice(self.session, invoice.invoice_id, refresh=True)

    async def change_status(self, invoice_id: UUID, status: str) -> Invoice:
        """Move an invoice to a new status. Same-status requests are no-ops."""
        invoice = await self.get_invoice(invoice_id)
        target = normalize_status(status)
        if target == invoice.status:
            return invoice

        InvoiceStateMachine.validate_transition(invoice.status, target)
        previous = invoice.status
        invoice.status = target
        await self.session.flush()
        logger.info("Invoice %s: %s -> %s", invoice.invoice_number, previous, target)
        return invoice

    async def delete_invoice(self, invoice_id: UUID) -> None:
        """Hard delete with cascade. Refused once any commission row was paid."""
        invoice = await self.get_invoice(invoice_id)
        paid = [a for a in invoice.employee_assignments if a.is_paid]
        paid += [a for s in invoice.services for a in s.employee_assignments if a.is_paid]
        if paid:
            raise ConflictError(
                "Cannot delete an invoice with paid commissions",
                {
                    "invoice_id": str(invoice_id),
                    "payment_batch_ids": sorted({a.payment_batch_id or "" for a in paid}),
                },
            )
        await self.session.delete(invoice)
        await self.session.flush()
        logger.info("Deleted invoice %s", invoice.invoice_number)

    # ===== Helpers =====

    @staticmethod
    def _validate(data: InvoiceInput) -> None:
        errors: list[FieldError] = []
        if not data.items:
            errors.append(FieldError("items", "At least one item is required"))
        if data.customer_id is None and data.customer is None:
            errors.append(FieldError("customer_id", "A customer id or customer data is required"))
        if data.rental_duration_days < 1:
            errors.append(FieldError("rental_duration_days", "Must be at least 1 day"))
        for i, item in enumerate(data.items):
            if item.equipment_id is None and not (item.equipment_name or "").strip():
                errors.append(
                    FieldError(f"items[{i}]", "Either equipment_id or equipment_name is required")
                )
        if errors:
            raise InvoiceValidationError(errors)

    async def _resolve_customer(self, data: InvoiceInput) -> Customer:
        if data.customer_id is not None:
            return await self.customer_service.require_customer(data.customer_id)
        if data.customer is None:
            raise InvoiceValidationError(
                [FieldError("customer_id", "A customer id or customer data is required")]
            )
        return await self.customer_service.create_customer(
            {
                "name": data.customer.name or "Customer",
                "phone": data.customer.phone,
                "email": data.customer.email,
                "address": data.customer.address,
            }
        )

    async def _resolve_lines(self, items: Sequence[LineItemInput]) -> list[LineCandidate]:
        """Attach a rate and rate source to every requested line.

        Raises InvoiceValidationError listing every unknown equipment id.
        """
        errors: list[FieldError] = []
        candidates: list[LineCandidate] = []

        for i, item in enumerate(items):
            equipment: Equipment | None = None
            if item.equipment_id is not None:
                equipment = await self.equipment_service.get_equipment(item.equipment_id)
                if equipment is None:
                    errors.append(
                        FieldError(
                            f"items[{i}].equipment_id",
                            f"Equipment '{item.equipment_id}' not found",
                        )
                    )
                    continue
            elif item.equipment_name:
                equipment = await self.equipment_service.find_by_name(item.equipment_name)

            if equipment is not None and item.rate is None:
                rate, source = equipment.daily_rate, RateSource.CATALOG
            elif equipment is not None:
                rate, source = safe_parse_number(item.rate), RateSource.MANUAL
            else:
                rate, source = safe_parse_number(item.rate), RateSource.UNMATCHED

            quantity = max(1, item.quantity or 1)
            days = max(1, item.rental_days or 1)
            discount = safe_parse_number(item.item_discount_amount)
            candidates.append(
                LineCandidate(
                    equipment_id=equipment.equipment_id if equipment else None,
                    equipment_name=equipment.name if equipment else item.equipment_name.strip(),
                    quantity=quantity,
                    rate=rate,
                    rental_days=days,
                    item_discount_amount=discount,
                    rate_source=source,
                    line_total=round_to_cents(
                        InvoiceCalculator.calculate_line_total(quantity, rate, days, discount)
                    ),
                )
            )

        if errors:
            raise InvoiceValidationError(errors)
        return candidates

    @staticmethod
    def _apply_lines(invoice: Invoice, candidates: Sequence[LineCandidate]) -> None:
        """Replace all line items. Orphaned rows are deleted on flush."""
        invoice.items = [
            InvoiceItem(
                position=position,
                equipment_id=c.equipment_id,
                equipment_name=c.equipment_name,
                quantity=c.quantity,
                rate=c.rate,
                rental_days=c.rental_days,
                item_discount_amount=c.item_discount_amount,
                rate_source=c.rate_source.value,
                line_total=c.line_total,
            )
            for position, c in enumerate(candidates)
        ]

    @staticmethod
    def _merge_services(invoice: Invoice, requested: Sequence[ServiceLineInput]) -> None:
        """Update services matched by id, add new ones, drop the rest.

        Services keep their identity across edits so their commission
        assignments survive. Dropping a service with paid commission raises
        ConflictError.
        """
        existing = {s.service_id: s for s in invoice.services}
        merged: list[InvoiceServiceLine] = []

        named = [s for s in requested if s.name and s.name.strip()]
        for position, entry in enumerate(named):
            amount = safe_parse_number(entry.amount)
            discount = safe_parse_number(entry.discount)
            service = existing.pop(entry.service_id, None) if entry.service_id else None
            if service is None:
                service = InvoiceServiceLine(employee_assignments=[])
            service.position = position
            service.name = entry.name.strip()
            service.amount = amount
            service.discount = discount
            service.total = InvoiceCalculator.calculate_service_total(
                {"amount": amount, "discount": discount}
            )
            merged.append(service)

        for dropped in existing.values():
            if any(a.is_paid for a in dropped.employee_assignments):
                raise ConflictError(
                    f"Service '{dropped.name}' has paid commissions and cannot be removed",
                    {"service_id": str(dropped.service_id)},
                )

        invoice.services = merged

    def _apply_totals(self, invoice: Invoice, data: InvoiceInput, config: TemplateConfig) -> None:
        """Write calculator output onto the invoice row."""
        equipment_subtotal = InvoiceCalculator.calculate_equipment_subtotal(invoice.items)
        transport_amount = safe_parse_number(data.transport_amount)
        transport_discount = safe_parse_number(data.transport_discount)
        services_total = InvoiceCalculator.calculate_services_total(invoice.services)
        invoice_subtotal = InvoiceCalculator.calculate_invoice_subtotal(
            equipment_subtotal, transport_amount, transport_discount, services_total
        )

        if data.tax_amount is not None:
            vat_amount = round_to_cents(safe_parse_number(data.tax_amount))
        else:
            tax_rate = config.tax_rate if config.tax_rate is not None else self.settings.default_tax_rate
            vat_amount = InvoiceCalculator.calculate_tax(invoice_subtotal, tax_rate)

        invoice.equipment_subtotal = equipment_subtotal
        invoice.transport_amount = transport_amount
        invoice.transport_discount = transport_discount
        invoice.vat_amount = vat_amount

        totals = InvoiceCalculator.calculate_invoice_totals(invoice)
        invoice.services_total = totals.services_total
        invoice.invoice_subtotal = totals.invoice_subtotal
        invoice.total_due = totals.total_due

    async def _allocate_invoice_number(self, prefix: str) -> str:
        """Generate numbers until one is unused, up to INVOICE_NUMBER_ATTEMPTS."""
        attempts = max(1, self.settings.invoice_number_attempts)
        for _ in range(attempts):
            candidate = self.number_factory(prefix)
            taken = await self.session.scalar(
                select(Invoice.invoice_id).where(Invoice.invoice_number == candidate)
            )
            if taken is None:
                return candidate
            logger.warning("Invoice number %s already taken, regenerating", candidate)
        raise InvoiceNumberExhaustedError(attempts)


def invoice_input_from_mapping(payload: dict[str, Any]) -> InvoiceInput:
    """Build an InvoiceInput from a plain dict (API model dump)."""
    customer = payload.get("customer")
    return InvoiceInput(
        rental_start_date=payload["rental_start_date"],
        rental_duration_days=payload.get("rental_duration_days") or 1,
        customer_id=payload.get("customer_id"),
        customer=CustomerInput(**customer) if customer else None,
        items=[LineItemInput(**item) for item in payload.get("items") or []],
        services=[ServiceLineInput(**s) for s in payload.get("services") or []],
        transport_amount=payload.get("transport_amount") or ZERO,
        transport_discount=payload.get("transport_discount") or ZERO,
        tax_amount=payload.get("tax_amount"),
        template_id=payload.get("template_id"),
        status=payload.get("status"),
        notes=payload.get("notes"),
    )
