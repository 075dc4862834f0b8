"""Invoice, line item and service models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_invoicing.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from rental_invoicing.models.assignment import (
        InvoiceEmployeeAssignment,
        ServiceEmployeeAssignment,
    )
    from rental_invoicing.models.catalog import Equipment
    from rental_invoicing.models.customer import Customer
    from rental_invoicing.models.template import InvoiceTemplate


class Invoice(Base, UpdatedAtMixin):
    """Invoice header with stored totals.

    Totals are always written from InvoiceCalculator; the row is a cache of
    the calculator's output, never an independent source.
    """

    __tablename__ = "invoice"

    invoice_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customer.customer_id", ondelete="RESTRICT"),
        nullable=False,
    )
    template_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoice_template.template_id", ondelete="SET NULL"),
        nullable=True,
    )
    rental_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    rental_duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    transport_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    transport_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    equipment_subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    services_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    invoice_subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_due: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String, nullable=False, default="unpaid")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'unpaid', 'paid', 'cancelled')",
            name="invoice_status_check",
        ),
        CheckConstraint("rental_duration_days >= 1", name="invoice_duration_check"),
    )

    customer: Mapped[Customer] = relationship(back_populates="invoices")
    template: Mapped[InvoiceTemplate | None] = relationship()
    items: Mapped[list[InvoiceItem]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )
    services: Mapped[list[InvoiceService]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceService.position",
    )
    employee_assignments: Mapped[list[InvoiceEmployeeAssignment]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
    )


class InvoiceItem(Base, TimestampMixin):
    """Equipment line: quantity * rate * rental_days - item_discount_amount."""

    __tablename__ = "invoice_item"

    item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
    )
    equipment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("equipment.equipment_id", ondelete="SET NULL"),
        nullable=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    equipment_name: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    rental_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    item_discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    rate_source: Mapped[str] = mapped_column(String, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="invoice_item_quantity_check"),
        CheckConstraint("rental_days >= 1", name="invoice_item_days_check"),
        CheckConstraint(
            "rate_source IN ('catalog', 'manual', 'unmatched')",
            name="invoice_item_rate_source_check",
        ),
    )

    invoice: Mapped[Invoice] = relationship(back_populates="items")
    equipment: Mapped[Equipment | None] = relationship()


class InvoiceService(Base, TimestampMixin):
    """Flat-fee service on an invoice (setup, delivery, operator...)."""

    __tablename__ = "invoice_service"

    service_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    invoice: Mapped[Invoice] = relationship(back_populates="services")
    employee_assignments: Mapped[list[ServiceEmployeeAssignment]] = relationship(
        back_populates="service",
        cascade="all, delete-orphan",
    )
