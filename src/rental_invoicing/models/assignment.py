"""Commission assignment models.

A row with paid_at set is payment history: it is never recomputed and
never deleted by invoice edits.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_invoicing.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from rental_invoicing.models.employee import Employee
    from rental_invoicing.models.invoice import Invoice, InvoiceService


class CommissionMixin:
    """Columns shared by both assignment kinds."""

    commission_percentage: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0")
    )
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_batch_id: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

    @property
    def employee_name(self) -> str | None:
        # Requires the employee relationship to be loaded
        employee = self.employee  # type: ignore[attr-defined]
        return employee.name if employee is not None else None


class InvoiceEmployeeAssignment(Base, TimestampMixin, CommissionMixin):
    """Employee working an invoice in an organizer or setup role."""

    __tablename__ = "invoice_employee_assignment"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("invoice_id", "employee_id", "role", name="invoice_assignment_unique"),
        CheckConstraint("role IN ('organizer', 'setup')", name="invoice_assignment_role_check"),
    )

    invoice: Mapped[Invoice] = relationship(back_populates="employee_assignments")
    employee: Mapped[Employee] = relationship(back_populates="invoice_assignments")


class ServiceEmployeeAssignment(Base, TimestampMixin, CommissionMixin):
    """Employee earning a percentage of one invoice service."""

    __tablename__ = "service_employee_assignment"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice_service.service_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("service_id", "employee_id", name="service_assignment_unique"),
    )

    service: Mapped[InvoiceService] = relationship(back_populates="employee_assignments")
    employee: Mapped[Employee] = relationship(back_populates="service_assignments")
