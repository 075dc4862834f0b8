"""Employee model."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_invoicing.models.base import Base, UpdatedAtMixin

if TYPE_CHECKING:
    from rental_invoicing.models.assignment import (
        InvoiceEmployeeAssignment,
        ServiceEmployeeAssignment,
    )


class Employee(Base, UpdatedAtMixin):
    """Staff member who can earn commission on invoices and services."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    invoice_assignments: Mapped[list[InvoiceEmployeeAssignment]] = relationship(
        back_populates="employee"
    )
    service_assignments: Mapped[list[ServiceEmployeeAssignment]] = relationship(
        back_populates="employee"
    )
