"""Customer model."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_invoicing.models.base import Base, UpdatedAtMixin

if TYPE_CHECKING:
    from rental_invoicing.models.invoice import Invoice


class Customer(Base, UpdatedAtMixin):
    """Customer billed on invoices."""

    __tablename__ = "customer"

    customer_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    invoices: Mapped[list[Invoice]] = relationship(back_populates="customer")
