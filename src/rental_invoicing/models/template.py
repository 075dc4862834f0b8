"""Invoice template model."""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_invoicing.models.base import Base, UpdatedAtMixin


class InvoiceTemplate(Base, UpdatedAtMixin):
    """Rendering configuration. At most one row has is_default set."""

    __tablename__ = "invoice_template"

    template_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    template_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
