"""Eager-loading queries shared by the invoice and commission services."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rental_invoicing.models import (
    Invoice,
    InvoiceEmployeeAssignment,
    InvoiceItem,
    InvoiceService,
    ServiceEmployeeAssignment,
)
from rental_invoicing.services.errors import NotFoundError


def invoice_load_options() -> tuple:
    """Everything the calculator, commission model and renderer read from an invoice."""
    return (
        selectinload(Invoice.customer),
        selectinload(Invoice.template),
        selectinload(Invoice.items).selectinload(InvoiceItem.equipment),
        selectinload(Invoice.services)
        .selectinload(InvoiceService.employee_assignments)
        .selectinload(ServiceEmployeeAssignment.employee),
        selectinload(Invoice.employee_assignments).selectinload(
            InvoiceEmployeeAssignment.employee
        ),
    )


async def load_invoice(
    session: AsyncSession, invoice_id: UUID, refresh: bool = False
) -> Invoice | None:
    """Load an invoice with all relationships.

    refresh=True repopulates rows already in the identity map; only use it
    after pending changes were flushed.
    """
    stmt = select(Invoice).where(Invoice.invoice_id == invoice_id).options(*invoice_load_options())
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def require_invoice(
    session: AsyncSession, invoice_id: UUID, refresh: bool = False
) -> Invoice:
    invoice = await load_invoice(session, invoice_id, refresh=refresh)
    if invoice is None:
        raise NotFoundError("Invoice", invoice_id)
    return invoice
