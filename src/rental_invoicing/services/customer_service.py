"""Customer service."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.models import Customer, Invoice
from rental_invoicing.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

AUTOCOMPLETE_MIN_CHARS = 2
AUTOCOMPLETE_LIMIT = 10


class CustomerService:
    """Customer CRUD and lookup."""

    EDITABLE_FIELDS = ("name", "phone", "email", "address")

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_customer(self, customer_id: UUID) -> Customer | None:
        return await self.session.get(Customer, customer_id)

    async def require_customer(self, customer_id: UUID) -> Customer:
        customer = await self.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    @staticmethod
    def _search_condition(term: str):
        pattern = f"%{term}%"
        return or_(
            Customer.name.ilike(pattern),
            Customer.phone.ilike(pattern),
            Customer.email.ilike(pattern),
        )

    async def list_customers(
        self, search: str | None = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Customer], int]:
        conditions = [self._search_condition(search)] if search else []
        total = await self.session.scalar(
            select(func.count()).select_from(Customer).where(*conditions)
        )
        result = await self.session.execute(
            select(Customer)
            .where(*conditions)
            .order_by(Customer.name)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total or 0

    async def autocomplete(self, query: str | None) -> Sequence[Customer]:
        """Up to 10 customers matching name, phone or email. Short queries match nothing."""
        if not query or len(query) < AUTOCOMPLETE_MIN_CHARS:
            return []
        result = await self.session.execute(
            select(Customer)
            .where(self._search_condition(query))
            .order_by(Customer.name)
            .limit(AUTOCOMPLETE_LIMIT)
        )
        return result.scalars().all()

    async def create_customer(self, data: Mapping[str, Any]) -> Customer:
        """Create a customer. Raises ConflictError on a duplicate name + phone."""
        name = data["name"].strip()
        phone = data.get("phone") or None
        duplicate = await self.session.scalar(
            select(Customer.customer_id).where(
                func.lower(Customer.name) == name.lower(),
                Customer.phone == phone if phone else Customer.phone.is_(None),
            )
        )
        if duplicate is not None:
            raise ConflictError(
                f"Customer '{name}' with this phone already exists",
                {"customer_id": str(duplicate)},
            )

        customer = Customer(
            name=name,
            phone=phone,
            email=data.get("email") or None,
            address=data.get("address") or None,
        )
        self.session.add(customer)
        await self.session.flush()
        logger.info("Created customer %s", customer.customer_id)
        return customer

    async def update_customer(self, customer_id: UUID, data: Mapping[str, Any]) -> Customer:
        customer = await self.require_customer(customer_id)
        for field, value in data.items():
            if field in self.EDITABLE_FIELDS:
                setattr(customer, field, value)
        await self.session.flush()
        return customer

    async def delete_customer(self, customer_id: UUID) -> None:
        """Delete a customer. Raises ConflictError when invoices reference it."""
        customer = await self.require_customer(customer_id)
        invoice_count = await self.session.scalar(
            select(func.count()).select_from(Invoice).where(Invoice.customer_id == customer_id)
        )
        if invoice_count:
            raise ConflictError(
                "Cannot delete customer with existing invoices",
                {"customer_id": str(customer_id), "invoice_count": invoice_count},
            )
        await self.session.delete(customer)
        await self.session.flush()
