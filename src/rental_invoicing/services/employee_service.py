"""Employee service."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.models import (
    Employee,
    InvoiceEmployeeAssignment,
    ServiceEmployeeAssignment,
)
from rental_invoicing.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class EmployeeService:
    """Employee CRUD. Employees with commission history are deactivated, not deleted."""

    EDITABLE_FIELDS = ("name", "email", "phone", "is_active")

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_employee(self, employee_id: UUID) -> Employee | None:
        return await self.session.get(Employee, employee_id)

    async def require_employee(self, employee_id: UUID) -> Employee:
        employee = await self.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    async def list_employees(
        self,
        search: str | None = None,
        active: bool | None = True,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Employee], int]:
        conditions = []
        if active is not None:
            conditions.append(Employee.is_active.is_(active))
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Employee.name.ilike(pattern), Employee.email.ilike(pattern)))

        total = await self.session.scalar(
            select(func.count()).select_from(Employee).where(*conditions)
        )
        result = await self.session.execute(
            select(Employee)
            .where(*conditions)
            .order_by(Employee.name)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total or 0

    async def search(self, query: str | None, limit: int = 10) -> Sequence[Employee]:
        """Active employees whose name contains the query, for pickers."""
        if not query:
            return []
        result = await self.session.execute(
            select(Employee)
            .where(Employee.is_active.is_(True), Employee.name.ilike(f"%{query}%"))
            .order_by(Employee.name)
            .limit(limit)
        )
        return result.scalars().all()

    async def _ensure_unique_name(self, name: str, exclude_id: UUID | None = None) -> None:
        stmt = select(Employee.employee_id).where(func.lower(Employee.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Employee.employee_id != exclude_id)
        existing = await self.session.scalar(stmt)
        if existing is not None:
            raise ConflictError(
                f"Employee named '{name}' already exists",
                {"employee_id": str(existing)},
            )

    async def create_employee(self, data: Mapping[str, Any]) -> Employee:
        name = data["name"].strip()
        await self._ensure_unique_name(name)
        employee = Employee(
            name=name,
            email=data.get("email") or None,
            phone=data.get("phone") or None,
        )
        self.session.add(employee)
        await self.session.flush()
        logger.info("Created employee %s (%s)", employee.employee_id, name)
        return employee

    async def update_employee(self, employee_id: UUID, data: Mapping[str, Any]) -> Employee:
        employee = await self.require_employee(employee_id)
        if data.get("name"):
            await self._ensure_unique_name(data["name"].strip(), exclude_id=employee_id)
        for field, value in data.items():
            if field in self.EDITABLE_FIELDS:
                setattr(employee, field, value.strip() if field == "name" else value)
        await self.session.flush()
        return employee

    async def delete_employee(self, employee_id: UUID) -> bool:
        """Delete an employee, or deactivate one with assignments.

        Returns True for a hard delete, False for a deactivation.
        """
        employee = await self.require_employee(employee_id)
        invoice_rows = await self.session.scalar(
            select(func.count())
            .select_from(InvoiceEmployeeAssignment)
            .where(InvoiceEmployeeAssignment.employee_id == employee_id)
        )
        service_rows = await self.session.scalar(
            select(func.count())
            .select_from(ServiceEmployeeAssignment)
            .where(ServiceEmployeeAssignment.employee_id == employee_id)
        )
        if invoice_rows or service_rows:
            employee.is_active = False
            await self.session.flush()
            logger.info("Deactivated employee %s (has assignments)", employee_id)
            return False

        await self.session.delete(employee)
        await self.session.flush()
        return True
