"""Commission persistence: assignments, recomputation and payment batches."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.calculators.commission import PERCENT_PRECISION, CommissionCalculator
from rental_invoicing.calculators.numeric import ZERO
from rental_invoicing.calculators.types import AssignmentRole
from rental_invoicing.config import CommissionPolicy, get_settings
from rental_invoicing.models import (
    Customer,
    Employee,
    Invoice,
    InvoiceEmployeeAssignment,
    InvoiceService,
    ServiceEmployeeAssignment,
)
from rental_invoicing.models.base import utcnow
from rental_invoicing.services.errors import (
    ConflictError,
    FieldError,
    InvoiceValidationError,
    NotFoundError,
)
from rental_invoicing.services.loaders import require_invoice
from rental_invoicing.services.state_machine import InvoiceStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleAssignmentInput:
    """Requested invoice-level assignment."""

    employee_id: UUID
    role: str
    notes: str | None = None


@dataclass
class ServiceAllocation:
    """Assignments on one service with their combined percentage."""

    service: InvoiceService
    assignments: list[ServiceEmployeeAssignment]
    total_percentage: Decimal
    over_allocated: bool


@dataclass(frozen=True)
class CommissionLine:
    """One assignment row flattened with its invoice, for reports."""

    assignment_id: UUID
    kind: str  # "invoice" or "service"
    employee_id: UUID
    employee_name: str
    employee_email: str | None
    invoice_id: UUID
    invoice_number: str
    invoice_status: str
    customer_name: str | None
    rental_start_date: date
    role: str | None
    service_name: str | None
    commission_percentage: Decimal
    base_amount: Decimal
    commission_amount: Decimal
    paid_at: datetime | None
    payment_batch_id: str | None
    notes: str | None


@dataclass(frozen=True)
class PaymentBatch:
    """Result of marking one employee's commissions paid."""

    employee_id: UUID
    payment_batch_id: str
    paid_at: datetime
    assignments_paid: int
    total_amount: Decimal


@dataclass
class UnpaidSummary:
    """Commission owed to one employee on paid invoices."""

    employee_id: UUID
    employee_name: str
    email: str | None
    total_owed: Decimal = ZERO
    assignment_count: int = 0
    oldest_invoice_date: date | None = None
    newest_invoice_date: date | None = None


@dataclass
class PaidBatchSummary:
    """Commission paid to one employee in one batch."""

    employee_id: UUID
    employee_name: str
    email: str | None
    payment_batch_id: str | None
    paid_at: datetime | None
    notes: str | None
    total_paid: Decimal = ZERO
    lines: list[CommissionLine] = field(default_factory=list)

    @property
    def assignment_count(self) -> int:
        return len(self.lines)

    @property
    def oldest_invoice_date(self) -> date | None:
        return min((line.rental_start_date for line in self.lines), default=None)

    @property
    def newest_invoice_date(self) -> date | None:
        return max((line.rental_start_date for line in self.lines), default=None)


def generate_batch_id(paid_at: datetime) -> str:
    return f"BATCH-{paid_at:%Y%m%d%H%M%S}-{uuid4().hex[:6].upper()}"


class CommissionService:
    """Persists commission shares computed by CommissionCalculator.

    Paid rows (paid_at set) are payment history: recomputation skips them,
    replacement keeps them and edits to them raise ConflictError.
    """

    def __init__(self, session: AsyncSession, policy: CommissionPolicy | None = None):
        self.session = session
        self.policy = policy or get_settings().commission_policy

    # ===== Recalculation =====

    def recalculate_invoice_commissions(self, invoice: Invoice) -> int:
        """Recompute every unpaid assignment of a loaded invoice.

        Invoice-level rows use total_due as base; service rows use the
        service's amount - discount. Returns the number of rows updated.
        """
        updated = 0

        roles = [a.role for a in invoice.employee_assignments]
        shares = CommissionCalculator.allocate_invoice_roles(
            roles, invoice.total_due, self.policy
        )
        for assignment, share in zip(invoice.employee_assignments, shares):
            if assignment.is_paid:
                continue
            assignment.commission_percentage = share.commission_percentage
            assignment.base_amount = share.base_amount
            assignment.commission_amount = share.commission_amount
            updated += 1

        for service in invoice.services:
            for assignment in service.employee_assignments:
                if assignment.is_paid:
                    continue
                share = CommissionCalculator.allocate_service_share(
                    service, assignment.commission_percentage
                )
                assignment.base_amount = share.base_amount
                assignment.commission_amount = share.commission_amount
                updated += 1

        return updated

    # ===== Invoice-level roles =====

    async def assign_invoice_employees(
        self, invoice_id: UUID, assignments: Sequence[RoleAssignmentInput]
    ) -> Invoice:
        """Replace the unpaid role assignments of an invoice and recompute shares."""
        errors: list[FieldError] = []
        valid_roles = {r.value for r in AssignmentRole}
        for i, requested in enumerate(assignments):
            if requested.role not in valid_roles:
                errors.append(
                    FieldError(
                        f"assignments[{i}].role",
                        f"must be one of: {', '.join(sorted(valid_roles))}",
                    )
                )
        if errors:
            raise InvoiceValidationError(errors)

        invoice = await require_invoice(self.session, invoice_id)
        employees = await self._require_employees({a.employee_id for a in assignments})

        kept = [a for a in invoice.employee_assignments if a.is_paid]
        kept_keys = {(a.employee_id, a.role) for a in kept}

        replacement: list[InvoiceEmployeeAssignment] = []
        for requested in assignments:
            key = (requested.employee_id, requested.role)
            if key in kept_keys:
                continue
            kept_keys.add(key)
            replacement.append(
                InvoiceEmployeeAssignment(
                    employee_id=requested.employee_id,
                    employee=employees[requested.employee_id],
                    role=requested.role,
                    notes=requested.notes,
                )
            )

        # Flush orphan deletes before inserting rows that reuse their unique keys
        invoice.employee_assignments = list(kept)
        await self.session.flush()
        invoice.employee_assignments.extend(replacement)
        self.recalculate_invoice_commissions(invoice)
        await self.session.flush()

        logger.info(
            "Invoice %s assignments replaced: %d active, %d paid kept",
            invoice.invoice_number,
            len(replacement),
            len(kept),
        )
        return invoice

    async def invoice_commissions(self, invoice_id: UUID) -> tuple[list[CommissionLine], Decimal]:
        """All commission lines of one invoice with their sum."""
        await require_invoice(self.session, invoice_id)
        lines = await self._lines(invoice_id=invoice_id)
        return lines, sum((line.commission_amount for line in lines), ZERO)

    # ===== Service-level assignments =====

    async def list_service_allocations(self, invoice_id: UUID) -> list[ServiceAllocation]:
        invoice = await require_invoice(self.session, invoice_id)
        return [self._allocation(service) for service in invoice.services]

    async def add_service_assignment(
        self,
        invoice_id: UUID,
        service_id: UUID,
        employee_id: UUID,
        commission_percentage: Any,
        notes: str | None = None,
    ) -> ServiceAllocation:
        """Assign an employee a percentage of one service.

        Over-allocation (combined percentage above 100) is logged and flagged
        on the returned allocation, not rejected.
        """
        invoice = await require_invoice(self.session, invoice_id)
        service = self._service_of(invoice, service_id)
        employees = await self._require_employees({employee_id})

        if any(a.employee_id == employee_id for a in service.employee_assignments):
            raise ConflictError(
                "Employee is already assigned to this service",
                {"service_id": str(service_id), "employee_id": str(employee_id)},
            )

        share = CommissionCalculator.allocate_service_share(service, commission_percentage)
        service.employee_assignments.append(
            ServiceEmployeeAssignment(
                employee_id=employee_id,
                employee=employees[employee_id],
                commission_percentage=share.commission_percentage.quantize(PERCENT_PRECISION),
                base_amount=share.base_amount,
                commission_amount=share.commission_amount,
                notes=notes,
            )
        )
        await self.session.flush()
        return self._allocation(service)

    async def update_service_assignment(
        self,
        invoice_id: UUID,
        assignment_id: UUID,
        commission_percentage: Any = None,
        notes: str | None = None,
    ) -> ServiceAllocation:
        invoice = await require_invoice(self.session, invoice_id)
        service, assignment = self._service_assignment_of(invoice, assignment_id)
        self._ensure_unpaid(assignment)

        if commission_percentage is not None:
            share = CommissionCalculator.allocate_service_share(service, commission_percentage)
            assignment.commission_percentage = share.commission_percentage.quantize(
                PERCENT_PRECISION
            )
            assignment.base_amount = share.base_amount
            assignment.commission_amount = share.commission_amount
        if notes is not None:
            assignment.notes = notes
        await self.session.flush()
        return self._allocation(service)

    async def remove_service_assignment(self, invoice_id: UUID, assignment_id: UUID) -> None:
        invoice = await require_invoice(self.session, invoice_id)
        service, assignment = self._service_assignment_of(invoice, assignment_id)
        self._ensure_unpaid(assignment)
        service.employee_assignments.remove(assignment)
        await self.session.flush()

    # ===== Payment =====

    async def mark_paid(
        self,
        employee_id: UUID,
        payment_batch_id: str | None = None,
        notes: str | None = None,
    ) -> PaymentBatch:
        """Stamp every unpaid, non-zero commission row of an employee as paid.

        Both assignment kinds share one paid_at and one batch id. Paid rows
        never return to unpaid.
        """
        await self._require_employees({employee_id})
        paid_at = utcnow()
        batch_id = payment_batch_id or generate_batch_id(paid_at)

        rows: list[InvoiceEmployeeAssignment | ServiceEmployeeAssignment] = []
        for model in (InvoiceEmployeeAssignment, ServiceEmployeeAssignment):
            result = await self.session.execute(
                select(model).where(
                    model.employee_id == employee_id,
                    model.paid_at.is_(None),
                    model.commission_amount > 0,
                )
            )
            rows.extend(result.scalars().all())

        total = ZERO
        for row in rows:
            row.paid_at = paid_at
            row.payment_batch_id = batch_id
            if notes is not None:
                row.notes = notes
            total += row.commission_amount
        await self.session.flush()

        logger.info(
            "Payment batch %s: employee %s, %d rows, total %s",
            batch_id,
            employee_id,
            len(rows),
            total,
        )
        return PaymentBatch(
            employee_id=employee_id,
            payment_batch_id=batch_id,
            paid_at=paid_at,
            assignments_paid=len(rows),
            total_amount=total,
        )

    # ===== Reports =====

    async def unpaid_summary(self) -> list[UnpaidSummary]:
        """Per-employee unpaid commission on paid invoices, largest first."""
        lines = await self._lines(unpaid_only=True, invoice_status=InvoiceStatus.PAID.value)
        summaries: dict[UUID, UnpaidSummary] = {}
        for line in lines:
            if line.commission_amount <= 0:
                continue
            summary = summaries.setdefault(
                line.employee_id,
                UnpaidSummary(
                    employee_id=line.employee_id,
                    employee_name=line.employee_name,
                    email=line.employee_email,
                ),
            )
            summary.total_owed += line.commission_amount
            summary.assignment_count += 1
            if summary.oldest_invoice_date is None or line.rental_start_date < summary.oldest_invoice_date:
                summary.oldest_invoice_date = line.rental_start_date
            if summary.newest_invoice_date is None or line.rental_start_date > summary.newest_invoice_date:
                summary.newest_invoice_date = line.rental_start_date
        return sorted(summaries.values(), key=lambda s: s.total_owed, reverse=True)

    async def paid_batches(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        employee_id: UUID | None = None,
        payment_batch_id: str | None = None,
    ) -> list[PaidBatchSummary]:
        """Paid commission grouped by employee and batch, newest batch first."""
        lines = await self._lines(paid_only=True, employee_id=employee_id)
        batches: dict[tuple[UUID, str | None, datetime | None], PaidBatchSummary] = {}
        for line in lines:
            if line.commission_amount <= 0:
                continue
            if payment_batch_id is not None and line.payment_batch_id != payment_batch_id:
                continue
            if start is not None and line.paid_at < _comparable(start, line.paid_at):
                continue
            if end is not None and line.paid_at > _comparable(end, line.paid_at):
                continue
            key = (line.employee_id, line.payment_batch_id, line.paid_at)
            batch = batches.setdefault(
                key,
                PaidBatchSummary(
                    employee_id=line.employee_id,
                    employee_name=line.employee_name,
                    email=line.employee_email,
                    payment_batch_id=line.payment_batch_id,
                    paid_at=line.paid_at,
                    notes=line.notes,
                ),
            )
            batch.total_paid += line.commission_amount
            batch.lines.append(line)

        ordered = sorted(batches.values(), key=lambda b: b.employee_name)
        return sorted(ordered, key=lambda b: b.paid_at, reverse=True)

    async def employee_commissions(
        self,
        employee_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> tuple[list[CommissionLine], Decimal]:
        """Non-zero commission lines of one employee by rental start, newest first."""
        await self._require_employees({employee_id})
        lines = [
            line
            for line in await self._lines(employee_id=employee_id)
            if line.commission_amount > 0
            and (start_date is None or line.rental_start_date >= start_date)
            and (end_date is None or line.rental_start_date <= end_date)
        ]
        lines.sort(key=lambda line: line.rental_start_date, reverse=True)
        return lines, sum((line.commission_amount for line in lines), ZERO)

    async def employee_assignments(
        self, employee_id: UUID, page: int = 1, limit: int = 20
    ) -> tuple[list[CommissionLine], int]:
        """Page of every assignment of one employee by rental start, newest first."""
        await self._require_employees({employee_id})
        lines = await self._lines(employee_id=employee_id)
        lines.sort(key=lambda line: line.rental_start_date, reverse=True)
        offset = (page - 1) * limit
        return lines[offset : offset + limit], len(lines)

    # ===== Helpers =====

    async def _require_employees(self, employee_ids: Iterable[UUID]) -> dict[UUID, Employee]:
        ids = set(employee_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Employee).where(Employee.employee_id.in_(ids))
        )
        found = {e.employee_id: e for e in result.scalars().all()}
        missing = ids - found.keys()
        if missing:
            raise NotFoundError("Employee", sorted(str(m) for m in missing)[0])
        return found

    @staticmethod
    def _allocation(service: InvoiceService) -> ServiceAllocation:
        percentages = [a.commission_percentage for a in service.employee_assignments]
        over = CommissionCalculator.is_over_allocated(percentages)
        if over:
            logger.warning(
                "Service %s (%s) is over-allocated: %s%%",
                service.service_id,
                service.name,
                CommissionCalculator.total_percentage(percentages),
            )
        return ServiceAllocation(
            service=service,
            assignments=list(service.employee_assignments),
            total_percentage=CommissionCalculator.total_percentage(percentages),
            over_allocated=over,
        )

    @staticmethod
    def _service_of(invoice: Invoice, service_id: UUID) -> InvoiceService:
        for service in invoice.services:
            if service.service_id == service_id:
                return service
        raise NotFoundError("InvoiceService", service_id)

    @staticmethod
    def _service_assignment_of(
        invoice: Invoice, assignment_id: UUID
    ) -> tuple[InvoiceService, ServiceEmployeeAssignment]:
        for service in invoice.services:
            for assignment in service.employee_assignments:
                if assignment.assignment_id == assignment_id:
                    return service, assignment
        raise NotFoundError("ServiceEmployeeAssignment", assignment_id)

    @staticmethod
    def _ensure_unpaid(assignment: ServiceEmployeeAssignment) -> None:
        if assignment.is_paid:
            raise ConflictError(
                "Paid commission rows cannot be changed",
                {
                    "assignment_id": str(assignment.assignment_id),
                    "payment_batch_id": assignment.payment_batch_id,
                },
            )

    async def _lines(
        self,
        invoice_id: UUID | None = None,
        employee_id: UUID | None = None,
        unpaid_only: bool = False,
        paid_only: bool = False,
        invoice_status: str | None = None,
    ) -> list[CommissionLine]:
        """Flatten both assignment kinds with invoice, customer and employee data."""
        lines: list[CommissionLine] = []

        def conditions(model: Any) -> list[Any]:
            clauses = []
            if invoice_id is not None:
                clauses.append(Invoice.invoice_id == invoice_id)
            if employee_id is not None:
                clauses.append(model.employee_id == employee_id)
            if unpaid_only:
                clauses.append(model.paid_at.is_(None))
            if paid_only:
                clauses.append(model.paid_at.is_not(None))
            if invoice_status is not None:
                clauses.append(Invoice.status == invoice_status)
            return clauses

        invoice_rows = await self.session.execute(
            select(InvoiceEmployeeAssignment, Invoice, Employee, Customer.name)
            .join(Invoice, InvoiceEmployeeAssignment.invoice_id == Invoice.invoice_id)
            .join(Employee, InvoiceEmployeeAssignment.employee_id == Employee.employee_id)
            .outerjoin(Customer, Invoice.customer_id == Customer.customer_id)
            .where(*conditions(InvoiceEmployeeAssignment))
            .order_by(InvoiceEmployeeAssignment.role, Employee.name)
        )
        for assignment, invoice, employee, customer_name in invoice_rows.all():
            lines.append(
                _line(assignment, "invoice", invoice, employee, customer_name, role=assignment.role)
            )

        service_rows = await self.session.execute(
            select(ServiceEmployeeAssignment, InvoiceService, Invoice, Employee, Customer.name)
            .join(InvoiceService, ServiceEmployeeAssignment.service_id == InvoiceService.service_id)
            .join(Invoice, InvoiceService.invoice_id == Invoice.invoice_id)
            .join(Employee, ServiceEmployeeAssignment.employee_id == Employee.employee_id)
            .outerjoin(Customer, Invoice.customer_id == Customer.customer_id)
            .where(*conditions(ServiceEmployeeAssignment))
            .order_by(InvoiceService.position, Employee.name)
        )
        for assignment, service, invoice, employee, customer_name in service_rows.all():
            lines.append(
                _line(
                    assignment,
                    "service",
                    invoice,
                    employee,
                    customer_name,
                    service_name=service.name,
                )
            )

        return lines


def _line(
    assignment: InvoiceEmployeeAssignment | ServiceEmployeeAssignment,
    kind: str,
    invoice: Invoice,
    employee: Employee,
    customer_name: str | None,
    role: str | None = None,
    service_name: str | None = None,
) -> CommissionLine:
    return CommissionLine(
        assignment_id=assignment.assignment_id,
        kind=kind,
        employee_id=employee.employee_id,
        employee_name=employee.name,
        employee_email=employee.email,
        invoice_id=invoice.invoice_id,
        invoice_number=invoice.invoice_number,
        invoice_status=invoice.status,
        customer_name=customer_name,
        rental_start_date=invoice.rental_start_date,
        role=role,
        service_name=service_name,
        commission_percentage=assignment.commission_percentage,
        base_amount=assignment.base_amount,
        commission_amount=assignment.commission_amount,
        paid_at=assignment.paid_at,
        payment_batch_id=assignment.payment_batch_id,
        notes=assignment.notes,
    )


def _comparable(bound: datetime, value: datetime) -> datetime:
    """Align a filter bound's tz-awareness with a stored timestamp."""
    if value.tzinfo is None and bound.tzinfo is not None:
        return bound.replace(tzinfo=None)
    if value.tzinfo is not None and bound.tzinfo is None:
        return bound.replace(tzinfo=value.tzinfo)
    return bound
