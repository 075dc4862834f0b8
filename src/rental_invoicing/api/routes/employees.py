"""Employee and commission payout endpoints."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from rental_invoicing.api.dependencies import AppSettings, DbSession
from rental_invoicing.api.schemas import (
    CommissionLinePage,
    CommissionLineResponse,
    CommissionLinesResponse,
    DeleteResponse,
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeUpdate,
    ErrorResponse,
    MarkPaidRequest,
    PaidBatchResponse,
    PaymentBatchResponse,
    UnpaidSummaryResponse,
)
from rental_invoicing.services.commission_service import CommissionService
from rental_invoicing.services.employee_service import EmployeeService

router = APIRouter(prefix="/employees", tags=["employees"])


# ============================================================================
# Commission reports
# ============================================================================


@router.get("/unpaid-commissions", response_model=list[UnpaidSummaryResponse])
async def unpaid_commissions(
    db: DbSession, settings: AppSettings
) -> list[UnpaidSummaryResponse]:
    """Commission owed per employee on paid invoices, largest first."""
    summaries = await CommissionService(db, settings.commission_policy).unpaid_summary()
    return [UnpaidSummaryResponse.model_validate(s) for s in summaries]


@router.get("/paid-commissions", response_model=list[PaidBatchResponse])
async def paid_commissions(
    db: DbSession,
    settings: AppSettings,
    start: datetime | None = None,
    end: datetime | None = None,
    employee_id: UUID | None = None,
    payment_batch_id: str | None = None,
) -> list[PaidBatchResponse]:
    """Payment history grouped by employee and batch, newest first."""
    batches = await CommissionService(db, settings.commission_policy).paid_batches(
        start=start,
        end=end,
        employee_id=employee_id,
        payment_batch_id=payment_batch_id,
    )
    return [PaidBatchResponse.model_validate(b) for b in batches]


# ============================================================================
# Employee CRUD
# ============================================================================


@router.get("", response_model=EmployeeListResponse)
async def list_employees(
    db: DbSession,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 50,
    search: str | None = None,
    include_inactive: bool = False,
) -> EmployeeListResponse:
    employees, total = await EmployeeService(db).list_employees(
        search=search,
        active=None if include_inactive else True,
        page=page,
        limit=page_size,
    )
    return EmployeeListResponse(
        items=[EmployeeResponse.model_validate(e) for e in employees],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/search", response_model=list[EmployeeResponse])
async def search_employees(
    db: DbSession, q: Annotated[str | None, Query()] = None
) -> list[EmployeeResponse]:
    employees = await EmployeeService(db).search(q)
    return [EmployeeResponse.model_validate(e) for e in employees]


@router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employee(
    db: DbSession, employee_id: Annotated[UUID, Path()]
) -> EmployeeResponse:
    employee = await EmployeeService(db).require_employee(employee_id)
    return EmployeeResponse.model_validate(employee)


@router.post(
    "",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_employee(db: DbSession, payload: EmployeeCreate) -> EmployeeResponse:
    employee = await EmployeeService(db).create_employee(payload.model_dump())
    await db.commit()
    return EmployeeResponse.model_validate(employee)


@router.put(
    "/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_employee(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    payload: EmployeeUpdate,
) -> EmployeeResponse:
    employee = await EmployeeService(db).update_employee(
        employee_id, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return EmployeeResponse.model_validate(employee)


@router.delete(
    "/{employee_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_employee(
    db: DbSession, employee_id: Annotated[UUID, Path()]
) -> DeleteResponse:
    """Delete an employee; employees with assignments are deactivated instead."""
    deleted = await EmployeeService(db).delete_employee(employee_id)
    await db.commit()
    return DeleteResponse(id=employee_id, deleted=deleted, deactivated=not deleted)


# ============================================================================
# Per-employee commissions
# ============================================================================


@router.get(
    "/{employee_id}/assignments",
    response_model=CommissionLinePage,
    responses={404: {"model": ErrorResponse}},
)
async def employee_assignments(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> CommissionLinePage:
    lines, total = await CommissionService(db, settings.commission_policy).employee_assignments(
        employee_id, page=page, limit=page_size
    )
    return CommissionLinePage(
        items=[CommissionLineResponse.model_validate(line) for line in lines],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{employee_id}/commissions",
    response_model=CommissionLinesResponse,
    responses={404: {"model": ErrorResponse}},
)
async def employee_commissions(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
    start_date: date | None = None,
    end_date: date | None = None,
) -> CommissionLinesResponse:
    """Non-zero commissions by rental start date, optionally bounded."""
    lines, total = await CommissionService(db, settings.commission_policy).employee_commissions(
        employee_id, start_date=start_date, end_date=end_date
    )
    return CommissionLinesResponse(
        items=[CommissionLineResponse.model_validate(line) for line in lines],
        total_commission=total,
    )


@router.post(
    "/{employee_id}/mark-paid",
    response_model=PaymentBatchResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_commissions_paid(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
    payload: MarkPaidRequest,
) -> PaymentBatchResponse:
    """Mark every unpaid, non-zero commission of the employee as paid in one batch."""
    batch = await CommissionService(db, settings.commission_policy).mark_paid(
        employee_id,
        payment_batch_id=payload.payment_batch_id,
        notes=payload.notes,
    )
    await db.commit()
    return PaymentBatchResponse.model_validate(batch)
