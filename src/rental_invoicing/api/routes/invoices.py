"""Invoice endpoints: CRUD, rendering, calendar and commission assignments."""

import logging
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.api.dependencies import AppSettings, DbSession, HtmlRenderer, PdfRendererDep
from rental_invoicing.api.schemas import (
    AssignEmployeesRequest,
    CalendarEventResponse,
    CommissionLineResponse,
    CommissionLinesResponse,
    ErrorResponse,
    InvoiceAssignmentResponse,
    InvoiceListResponse,
    InvoiceRequest,
    InvoiceResponse,
    ServiceAllocationResponse,
    ServiceAssignmentCreate,
    ServiceAssignmentResponse,
    ServiceAssignmentUpdate,
    StatusChangeRequest,
    TemplatePreviewRequest,
    TotalsAuditResponse,
)
from rental_invoicing.config import Settings
from rental_invoicing.models import Invoice
from rental_invoicing.rendering.html import InvoiceHtmlRenderer, InvoiceView
from rental_invoicing.rendering.pdf import pdf_filename
from rental_invoicing.services.commission_service import (
    CommissionService,
    RoleAssignmentInput,
    ServiceAllocation,
)
from rental_invoicing.services.invoice_service import InvoiceService, invoice_input_from_mapping
from rental_invoicing.services.state_machine import normalize_status
from rental_invoicing.services.template_service import TemplateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _allocation_response(allocation: ServiceAllocation) -> ServiceAllocationResponse:
    service = allocation.service
    return ServiceAllocationResponse(
        service_id=service.service_id,
        service_name=service.name,
        amount=service.amount,
        discount=service.discount,
        total_percentage=allocation.total_percentage,
        over_allocated=allocation.over_allocated,
        assignments=[ServiceAssignmentResponse.model_validate(a) for a in allocation.assignments],
    )


# ============================================================================
# Collection endpoints
# ============================================================================


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    db: DbSession,
    settings: AppSettings,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 10,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    customer_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> InvoiceListResponse:
    """List invoices newest first; date bounds apply to the rental start date."""
    try:
        status_value = normalize_status(status_filter) if status_filter else None
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    invoices, total = await InvoiceService(db, settings).list_invoices(
        status=status_value,
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=page_size,
    )
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/calendar", response_model=list[CalendarEventResponse])
async def calendar_events(
    db: DbSession,
    settings: AppSettings,
    year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
) -> list[CalendarEventResponse]:
    """Rentals as calendar events. Cancelled invoices are left out."""
    events = await InvoiceService(db, settings).calendar_events(year=year, month=month)
    return [CalendarEventResponse.model_validate(e) for e in events]


@router.post("/preview-template", response_class=HTMLResponse)
async def preview_template(
    settings: AppSettings,
    renderer: HtmlRenderer,
    payload: TemplatePreviewRequest,
) -> HTMLResponse:
    """Render a sample invoice with an unsaved template configuration."""
    config = payload.config
    tax_rate = config.tax_rate if config.tax_rate is not None else settings.default_tax_rate
    html = renderer.render(InvoiceView.sample(config, tax_rate), config)
    return HTMLResponse(content=html)


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_invoice(
    db: DbSession, settings: AppSettings, payload: InvoiceRequest
) -> InvoiceResponse:
    """Create an invoice; totals are always computed server-side."""
    invoice = await InvoiceService(db, settings).create_invoice(
        invoice_input_from_mapping(payload.model_dump())
    )
    await db.commit()
    return InvoiceResponse.model_validate(invoice)


# ============================================================================
# Single invoice
# ============================================================================


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    db: DbSession, settings: AppSettings, invoice_id: Annotated[UUID, Path()]
) -> InvoiceResponse:
    invoice = await InvoiceService(db, settings).get_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.put(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def update_invoice(
    db: DbSession,
    settings: AppSettings,
    invoice_id: Annotated[UUID, Path()],
    payload: InvoiceRequest,
) -> InvoiceResponse:
    """Replace lines and services; unpaid commissions follow the new totals."""
    invoice = await InvoiceService(db, settings).update_invoice(
        invoice_id, invoice_input_from_mapping(payload.model_dump())
    )
    await db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.patch(
    "/{invoice_id}/status",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def change_invoice_status(
    db: DbSession,
    settings: AppSettings,
    invoice_id: Annotated[UUID, Path()],
    payload: StatusChangeRequest,
) -> InvoiceResponse:
    invoice = await InvoiceService(db, settings).change_status(invoice_id, payload.status)
    await db.commit()
    return InvoiceResponse.model_validate(invoice)


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_invoice(
    db: DbSession, settings: AppSettings, invoice_id: Annotated[UUID, Path()]
) -> Response:
    await InvoiceService(db, settings).delete_invoice(invoice_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{invoice_id}/totals",
    response_model=TotalsAuditResponse,
    responses={404: {"model": ErrorResponse}},
)
async def audit_invoice_totals(
    db: DbSession, settings: AppSettings, invoice_id: Annotated[UUID, Path()]
) -> TotalsAuditResponse:
    """Compare the stored total against a fresh calculation."""
    audit = await InvoiceService(db, settings).audit_totals(invoice_id)
    if not audit.consistent:
        logger.warning(
            "Invoice %s total mismatch: stored %s, calculated %s",
            audit.invoice_number,
            audit.stored_total_due,
            audit.calculated.total_due,
        )
    return TotalsAuditResponse.model_validate(audit)


# ============================================================================
# Rendering
# ============================================================================


async def _render_invoice_html(
    db: AsyncSession, settings: Settings, renderer: InvoiceHtmlRenderer, invoice_id: UUID
) -> tuple[Invoice, str]:
    invoice = await InvoiceService(db, settings).get_invoice(invoice_id)
    config = await TemplateService(db).resolve_config(invoice.template_id)
    return invoice, renderer.render(InvoiceView.from_invoice(invoice), config)


@router.get(
    "/{invoice_id}/html",
    response_class=HTMLResponse,
    responses={404: {"model": ErrorResponse}},
)
async def invoice_html(
    db: DbSession,
    settings: AppSettings,
    renderer: HtmlRenderer,
    invoice_id: Annotated[UUID, Path()],
) -> HTMLResponse:
    _, html = await _render_invoice_html(db, settings, renderer, invoice_id)
    return HTMLResponse(content=html)


@router.get(
    "/{invoice_id}/pdf",
    responses={
        200: {"content": {"application/pdf": {}}},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def invoice_pdf(
    db: DbSession,
    settings: AppSettings,
    renderer: HtmlRenderer,
    pdf_renderer: PdfRendererDep,
    invoice_id: Annotated[UUID, Path()],
) -> Response:
    invoice, html = await _render_invoice_html(db, settings, renderer, invoice_id)
    document = await run_in_threadpool(pdf_renderer.render, html)
    return Response(
        content=document,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{pdf_filename(invoice.invoice_number)}"'
        },
    )


# ============================================================================
# Commission assignments
# ============================================================================


@router.post(
    "/{invoice_id}/assign-employees",
    response_model=list[InvoiceAssignmentResponse],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def assign_invoice_employees(
    db: DbSession,
    settings: AppSettings,
    invoice_id: Annotated[UUID, Path()],
    payload: AssignEmployeesRequest,
) -> list[InvoiceAssignmentResponse]:
    """Replace unpaid organizer/setup assignments. Paid rows are kept as-is."""
    invoice = await CommissionService(db, settings.commission_policy).assign_invoice_employees(
        invoice_id,
        [
            RoleAssignmentInput(employee_id=a.employee_id, role=a.role, notes=a.notes)
            for a in payload.assignments
        ],
    )
    await db.commit()
    return [InvoiceAssignmentResponse.model_validate(a) for a in invoice.employee_assignments]


@router.get(
    "/{invoice_id}/commissions",
    response_model=CommissionLinesResponse,
    responses={404: {"model": ErrorResponse}},
)
async def invoice_commissions(
    db: DbSession, settings: AppSettings, invoice_id: Annotated[UUID, Path()]
) -> CommissionLinesResponse:
    lines, total = await CommissionService(db, settings.commission_policy).invoice_commissions(
        invoice_id
    )
    return CommissionLinesResponse(
        items=[CommissionLineResponse.model_validate(line) for line in lines],
        total_commission=total,
    )


@router.get(
    "/{invoice_id}/service-assignments",
    response_model=list[ServiceAllocationResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_service_assignments(
    db: DbSession, settings: AppSettings, invoice_id: Annotated[UUID, Path()]
) -> list[ServiceAllocationResponse]:
    allocations = await CommissionService(
        db, settings.commission_policy
    ).list_service_allocations(invoice_id)
    return [_allocation_response(a) for a in allocations]


@router.post(
    "/{invoice_id}/service-assignments",
    response_model=ServiceAllocationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def add_service_assignment(
    db: DbSession,
    settings: AppSettings,
    invoice_id: Annotated[UUID, Path()],
    payload: ServiceAssignmentCreate,
) -> ServiceAllocationResponse:
    """Assign an employee a percentage of a service. Sums above 100% are flagged."""
    allocation = await CommissionService(db, settings.commission_policy).add_service_assignment(
        invoice_id,
        payload.service_id,
        payload.employee_id,
        payload.commission_percentage,
        notes=payload.notes,
    )
    await db.commit()
    return _allocation_response(allocation)


@router.put(
    "/{invoice_id}/service-assignments/{assignment_id}",
    response_model=ServiceAllocationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_service_assignment(
    db: DbSession,
    settings: AppSettings,
    invoice_id: Annotated[UUID, Path()],
    assignment_id: Annotated[UUID, Path()],
    payload: ServiceAssignmentUpdate,
) -> ServiceAllocationResponse:
    allocation = await CommissionService(
        db, settings.commission_policy
    ).update_service_assignment(
        invoice_id,
        assignment_id,
        commission_percentage=payload.commission_percentage,
        notes=payload.notes,
    )
    await db.commit()
    return _allocation_response(allocation)


@router.delete(
    "/{invoice_id}/service-assignments/{assignment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def remove_service_assignment(
    db: DbSession,
    settings: AppSettings,
    invoice_id: Annotated[UUID, Path()],
    assignment_id: Annotated[UUID, Path()],
) -> Response:
    await CommissionService(db, settings.commission_policy).remove_service_assignment(
        invoice_id, assignment_id
    )
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
