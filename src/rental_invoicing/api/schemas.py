"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rental_invoicing.rendering.template_config import TemplateConfig
from rental_invoicing.services.state_machine import normalize_status

# Match the Numeric(12, 2) and Numeric(7, 4) columns
MONEY = {"max_digits": 12, "decimal_places": 2}
PERCENTAGE = {"max_digits": 7, "decimal_places": 4}


# ============================================================================
# Common schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


class DeleteResponse(BaseModel):
    """Outcome of a delete that may fall back to deactivation."""

    id: UUID
    deleted: bool
    deactivated: bool


# ============================================================================
# Equipment schemas
# ============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: UUID
    name: str
    description: str | None


class EquipmentCreate(BaseModel):
    """Schema for adding equipment to the catalog."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category_id: UUID | None = None
    daily_rate: Decimal = Field(ge=0, **MONEY)
    weekly_rate: Decimal | None = Field(default=None, ge=0, **MONEY)
    monthly_rate: Decimal | None = Field(default=None, ge=0, **MONEY)
    stock_quantity: int = Field(default=1, ge=0)
    is_active: bool = True


class EquipmentUpdate(BaseModel):
    """Partial update; only fields sent are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    category_id: UUID | None = None
    daily_rate: Decimal | None = Field(default=None, ge=0, **MONEY)
    weekly_rate: Decimal | None = Field(default=None, ge=0, **MONEY)
    monthly_rate: Decimal | None = Field(default=None, ge=0, **MONEY)
    stock_quantity: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class EquipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    equipment_id: UUID
    category_id: UUID | None
    category_name: str | None
    name: str
    description: str | None
    daily_rate: Decimal
    weekly_rate: Decimal | None
    monthly_rate: Decimal | None
    stock_quantity: int
    is_active: bool
    created_at: datetime
    updated_at: datetime | None


class EquipmentListResponse(BaseModel):
    items: list[EquipmentResponse]
    total: int
    page: int
    page_size: int


# ============================================================================
# Customer schemas
# ============================================================================


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID
    name: str
    phone: str | None
    email: str | None
    address: str | None
    created_at: datetime


class CustomerListResponse(BaseModel):
    items: list[CustomerResponse]
    total: int
    page: int
    page_size: int


# ============================================================================
# Employee schemas
# ============================================================================


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    is_active: bool = True


class EmployeeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    is_active: bool | None = None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    name: str
    email: str | None
    phone: str | None
    is_active: bool
    created_at: datetime


class EmployeeListResponse(BaseModel):
    items: list[EmployeeResponse]
    total: int
    page: int
    page_size: int


class CommissionLineResponse(BaseModel):
    """One commission row, invoice-level or service-level."""

    model_config = ConfigDict(from_attributes=True)

    assignment_id: UUID
    kind: str
    employee_id: UUID
    employee_name: str
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


class CommissionLinesResponse(BaseModel):
    items: list[CommissionLineResponse]
    total_commission: Decimal


class CommissionLinePage(BaseModel):
    items: list[CommissionLineResponse]
    total: int
    page: int
    page_size: int


class MarkPaidRequest(BaseModel):
    payment_batch_id: str | None = Field(default=None, max_length=100)
    notes: str | None = None


class PaymentBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    payment_batch_id: str
    paid_at: datetime
    assignments_paid: int
    total_amount: Decimal


class UnpaidSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_name: str
    email: str | None
    total_owed: Decimal
    assignment_count: int
    oldest_invoice_date: date | None
    newest_invoice_date: date | None


class PaidBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_name: str
    email: str | None
    payment_batch_id: str | None
    paid_at: datetime | None
    notes: str | None
    total_paid: Decimal
    assignment_count: int
    oldest_invoice_date: date | None
    newest_invoice_date: date | None
    lines: list[CommissionLineResponse]


# ============================================================================
# Invoice schemas
# ============================================================================


class LineItemRequest(BaseModel):
    """Equipment line. Send equipment_id for a catalog item, or equipment_name."""

    equipment_id: UUID | None = None
    equipment_name: str | None = None
    quantity: int = Field(default=1, ge=1)
    rental_days: int = Field(default=1, ge=1)
    rate: Decimal | None = Field(default=None, ge=0, **MONEY)
    item_discount_amount: Decimal = Field(default=Decimal("0"), ge=0, **MONEY)


class ServiceLineRequest(BaseModel):
    """Service line. service_id keeps an existing service and its assignments."""

    service_id: UUID | None = None
    name: str = ""
    amount: Decimal = Field(default=Decimal("0"), ge=0, **MONEY)
    discount: Decimal = Field(default=Decimal("0"), ge=0, **MONEY)


class CustomerData(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class InvoiceRequest(BaseModel):
    """Schema for creating or replacing an invoice."""

    customer_id: UUID | None = None
    customer: CustomerData | None = None
    rental_start_date: date
    rental_duration_days: int = Field(default=1, ge=1)
    items: list[LineItemRequest] = Field(default_factory=list)
    services: list[ServiceLineRequest] = Field(default_factory=list)
    transport_amount: Decimal = Field(default=Decimal("0"), ge=0, **MONEY)
    transport_discount: Decimal = Field(default=Decimal("0"), ge=0, **MONEY)
    tax_amount: Decimal | None = Field(default=None, ge=0, **MONEY)
    template_id: UUID | None = None
    status: str | None = None
    notes: str | None = None

    @field_validator("status")
    @classmethod
    def _status(cls, value: str | None) -> str | None:
        return normalize_status(value) if value else None


class StatusChangeRequest(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        return normalize_status(value)


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    equipment_id: UUID | None
    position: int
    equipment_name: str
    quantity: int
    rate: Decimal
    rental_days: int
    item_discount_amount: Decimal
    rate_source: str
    line_total: Decimal


class ServiceAssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    assignment_id: UUID
    employee_id: UUID
    employee_name: str | None
    commission_percentage: Decimal
    base_amount: Decimal
    commission_amount: Decimal
    paid_at: datetime | None
    payment_batch_id: str | None
    notes: str | None


class InvoiceServiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service_id: UUID
    position: int
    name: str
    amount: Decimal
    discount: Decimal
    total: Decimal
    employee_assignments: list[ServiceAssignmentResponse]


class InvoiceAssignmentResponse(ServiceAssignmentResponse):
    role: str


class InvoiceResponse(BaseModel):
    """Schema for invoice detail."""

    model_config = ConfigDict(from_attributes=True)

    invoice_id: UUID
    invoice_number: str
    customer_id: UUID
    customer: CustomerResponse | None
    template_id: UUID | None
    rental_start_date: date
    rental_duration_days: int
    status: str
    transport_amount: Decimal
    transport_discount: Decimal
    equipment_subtotal: Decimal
    services_total: Decimal
    invoice_subtotal: Decimal
    vat_amount: Decimal
    total_due: Decimal
    notes: str | None
    items: list[InvoiceItemResponse]
    services: list[InvoiceServiceResponse]
    employee_assignments: list[InvoiceAssignmentResponse]
    created_at: datetime
    updated_at: datetime | None


class InvoiceListResponse(BaseModel):
    items: list[InvoiceResponse]
    total: int
    page: int
    page_size: int


class CalendarEquipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    quantity: int


class CalendarEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_id: UUID
    invoice_number: str
    title: str
    start: date
    end: date
    duration: int
    total_due: Decimal
    status: str
    customer_name: str | None
    equipment: list[CalendarEquipmentResponse]


class TotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    equipment_subtotal: Decimal
    transport_amount: Decimal
    transport_discount: Decimal
    services_total: Decimal
    invoice_subtotal: Decimal
    vat_amount: Decimal
    total_due: Decimal


class TotalsAuditResponse(BaseModel):
    """Stored total against a fresh calculation. Advisory only."""

    model_config = ConfigDict(from_attributes=True)

    invoice_id: UUID
    invoice_number: str
    stored_total_due: Decimal
    calculated: TotalsResponse
    consistent: bool
    difference: Decimal


class TemplatePreviewRequest(BaseModel):
    config: TemplateConfig = Field(default_factory=TemplateConfig)


# ============================================================================
# Commission assignment schemas
# ============================================================================


class RoleAssignmentRequest(BaseModel):
    employee_id: UUID
    role: str
    notes: str | None = None


class AssignEmployeesRequest(BaseModel):
    """Replaces every unpaid invoice-level assignment."""

    assignments: list[RoleAssignmentRequest] = Field(default_factory=list)


class ServiceAssignmentCreate(BaseModel):
    service_id: UUID
    employee_id: UUID
    commission_percentage: Decimal = Field(ge=0, **PERCENTAGE)
    notes: str | None = None


class ServiceAssignmentUpdate(BaseModel):
    commission_percentage: Decimal | None = Field(default=None, ge=0, **PERCENTAGE)
    notes: str | None = None


class ServiceAllocationResponse(BaseModel):
    """A service with its assignments. over_allocated flags a sum above 100%."""

    service_id: UUID
    service_name: str
    amount: Decimal
    discount: Decimal
    total_percentage: Decimal
    over_allocated: bool
    assignments: list[ServiceAssignmentResponse]


# ============================================================================
# Template schemas
# ============================================================================


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    config: TemplateConfig = Field(default_factory=TemplateConfig)
    is_default: bool = False


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    config: TemplateConfig | None = None
    is_default: bool | None = None


class TemplateResponse(BaseModel):
    template_id: UUID
    name: str
    is_default: bool
    config: TemplateConfig
    created_at: datetime
    updated_at: datetime | None


# ============================================================================
# Scanner schemas
# ============================================================================


class ParseTextRequest(BaseModel):
    text: str = Field(min_length=1)
