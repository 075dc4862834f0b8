"""Business services for invoicing."""

from rental_invoicing.services.catalog_service import EquipmentService, load_active_catalog
from rental_invoicing.services.commission_service import CommissionService
from rental_invoicing.services.customer_service import CustomerService
from rental_invoicing.services.employee_service import EmployeeService
from rental_invoicing.services.errors import (
    ConflictError,
    FieldError,
    InvoiceNumberExhaustedError,
    InvoiceValidationError,
    NotFoundError,
)
from rental_invoicing.services.invoice_number import generate_invoice_number
from rental_invoicing.services.invoice_service import InvoiceService
from rental_invoicing.services.state_machine import (
    InvalidTransitionError,
    InvoiceStateMachine,
    InvoiceStatus,
    normalize_status,
)
from rental_invoicing.services.template_service import TemplateService

__all__ = [
    "CommissionService",
    "ConflictError",
    "CustomerService",
    "EmployeeService",
    "EquipmentService",
    "FieldError",
    "InvalidTransitionError",
    "InvoiceNumberExhaustedError",
    "InvoiceService",
    "InvoiceStateMachine",
    "InvoiceStatus",
    "InvoiceValidationError",
    "NotFoundError",
    "TemplateService",
    "generate_invoice_number",
    "load_active_catalog",
    "normalize_status",
]
