"""SQLAlchemy ORM models for the invoicing service."""

from rental_invoicing.models.assignment import (
    InvoiceEmployeeAssignment,
    ServiceEmployeeAssignment,
)
from rental_invoicing.models.base import Base
from rental_invoicing.models.catalog import Equipment, EquipmentCategory
from rental_invoicing.models.customer import Customer
from rental_invoicing.models.employee import Employee
from rental_invoicing.models.invoice import Invoice, InvoiceItem, InvoiceService
from rental_invoicing.models.template import InvoiceTemplate

__all__ = [
    "Base",
    "Customer",
    "Employee",
    "Equipment",
    "EquipmentCategory",
    "Invoice",
    "InvoiceEmployeeAssignment",
    "InvoiceItem",
    "InvoiceService",
    "InvoiceTemplate",
    "ServiceEmployeeAssignment",
]
