"""API routes."""

from rental_invoicing.api.routes.customers import router as customers_router
from rental_invoicing.api.routes.employees import router as employees_router
from rental_invoicing.api.routes.equipment import router as equipment_router
from rental_invoicing.api.routes.health import router as health_router
from rental_invoicing.api.routes.invoices import router as invoices_router
from rental_invoicing.api.routes.scanner import router as scanner_router
from rental_invoicing.api.routes.templates import router as templates_router

__all__ = [
    "customers_router",
    "employees_router",
    "equipment_router",
    "health_router",
    "invoices_router",
    "scanner_router",
    "templates_router",
]
