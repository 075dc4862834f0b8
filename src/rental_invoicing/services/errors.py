"""Domain errors raised by the service layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ServiceError(Exception):
    """Base for errors the API maps to a client response."""

    code = "SERVICE_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class NotFoundError(ServiceError):
    """Raised when a referenced row does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} '{entity_id}' not found",
            {"entity": entity, "id": str(entity_id)},
        )


class ConflictError(ServiceError):
    """Raised when a write would violate a business rule on existing data."""

    code = "CONFLICT"


@dataclass(frozen=True)
class FieldError:
    """One failed business-rule check on a request field."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class InvoiceValidationError(ServiceError):
    """Raised when an invoice payload fails business-rule validation."""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        super().__init__(
            "; ".join(f"{e.field}: {e.message}" for e in errors) or "Invalid invoice",
            {"errors": [e.to_dict() for e in errors]},
        )


class InvoiceNumberExhaustedError(ServiceError):
    """Raised when no unused invoice number was found within the attempt limit."""

    code = "INVOICE_NUMBER_EXHAUSTED"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a unique invoice number after {attempts} attempts",
            {"attempts": attempts},
        )
