"""Invoice status state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class InvoiceStatus(str, Enum):
    """Invoice status values."""

    DRAFT = "draft"
    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"


# Labels accepted on input and mapped to a canonical status
STATUS_ALIASES: dict[str, str] = {
    "sent": InvoiceStatus.UNPAID.value,
}


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


def normalize_status(status: str) -> str:
    """Lowercase a status label and resolve legacy aliases.

    Raises ValueError for labels outside the canonical set.
    """
    value = (status or "").strip().lower()
    value = STATUS_ALIASES.get(value, value)
    if value not in {s.value for s in InvoiceStatus}:
        raise ValueError(f"Unknown invoice status '{status}'")
    return value


class InvoiceStateMachine:
    """State machine for invoice status transitions.

    Allowed transitions:
    - draft → unpaid (issued)
    - draft → cancelled
    - unpaid → paid
    - unpaid → cancelled
    - paid → unpaid (payment reversed)
    - paid → cancelled
    - cancelled → unpaid (reinstated)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        InvoiceStatus.DRAFT: [InvoiceStatus.UNPAID, InvoiceStatus.CANCELLED],
        InvoiceStatus.UNPAID: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
        InvoiceStatus.PAID: [InvoiceStatus.UNPAID, InvoiceStatus.CANCELLED],
        InvoiceStatus.CANCELLED: [InvoiceStatus.UNPAID],
    }

    # Statuses shown on the rental calendar
    CALENDAR_VISIBLE = {
        InvoiceStatus.DRAFT,
        InvoiceStatus.UNPAID,
        InvoiceStatus.PAID,
    }

    # Statuses whose totals count toward commission summaries
    COMMISSION_ELIGIBLE = {
        InvoiceStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return [s.value for s in cls.VALID_TRANSITIONS.get(current_status, [])]

    @classmethod
    def is_calendar_visible(cls, status: str) -> bool:
        return status in cls.CALENDAR_VISIBLE

    @classmethod
    def counts_for_commission(cls, status: str) -> bool:
        return status in cls.COMMISSION_ELIGIBLE
