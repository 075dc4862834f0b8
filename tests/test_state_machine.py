"""Tests for invoice status state machine."""

import pytest

from rental_invoicing.services.state_machine import (
    InvalidTransitionError,
    InvoiceStateMachine,
    InvoiceStatus,
    normalize_status,
)


class TestInvoiceStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        # draft → unpaid (issued)
        assert InvoiceStateMachine.can_transition("draft", "unpaid") is True

        # unpaid → paid
        assert InvoiceStateMachine.can_transition("unpaid", "paid") is True

        # paid → unpaid (payment reversed)
        assert InvoiceStateMachine.can_transition("paid", "unpaid") is True

        # cancelled → unpaid (reinstated)
        assert InvoiceStateMachine.can_transition("cancelled", "unpaid") is True

    def test_invalid_transitions(self):
        # Can't pay a draft
        assert InvoiceStateMachine.can_transition("draft", "paid") is False

        # Nothing returns to draft
        assert InvoiceStateMachine.can_transition("unpaid", "draft") is False
        assert InvoiceStateMachine.can_transition("cancelled", "draft") is False

        # Cancelled can't jump to paid
        assert InvoiceStateMachine.can_transition("cancelled", "paid") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            InvoiceStateMachine.validate_transition("draft", "paid")

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "paid"

    def test_get_next_statuses(self):
        assert InvoiceStateMachine.get_next_statuses("unpaid") == ["paid", "cancelled"]
        assert InvoiceStateMachine.get_next_statuses("bogus") == []

    def test_calendar_visibility(self):
        assert InvoiceStateMachine.is_calendar_visible("unpaid") is True
        assert InvoiceStateMachine.is_calendar_visible("cancelled") is False

    def test_commission_eligibility(self):
        assert InvoiceStateMachine.counts_for_commission("paid") is True
        assert InvoiceStateMachine.counts_for_commission("unpaid") is False


class TestNormalizeStatus:
    def test_sent_is_unpaid(self):
        assert normalize_status("sent") == InvoiceStatus.UNPAID.value

    def test_case_and_whitespace(self):
        assert normalize_status(" PAID ") == "paid"

    def test_unknown_rejected(self):
        with pytest.raises(ValueError):
            normalize_status("overdue")
