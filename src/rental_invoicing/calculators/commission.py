"""Commission allocation for staff assigned to invoices and services."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

from rental_invoicing.calculators.numeric import ZERO, round_to_cents, safe_parse_number
from rental_invoicing.calculators.types import AssignmentRole, CommissionShare
from rental_invoicing.config import CommissionPolicy

HUNDRED = Decimal("100")

# Quantum for stored percentages (NUMERIC(7, 4))
PERCENT_PRECISION = Decimal("0.0001")


class CommissionCalculator:
    """Derives commission amounts from a base amount and a percentage.

    Invoice-level roles (base = invoice total due):
    - organizer: fixed policy percentage each, not shared
    - setup: policy pool split equally among all setup assignees

    Service-level assignments (base = service amount - discount) carry an
    arbitrary percentage each. Totals above 100% are flagged, not rejected.
    """

    @staticmethod
    def calculate_commission(base_amount: Any, percentage: Any) -> Decimal:
        """base_amount * percentage / 100, rounded to cents."""
        base = safe_parse_number(base_amount)
        pct = safe_parse_number(percentage)
        return round_to_cents(base * pct / HUNDRED)

    @staticmethod
    def role_percentages(
        roles: Sequence[str], policy: CommissionPolicy
    ) -> list[Decimal]:
        """Commission percentage for each role, in input order."""
        setup_count = sum(1 for r in roles if r == AssignmentRole.SETUP.value)
        setup_each = policy.setup_pool_percentage / setup_count if setup_count else ZERO

        percentages: list[Decimal] = []
        for role in roles:
            if role == AssignmentRole.ORGANIZER.value:
                percentages.append(policy.organizer_percentage)
            elif role == AssignmentRole.SETUP.value:
                percentages.append(setup_each)
            else:
                raise ValueError(f"Unknown assignment role '{role}'")
        return percentages

    @staticmethod
    def allocate_invoice_roles(
        roles: Sequence[str],
        base_amount: Any,
        policy: CommissionPolicy,
    ) -> list[CommissionShare]:
        """Compute one share per role assignment against the invoice total."""
        base = safe_parse_number(base_amount)
        percentages = CommissionCalculator.role_percentages(roles, policy)
        return [
            CommissionShare(
                role=role,
                commission_percentage=pct.quantize(PERCENT_PRECISION),
                base_amount=base,
                commission_amount=CommissionCalculator.calculate_commission(base, pct),
            )
            for role, pct in zip(roles, percentages)
        ]

    @staticmethod
    def service_base_amount(service: Any) -> Decimal:
        """Net amount of a service: amount - discount."""
        if isinstance(service, dict):
            amount, discount = service.get("amount"), service.get("discount")
        else:
            amount, discount = getattr(service, "amount", None), getattr(service, "discount", None)
        return safe_parse_number(amount) - safe_parse_number(discount)

    @staticmethod
    def allocate_service_share(service: Any, percentage: Any) -> CommissionShare:
        base = CommissionCalculator.service_base_amount(service)
        pct = safe_parse_number(percentage)
        return CommissionShare(
            role=None,
            commission_percentage=pct,
            base_amount=base,
            commission_amount=CommissionCalculator.calculate_commission(base, pct),
        )

    @staticmethod
    def total_percentage(percentages: Iterable[Any]) -> Decimal:
        total = ZERO
        for pct in percentages:
            total += safe_parse_number(pct)
        return total

    @staticmethod
    def is_over_allocated(percentages: Iterable[Any]) -> bool:
        """True when the combined percentage exceeds 100."""
        return CommissionCalculator.total_percentage(percentages) > HUNDRED
