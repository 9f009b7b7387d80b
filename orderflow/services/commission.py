"""Commission breakdown calculator.

Commission accrues proportionally to how much of the order has actually been
paid (approved milestones), capped at the full order. Every caller that needs
available/pending figures goes through :func:`calculate_commission_breakdown`.
"""

from __future__ import annotations

from dataclasses import dataclass

from orderflow.utils.money import MoneyInput, to_number


@dataclass(frozen=True)
class CommissionBreakdown:
    earned_so_far: float
    available: float
    pending: float


def calculate_commission_breakdown(
    commission_amount: MoneyInput,
    commission_paid_out: MoneyInput,
    order_total: MoneyInput,
    paid_amount: MoneyInput,
) -> CommissionBreakdown:
    commission = to_number(commission_amount)
    paid_out = to_number(commission_paid_out)
    total = to_number(order_total)
    paid = to_number(paid_amount)

    ratio = min(paid / total, 1.0) if total > 0 else 0.0
    earned_so_far = commission * ratio
    available = max(earned_so_far - paid_out, 0.0)
    # Whatever has been paid out is no longer pending, even if it ran ahead of earnings.
    pending = max(commission - max(earned_so_far, paid_out), 0.0)
    return CommissionBreakdown(earned_so_far=earned_so_far, available=available, pending=pending)
