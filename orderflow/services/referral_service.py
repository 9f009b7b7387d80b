"""Referral commission accrual and payout settlement."""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from orderflow.auth.rbac import Actor, require_staff
from orderflow.core.config import get_config
from orderflow.core.exceptions import AuthorizationError, NotFoundError
from orderflow.database.db import insert_or_ignore
from orderflow.models import Order, ReferralStatus, ReferralTracking, User
from orderflow.services.base_service import BaseService
from orderflow.services.commission import CommissionBreakdown, calculate_commission_breakdown
from orderflow.services.milestone_service import paid_amount_for_order
from orderflow.utils.money import CENT, ZERO, MoneyInput, to_decimal

logger = logging.getLogger(__name__)

REFERRAL_CODE_LENGTH = 6
_CODE_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class ReferralItem:
    tracking: ReferralTracking
    order_total: Decimal
    paid_amount: Decimal
    breakdown: CommissionBreakdown


@dataclass
class ReferralSummary:
    referrals: int = 0
    earned: Decimal = ZERO
    available: Decimal = ZERO
    pending: Decimal = ZERO
    items: list[ReferralItem] = field(default_factory=list)


def commission_for(rate: MoneyInput, order_total: MoneyInput) -> Decimal:
    """Commission fixed at grant time: ``rate * total`` rounded half-up to cents."""
    return (Decimal(str(rate)) * to_decimal(order_total)).quantize(CENT, rounding=ROUND_HALF_UP)


class ReferralService(BaseService):
    """Service for referral tracking rows and commission payouts."""

    def _rate_for(self, referrer: User | None) -> Decimal:
        if referrer is not None and referrer.referral_commission_rate is not None:
            return Decimal(str(referrer.referral_commission_rate))
        return Decimal(str(get_config().DEFAULT_COMMISSION_RATE))

    def grant_on_order(self, order: Order, buyer: User, order_total: MoneyInput) -> ReferralTracking | None:
        """Record the buyer's referrer commission for an order.

        Runs inside the caller's transaction and does not commit. At most one
        row per order is ever written, enforced by ``referral_tracking.order_id``.
        """
        referrer_id = buyer.referred_by_id
        if referrer_id is None or referrer_id == buyer.id:
            return None
        referrer = self.db.get(User, referrer_id)
        if referrer is None:
            return None

        rate = self._rate_for(referrer)
        created = insert_or_ignore(
            self.db,
            ReferralTracking,
            {
                "referrer_id": referrer.id,
                "referred_user_id": buyer.id,
                "order_id": order.id,
                "commission_rate": rate,
                "commission_amount": commission_for(rate, order_total),
                "commission_paid_out": ZERO,
                "status": ReferralStatus.EARNED,
            },
            conflict_columns=["order_id"],
        )
        tracking = self.db.query(ReferralTracking).filter(ReferralTracking.order_id == order.id).one()
        if created:
            logger.info(
                "referral.commission_granted",
                extra={
                    "event": "referral.commission_granted",
                    "tracking_id": tracking.id,
                    "order_id": order.id,
                    "referrer_id": referrer.id,
                    "commission_amount": str(tracking.commission_amount),
                },
            )
        return tracking

    def ensure_referral_signup(self, referrer_id: int, referred_user_id: int) -> ReferralTracking | None:
        """PENDING, order-less tracking row linking a referrer to a new sign-up; does not commit."""
        if referrer_id == referred_user_id:
            return None
        existing = (
            self.db.query(ReferralTracking)
            .filter(
                ReferralTracking.referrer_id == referrer_id,
                ReferralTracking.referred_user_id == referred_user_id,
                ReferralTracking.order_id.is_(None),
            )
            .first()
        )
        if existing is not None:
            return existing
        tracking = ReferralTracking(
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
            commission_rate=self._rate_for(self.db.get(User, referrer_id)),
            commission_amount=ZERO,
            commission_paid_out=ZERO,
            status=ReferralStatus.PENDING,
        )
        self.db.add(tracking)
        self.db.flush()
        return tracking

    def ensure_referral_code(self, user_id: int) -> str:
        user = self._get(User, user_id, lock=True)
        if user.referral_code:
            return user.referral_code
        while True:
            code = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
            taken = self.db.query(User.id).filter(User.referral_code == code).first()
            if taken is None:
                break
        user.referral_code = code
        self.commit()
        return code

    def find_referrer(self, referral_code: str | None) -> User | None:
        if not referral_code or not referral_code.strip():
            return None
        return self.db.query(User).filter(User.referral_code == referral_code.strip()).first()

    def _item_for(self, tracking: ReferralTracking) -> ReferralItem:
        if tracking.order_id is None:
            order_total = ZERO
            paid = ZERO
        else:
            order = tracking.order or self.db.get(Order, tracking.order_id)
            order_total = to_decimal(order.total_amount)
            paid = paid_amount_for_order(self.db, tracking.order_id)
        breakdown = calculate_commission_breakdown(
            commission_amount=tracking.commission_amount,
            commission_paid_out=tracking.commission_paid_out,
            order_total=order_total,
            paid_amount=paid,
        )
        return ReferralItem(tracking=tracking, order_total=order_total, paid_amount=paid, breakdown=breakdown)

    def _settle(self, tracking: ReferralTracking) -> Decimal:
        """Pay out the currently available commission; returns the amount settled."""
        if tracking.order_id is None or to_decimal(tracking.commission_amount) <= ZERO:
            return ZERO
        item = self._item_for(tracking)
        available = to_decimal(item.breakdown.available)
        if available <= ZERO:
            return ZERO

        commission = to_decimal(tracking.commission_amount)
        paid_out = to_decimal(tracking.commission_paid_out)
        next_paid_out = min(paid_out + available, commission)
        tracking.commission_paid_out = next_paid_out
        tracking.status = ReferralStatus.PAID_OUT if next_paid_out >= commission else ReferralStatus.EARNED
        return next_paid_out - paid_out

    def request_payout(self, referrer_id: int, actor: Actor) -> ReferralSummary:
        if actor.user_id != referrer_id:
            raise AuthorizationError("Only the referrer may request this payout.")

        rows = (
            self.db.query(ReferralTracking)
            .filter(ReferralTracking.referrer_id == referrer_id, ReferralTracking.order_id.is_not(None))
            .order_by(ReferralTracking.id)
            .with_for_update()
            .all()
        )
        settled_total = ZERO
        for tracking in rows:
            settled = self._settle(tracking)
            if settled > ZERO:
                settled_total += settled
                self._audit(actor.user_id, "referral.payout", "referral_tracking", tracking.id, note=str(settled))
        self.commit()

        logger.info(
            "referral.payout_settled",
            extra={
                "event": "referral.payout_settled",
                "referrer_id": referrer_id,
                "settled_total": str(settled_total),
            },
        )
        return self.summarize(referrer_id)

    def admin_payout(self, tracking_id: int, actor: Actor) -> ReferralTracking:
        require_staff(actor, "settle referral payouts")
        tracking = self._get(ReferralTracking, tracking_id, label="Referral", lock=True)
        settled = self._settle(tracking)
        if settled > ZERO:
            self._audit(actor.user_id, "referral.admin_payout", "referral_tracking", tracking.id, note=str(settled))
        self.commit()
        self.db.refresh(tracking)

        logger.info(
            "referral.payout_settled",
            extra={
                "event": "referral.payout_settled",
                "tracking_id": tracking.id,
                "settled_total": str(settled),
                "actor_id": actor.user_id,
            },
        )
        return tracking

    def _summarize_rows(self, rows: list[ReferralTracking]) -> ReferralSummary:
        summary = ReferralSummary()
        referred: set[int] = set()
        for tracking in rows:
            if tracking.referred_user_id is not None:
                referred.add(tracking.referred_user_id)
            item = self._item_for(tracking)
            summary.items.append(item)
            summary.earned += to_decimal(tracking.commission_amount)
            summary.available += to_decimal(item.breakdown.available)
            summary.pending += to_decimal(item.breakdown.pending)
        summary.referrals = len(referred)
        return summary

    def summarize(self, referrer_id: int) -> ReferralSummary:
        if self.db.get(User, referrer_id) is None:
            raise NotFoundError(f"User {referrer_id} not found.")
        rows = (
            self.db.query(ReferralTracking)
            .filter(ReferralTracking.referrer_id == referrer_id)
            .order_by(ReferralTracking.created_at.desc(), ReferralTracking.id.desc())
            .all()
        )
        return self._summarize_rows(rows)

    def list_all(self, actor: Actor) -> ReferralSummary:
        require_staff(actor, "view all referrals")
        rows = (
            self.db.query(ReferralTracking)
            .order_by(ReferralTracking.created_at.desc(), ReferralTracking.id.desc())
            .all()
        )
        return self._summarize_rows(rows)
