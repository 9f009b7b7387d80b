"""Referral commission schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from orderflow.models.enums import ReferralStatus
from orderflow.services.referral_service import ReferralItem, ReferralSummary
from orderflow.utils.money import to_decimal


class ReferralTrackingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    referrer_id: int
    referred_user_id: int | None = None
    order_id: int | None = None
    commission_rate: Decimal
    commission_amount: Decimal
    commission_paid_out: Decimal
    status: ReferralStatus
    created_at: datetime


class ReferralItemResponse(ReferralTrackingResponse):
    order_total: Decimal
    paid_amount: Decimal
    available: Decimal
    pending: Decimal

    @classmethod
    def from_item(cls, item: ReferralItem) -> "ReferralItemResponse":
        base = ReferralTrackingResponse.model_validate(item.tracking).model_dump()
        return cls(
            **base,
            order_total=item.order_total,
            paid_amount=item.paid_amount,
            available=to_decimal(item.breakdown.available),
            pending=to_decimal(item.breakdown.pending),
        )


class ReferralSummaryResponse(BaseModel):
    link: str | None = None
    referral_code: str | None = None
    referrals: int
    earned: Decimal
    available: Decimal
    pending: Decimal
    items: list[ReferralItemResponse]

    @classmethod
    def from_summary(
        cls,
        summary: ReferralSummary,
        referral_code: str | None = None,
        link: str | None = None,
    ) -> "ReferralSummaryResponse":
        return cls(
            link=link,
            referral_code=referral_code,
            referrals=summary.referrals,
            earned=summary.earned,
            available=summary.available,
            pending=summary.pending,
            items=[ReferralItemResponse.from_item(item) for item in summary.items],
        )
