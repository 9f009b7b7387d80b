"""Quote request/response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from orderflow.models.enums import ProjectStatus, QuoteStatus


class PlanPhaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=255)
    group: ProjectStatus = ProjectStatus.REQUIREMENTS
    description: str | None = Field(default=None, max_length=20000)
    due_date: datetime | None = None
    order_index: int | None = Field(default=None, ge=0)


class PlanPaymentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str = Field(min_length=1, max_length=255)
    amount: Decimal
    due_date: datetime | None = None
    before_phase_key: str | None = Field(default=None, max_length=64)


class QuotePlanSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_title: str | None = Field(default=None, max_length=255)
    project_description: str | None = Field(default=None, max_length=20000)
    service_ref: str | None = Field(default=None, max_length=120)
    delivery_estimate: str | None = Field(default=None, max_length=255)
    timeline: str | None = Field(default=None, max_length=255)
    payment_notes: str | None = Field(default=None, max_length=20000)
    phases: list[PlanPhaseSchema] = Field(default_factory=list)
    payments: list[PlanPaymentSchema] = Field(default_factory=list)


class QuoteIssueRequest(BaseModel):
    request_id: int = Field(ge=1)
    amount: Decimal
    scope: str = Field(min_length=1, max_length=20000)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    expires_at: datetime | None = None
    plan: QuotePlanSchema | None = None
    send_now: bool = False


class QuoteRedeemRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    referral_code: str | None = Field(default=None, max_length=32)


class QuoteDecisionRequest(BaseModel):
    token: str | None = Field(default=None, max_length=256)
    referral_code: str | None = Field(default=None, max_length=32)


class QuoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    amount: Decimal
    currency: str
    scope: str
    status: QuoteStatus
    expires_at: datetime
    sent_at: datetime | None = None
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    archived_at: datetime | None = None
    created_at: datetime
    plan: QuotePlanSchema | None = None


class IssuedQuoteResponse(BaseModel):
    quote: QuoteResponse
    token: str
    magic_link: str


class AcceptedQuoteResponse(BaseModel):
    id: int
    status: QuoteStatus
    order_id: int
    project_id: int
    created: bool
