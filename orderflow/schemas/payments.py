"""Milestone payment schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from orderflow.models.enums import MilestoneStatus


class ProofSubmitRequest(BaseModel):
    project_id: int = Field(ge=1)
    label: str = Field(min_length=1, max_length=255)
    amount: Decimal | None = None
    proof_ref: str | None = Field(default=None, max_length=1024)


class ProofAttachRequest(BaseModel):
    proof_ref: str = Field(min_length=1, max_length=1024)


class ReviewRequest(BaseModel):
    decision: str = Field(min_length=1, max_length=20)
    note: str | None = Field(default=None, max_length=2000)


class MilestoneResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    label: str
    amount: Decimal
    status: MilestoneStatus
    proof_ref: str | None = None
    due_date: datetime | None = None
    gate_phase_id: int | None = None
    change_request_id: int | None = None
    reviewed_by_id: int | None = None
    reviewed_at: datetime | None = None
    archived_at: datetime | None = None
    created_at: datetime


class PaidAmountResponse(BaseModel):
    order_id: int
    paid_amount: Decimal
