"""Order schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from orderflow.models.enums import OrderStatus


class OrderCreateRequest(BaseModel):
    service_ref: str = Field(min_length=1, max_length=120)
    total_amount: Decimal


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderTotalCorrectionRequest(BaseModel):
    total_amount: Decimal
    reason: str = Field(min_length=1, max_length=2000)


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    quote_id: int | None = None
    service_ref: str | None = None
    total_amount: Decimal
    status: OrderStatus
    archived_at: datetime | None = None
    created_at: datetime
