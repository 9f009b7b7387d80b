"""Order endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Header, status

from orderflow.api.v1._authz import require_actor, to_http_exception
from orderflow.core.exceptions import OrderflowError
from orderflow.schemas.common import ArchiveRequest
from orderflow.schemas.orders import (
    OrderCreateRequest,
    OrderResponse,
    OrderStatusUpdateRequest,
    OrderTotalCorrectionRequest,
)
from orderflow.schemas.payments import PaidAmountResponse
from orderflow.services.milestone_service import MilestoneService
from orderflow.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def place_order(
    payload: OrderCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> OrderResponse:
    actor = require_actor(authorization, scopes=["orders.place"])
    try:
        with OrderService() as service:
            order = service.place_order(
                buyer_id=actor.user_id,
                total_amount=payload.total_amount,
                service_ref=payload.service_ref,
            )
            return OrderResponse.model_validate(order)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("", response_model=list[OrderResponse])
def list_orders(
    include_archived: bool = False,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[OrderResponse]:
    actor = require_actor(authorization, scopes=["orders.read"])
    with OrderService() as service:
        orders = service.list_orders(actor=actor, include_archived=include_archived)
        return [OrderResponse.model_validate(order) for order in orders]


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> OrderResponse:
    actor = require_actor(authorization, scopes=["orders.read"])
    try:
        with OrderService() as service:
            return OrderResponse.model_validate(service.get_order(order_id, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{order_id}/paid-amount", response_model=PaidAmountResponse)
def get_paid_amount(
    order_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> PaidAmountResponse:
    actor = require_actor(authorization, scopes=["orders.read"])
    try:
        with MilestoneService() as service:
            paid = service.paid_amount_for_order(order_id, actor=actor)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc
    return PaidAmountResponse(order_id=order_id, paid_amount=paid)


@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> OrderResponse:
    actor = require_actor(authorization, scopes=["orders.manage"])
    try:
        with OrderService() as service:
            return OrderResponse.model_validate(service.update_status(order_id, status=payload.status, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{order_id}/total", response_model=OrderResponse)
def correct_order_total(
    order_id: int,
    payload: OrderTotalCorrectionRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> OrderResponse:
    actor = require_actor(authorization, scopes=["orders.manage"])
    try:
        with OrderService() as service:
            order = service.correct_total(order_id, new_total=payload.total_amount, actor=actor, reason=payload.reason)
            return OrderResponse.model_validate(order)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{order_id}/archive", response_model=OrderResponse)
def archive_order(
    order_id: int,
    payload: ArchiveRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> OrderResponse:
    actor = require_actor(authorization, scopes=["orders.manage"])
    try:
        with OrderService() as service:
            return OrderResponse.model_validate(service.archive(order_id, archived=payload.archived, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc
