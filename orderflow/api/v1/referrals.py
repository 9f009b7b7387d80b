"""Referral commission endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Header

from orderflow.api.v1._authz import require_actor, to_http_exception
from orderflow.core.config import get_config
from orderflow.core.exceptions import OrderflowError
from orderflow.schemas.referrals import ReferralSummaryResponse, ReferralTrackingResponse
from orderflow.services.referral_service import ReferralService

router = APIRouter(prefix="/referrals", tags=["referrals"])


def _referral_link(code: str) -> str:
    return f"{get_config().PUBLIC_BASE_URL}/?ref={code}"


@router.get("", response_model=ReferralSummaryResponse)
def my_referrals(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ReferralSummaryResponse:
    actor = require_actor(authorization, scopes=["referrals.read"])
    try:
        with ReferralService() as service:
            code = service.ensure_referral_code(actor.user_id)
            summary = service.summarize(actor.user_id)
            return ReferralSummaryResponse.from_summary(summary, referral_code=code, link=_referral_link(code))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/payout", response_model=ReferralSummaryResponse)
def request_payout(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ReferralSummaryResponse:
    actor = require_actor(authorization, scopes=["referrals.payout"])
    try:
        with ReferralService() as service:
            summary = service.request_payout(actor.user_id, actor=actor)
            return ReferralSummaryResponse.from_summary(summary)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/all", response_model=ReferralSummaryResponse)
def list_all_referrals(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ReferralSummaryResponse:
    actor = require_actor(authorization, scopes=["referrals.admin"])
    try:
        with ReferralService() as service:
            return ReferralSummaryResponse.from_summary(service.list_all(actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{tracking_id}/payout", response_model=ReferralTrackingResponse)
def admin_payout(
    tracking_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ReferralTrackingResponse:
    actor = require_actor(authorization, scopes=["referrals.admin"])
    try:
        with ReferralService() as service:
            return ReferralTrackingResponse.model_validate(service.admin_payout(tracking_id, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc
