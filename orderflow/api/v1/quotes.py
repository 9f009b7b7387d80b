"""Quote endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Header, status

from orderflow.api.v1._authz import optional_actor, require_actor, to_http_exception
from orderflow.core.exceptions import OrderflowError
from orderflow.schemas.common import ArchiveRequest
from orderflow.schemas.quotes import (
    AcceptedQuoteResponse,
    IssuedQuoteResponse,
    QuoteDecisionRequest,
    QuoteIssueRequest,
    QuotePlanSchema,
    QuoteRedeemRequest,
    QuoteResponse,
)
from orderflow.services.quote_service import (
    IssuedQuote,
    PlanPaymentInput,
    PlanPhaseInput,
    QuotePlanInput,
    QuoteService,
)

router = APIRouter(prefix="/quotes", tags=["quotes"])


def _plan_input(plan: QuotePlanSchema | None) -> QuotePlanInput | None:
    if plan is None:
        return None
    return QuotePlanInput(
        project_title=plan.project_title,
        project_description=plan.project_description,
        service_ref=plan.service_ref,
        delivery_estimate=plan.delivery_estimate,
        timeline=plan.timeline,
        payment_notes=plan.payment_notes,
        phases=[PlanPhaseInput(**phase.model_dump()) for phase in plan.phases],
        payments=[PlanPaymentInput(**payment.model_dump()) for payment in plan.payments],
    )


def _issued(result: IssuedQuote) -> IssuedQuoteResponse:
    return IssuedQuoteResponse(
        quote=QuoteResponse.model_validate(result.quote),
        token=result.token,
        magic_link=result.magic_link,
    )


@router.post("", response_model=IssuedQuoteResponse, status_code=status.HTTP_201_CREATED)
def issue_quote(
    payload: QuoteIssueRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> IssuedQuoteResponse:
    actor = require_actor(authorization, scopes=["quotes.manage"])
    try:
        with QuoteService() as service:
            result = service.issue(
                request_id=payload.request_id,
                amount=payload.amount,
                scope=payload.scope,
                actor=actor,
                currency=payload.currency,
                expires_at=payload.expires_at,
                plan=_plan_input(payload.plan),
                send_now=payload.send_now,
            )
            return _issued(result)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("", response_model=list[QuoteResponse])
def list_quotes(
    include_archived: bool = False,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[QuoteResponse]:
    actor = require_actor(authorization, scopes=["quotes.read"])
    with QuoteService() as service:
        quotes = service.list_quotes(actor=actor, include_archived=include_archived)
        return [QuoteResponse.model_validate(quote) for quote in quotes]


@router.post("/redeem", response_model=QuoteResponse)
def redeem_quote(payload: QuoteRedeemRequest) -> QuoteResponse:
    try:
        with QuoteService() as service:
            result = service.redeem(token=payload.token, referral_code=payload.referral_code)
            return QuoteResponse.model_validate(result.quote)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{quote_id}", response_model=QuoteResponse)
def get_quote(
    quote_id: int,
    token: str | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> QuoteResponse:
    actor = optional_actor(authorization, scopes=["quotes.read"])
    try:
        with QuoteService() as service:
            return QuoteResponse.model_validate(service.get_quote(quote_id, actor=actor, token=token))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{quote_id}/send", response_model=IssuedQuoteResponse)
def send_quote(
    quote_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> IssuedQuoteResponse:
    actor = require_actor(authorization, scopes=["quotes.manage"])
    try:
        with QuoteService() as service:
            return _issued(service.send(quote_id, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{quote_id}/accept", response_model=AcceptedQuoteResponse)
def accept_quote(
    quote_id: int,
    payload: QuoteDecisionRequest | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AcceptedQuoteResponse:
    actor = optional_actor(authorization, scopes=["quotes.respond"])
    body = payload or QuoteDecisionRequest()
    try:
        with QuoteService() as service:
            result = service.accept(
                quote_id,
                actor=actor,
                token=body.token,
                referral_code=body.referral_code,
            )
            return AcceptedQuoteResponse(
                id=result.quote.id,
                status=result.quote.status,
                order_id=result.order.id,
                project_id=result.project.id,
                created=result.created,
            )
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{quote_id}/reject", response_model=QuoteResponse)
def reject_quote(
    quote_id: int,
    payload: QuoteDecisionRequest | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> QuoteResponse:
    actor = optional_actor(authorization, scopes=["quotes.respond"])
    body = payload or QuoteDecisionRequest()
    try:
        with QuoteService() as service:
            return QuoteResponse.model_validate(service.reject(quote_id, actor=actor, token=body.token))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{quote_id}/archive", response_model=QuoteResponse)
def archive_quote(
    quote_id: int,
    payload: ArchiveRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> QuoteResponse:
    actor = require_actor(authorization, scopes=["quotes.manage"])
    try:
        with QuoteService() as service:
            return QuoteResponse.model_validate(service.archive(quote_id, archived=payload.archived, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc
