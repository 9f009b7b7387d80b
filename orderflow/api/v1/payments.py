"""Milestone payment endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Header, status

from orderflow.api.v1._authz import require_actor, to_http_exception
from orderflow.core.exceptions import OrderflowError
from orderflow.schemas.common import ArchiveRequest
from orderflow.schemas.payments import MilestoneResponse, ProofAttachRequest, ProofSubmitRequest, ReviewRequest
from orderflow.services.milestone_service import MilestoneService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[MilestoneResponse])
def list_payments(
    project_id: int | None = None,
    include_archived: bool = False,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[MilestoneResponse]:
    actor = require_actor(authorization, scopes=["payments.read"])
    with MilestoneService() as service:
        payments = service.list_payments(actor=actor, project_id=project_id, include_archived=include_archived)
        return [MilestoneResponse.model_validate(payment) for payment in payments]


@router.post("", response_model=MilestoneResponse, status_code=status.HTTP_201_CREATED)
def submit_proof(
    payload: ProofSubmitRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> MilestoneResponse:
    actor = require_actor(authorization, scopes=["payments.submit"])
    try:
        with MilestoneService() as service:
            payment = service.submit_proof(
                payload.project_id,
                label=payload.label,
                amount=payload.amount,
                proof_ref=payload.proof_ref,
                actor=actor,
            )
            return MilestoneResponse.model_validate(payment)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{milestone_id}/proof", response_model=MilestoneResponse)
def attach_proof(
    milestone_id: int,
    payload: ProofAttachRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> MilestoneResponse:
    actor = require_actor(authorization, scopes=["payments.submit"])
    try:
        with MilestoneService() as service:
            payment = service.attach_proof(milestone_id, proof_ref=payload.proof_ref, actor=actor)
            return MilestoneResponse.model_validate(payment)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{milestone_id}/review", response_model=MilestoneResponse)
def review_payment(
    milestone_id: int,
    payload: ReviewRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> MilestoneResponse:
    actor = require_actor(authorization, scopes=["payments.review"])
    try:
        with MilestoneService() as service:
            payment = service.review(milestone_id, decision=payload.decision, actor=actor, note=payload.note)
            return MilestoneResponse.model_validate(payment)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{milestone_id}/archive", response_model=MilestoneResponse)
def archive_payment(
    milestone_id: int,
    payload: ArchiveRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> MilestoneResponse:
    actor = require_actor(authorization, scopes=["payments.review"])
    try:
        with MilestoneService() as service:
            payment = service.archive(milestone_id, archived=payload.archived, actor=actor)
            return MilestoneResponse.model_validate(payment)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc
