"""Project phase, change request and paid revision endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Header, status

from orderflow.api.v1._authz import require_actor, to_http_exception
from orderflow.core.exceptions import OrderflowError
from orderflow.schemas.projects import (
    ChangeRequestCreateRequest,
    ChangeRequestResponse,
    ChangeRequestUpdateRequest,
    PhaseCreateRequest,
    PhaseResponse,
    PhaseStatusUpdateRequest,
    ProjectResponse,
    RevisionCreateRequest,
    RevisionResponse,
    RevisionUpdateRequest,
)
from orderflow.services.change_request_service import ChangeRequestService
from orderflow.services.phase_service import PhaseService
from orderflow.services.revision_service import RevisionService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ProjectResponse:
    actor = require_actor(authorization, scopes=["projects.read"])
    try:
        with PhaseService() as service:
            return ProjectResponse.model_validate(service.get_project(project_id, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{project_id}/phases", response_model=list[PhaseResponse])
def list_phases(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[PhaseResponse]:
    actor = require_actor(authorization, scopes=["projects.read"])
    try:
        with PhaseService() as service:
            return [PhaseResponse.model_validate(phase) for phase in service.list_phases(project_id, actor=actor)]
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{project_id}/phases", response_model=PhaseResponse, status_code=status.HTTP_201_CREATED)
def add_phase(
    project_id: int,
    payload: PhaseCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> PhaseResponse:
    actor = require_actor(authorization, scopes=["projects.manage"])
    try:
        with PhaseService() as service:
            phase = service.add_phase(
                project_id,
                group=payload.group,
                title=payload.title,
                actor=actor,
                description=payload.description,
                due_date=payload.due_date,
                order_index=payload.order_index,
            )
            return PhaseResponse.model_validate(phase)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{project_id}/phases/{phase_id}", response_model=PhaseResponse)
def update_phase_status(
    project_id: int,
    phase_id: int,
    payload: PhaseStatusUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> PhaseResponse:
    actor = require_actor(authorization, scopes=["projects.manage"])
    try:
        with PhaseService() as service:
            phase = service.set_phase_status(project_id, phase_id, new_status=payload.status, actor=actor)
            return PhaseResponse.model_validate(phase)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{project_id}/changes", response_model=list[ChangeRequestResponse])
def list_changes(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[ChangeRequestResponse]:
    actor = require_actor(authorization, scopes=["projects.read"])
    try:
        with ChangeRequestService() as service:
            changes = service.list_changes(project_id, actor=actor)
            return [ChangeRequestResponse.model_validate(change) for change in changes]
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{project_id}/changes", response_model=ChangeRequestResponse, status_code=status.HTTP_201_CREATED)
def propose_change(
    project_id: int,
    payload: ChangeRequestCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ChangeRequestResponse:
    actor = require_actor(authorization, scopes=["changes.propose"])
    try:
        with ChangeRequestService() as service:
            change = service.propose(
                project_id,
                title=payload.title,
                actor=actor,
                description=payload.description,
                amount=payload.amount,
            )
            return ChangeRequestResponse.model_validate(change)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{project_id}/changes/{change_id}", response_model=ChangeRequestResponse)
def edit_change(
    project_id: int,
    change_id: int,
    payload: ChangeRequestUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ChangeRequestResponse:
    actor = require_actor(authorization, scopes=["changes.decide"])
    fields = payload.model_dump(exclude_unset=True)
    try:
        with ChangeRequestService() as service:
            change = service.edit(change_id, project_id, actor=actor, **fields)
            return ChangeRequestResponse.model_validate(change)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{project_id}/changes/{change_id}/accept", response_model=ChangeRequestResponse)
def accept_change(
    project_id: int,
    change_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ChangeRequestResponse:
    actor = require_actor(authorization, scopes=["changes.decide"])
    try:
        with ChangeRequestService() as service:
            return ChangeRequestResponse.model_validate(service.accept(change_id, project_id, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{project_id}/changes/{change_id}/reject", response_model=ChangeRequestResponse)
def reject_change(
    project_id: int,
    change_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> ChangeRequestResponse:
    actor = require_actor(authorization, scopes=["changes.decide"])
    try:
        with ChangeRequestService() as service:
            return ChangeRequestResponse.model_validate(service.reject(change_id, project_id, actor=actor))
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{project_id}/revisions", response_model=list[RevisionResponse])
def list_revisions(
    project_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[RevisionResponse]:
    actor = require_actor(authorization, scopes=["projects.read"])
    try:
        with RevisionService() as service:
            revisions = service.list_revisions(actor=actor, project_id=project_id)
            return [RevisionResponse.model_validate(revision) for revision in revisions]
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{project_id}/revisions", response_model=RevisionResponse, status_code=status.HTTP_201_CREATED)
def request_revision(
    project_id: int,
    payload: RevisionCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> RevisionResponse:
    actor = require_actor(authorization, scopes=["revisions.request"])
    try:
        with RevisionService() as service:
            revision = service.request_revision(
                project_id,
                title=payload.title,
                amount=payload.amount,
                actor=actor,
                details=payload.details,
            )
            return RevisionResponse.model_validate(revision)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{project_id}/revisions/{revision_id}", response_model=RevisionResponse)
def update_revision(
    project_id: int,
    revision_id: int,
    payload: RevisionUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> RevisionResponse:
    actor = require_actor(authorization, scopes=["revisions.request"])
    fields = payload.model_dump(exclude_unset=True)
    try:
        with RevisionService() as service:
            revision = service.update_revision(revision_id, project_id, actor=actor, **fields)
            return RevisionResponse.model_validate(revision)
    except OrderflowError as exc:
        raise to_http_exception(exc) from exc
