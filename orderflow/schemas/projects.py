"""Project, phase, change request and paid revision schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from orderflow.models.enums import ChangeRequestStatus, PhaseStatus, ProjectStatus, RevisionStatus


class PhaseCreateRequest(BaseModel):
    group: ProjectStatus
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=20000)
    due_date: datetime | None = None
    order_index: int | None = Field(default=None, ge=0)


class PhaseStatusUpdateRequest(BaseModel):
    status: PhaseStatus


class PhaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    group: ProjectStatus
    title: str
    description: str | None = None
    due_date: datetime | None = None
    status: PhaseStatus
    order_index: int


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    title: str
    description: str | None = None
    status: ProjectStatus
    created_at: datetime
    phases: list[PhaseResponse] = Field(default_factory=list)


class ChangeRequestCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=20000)
    amount: Decimal | None = None


class ChangeRequestUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=20000)
    amount: Decimal | None = None


class ChangeRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    title: str
    description: str | None = None
    amount: Decimal
    status: ChangeRequestStatus
    created_by_id: int | None = None
    decided_at: datetime | None = None
    created_at: datetime


class RevisionCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    amount: Decimal
    details: str | None = Field(default=None, max_length=20000)


class RevisionUpdateRequest(BaseModel):
    status: RevisionStatus | None = None
    note: str | None = Field(default=None, max_length=2000)
    amount: Decimal | None = None
    session_at: datetime | None = None
    session_duration_minutes: int | None = None
    session_notes: str | None = Field(default=None, max_length=20000)
    session_links: list[str] | str | None = None
    payment_proof_ref: str | None = Field(default=None, max_length=2048)
    client_proposed_at: datetime | None = None
    client_proposed_duration_minutes: int | None = None
    client_proposed_note: str | None = Field(default=None, max_length=2000)
    completed_at: datetime | None = None
    clear_proposal: bool | None = None


class RevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    title: str
    details: str | None = None
    amount: Decimal
    status: RevisionStatus
    session_at: datetime | None = None
    session_duration_minutes: int | None = None
    session_notes: str | None = None
    session_links: list[str] = Field(default_factory=list)
    payment_proof_ref: str | None = None
    client_proposed_at: datetime | None = None
    client_proposed_duration_minutes: int | None = None
    client_proposed_note: str | None = None
    completed_at: datetime | None = None
    created_at: datetime
