"""Paid revision requests: priced revision sessions booked against a project."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from orderflow.auth.rbac import Actor
from orderflow.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from orderflow.models import Order, PaidRevisionRequest, Project, RevisionStatus
from orderflow.models.base import utcnow
from orderflow.orchestration.state_machine import REVISION_MACHINE
from orderflow.services.base_service import BaseService
from orderflow.services.notification_service import NotificationService
from orderflow.utils.money import MoneyInput, require_positive
from orderflow.utils.text import optional_text, sanitize_text

logger = logging.getLogger(__name__)

CLIENT_FIELDS = frozenset(
    {"client_proposed_at", "client_proposed_duration_minutes", "client_proposed_note", "payment_proof_ref"}
)
STAFF_FIELDS = CLIENT_FIELDS | {
    "status",
    "amount",
    "session_at",
    "session_duration_minutes",
    "session_notes",
    "session_links",
    "completed_at",
    "clear_proposal",
    "note",
}
_TERMINAL = frozenset({RevisionStatus.DELIVERED, RevisionStatus.REJECTED})


def normalize_links(value: list[str] | str | None) -> list[str]:
    """Accept a list or a newline/comma separated string; drop blanks."""
    if value is None:
        return []
    items = value if isinstance(value, list) else re.split(r"[\n,]", value)
    return [cleaned for cleaned in (sanitize_text(item, max_len=2048) for item in items) if cleaned]


def _duration(value: int | None, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or int(value) <= 0:
        raise ValidationError(f"{field} must be a positive number of minutes.", field=field)
    return int(value)


class RevisionService(BaseService):
    """Service for requesting, scheduling and delivering paid revisions."""

    def __init__(self, db: Session | None = None, notifier: NotificationService | None = None) -> None:
        super().__init__(db)
        self.notifier = notifier or NotificationService()

    def _get_revision(self, revision_id: int, project_id: int) -> PaidRevisionRequest:
        revision = (
            self.db.query(PaidRevisionRequest)
            .filter(PaidRevisionRequest.id == revision_id, PaidRevisionRequest.project_id == project_id)
            .with_for_update()
            .first()
        )
        if revision is None:
            raise NotFoundError(f"Revision {revision_id} not found in project {project_id}.")
        return revision

    def request_revision(
        self,
        project_id: int,
        title: str,
        amount: MoneyInput,
        actor: Actor,
        details: str | None = None,
    ) -> PaidRevisionRequest:
        project = self._get(Project, project_id)
        self._require_project_access(project, actor, action="request revisions for this project")

        clean_title = sanitize_text(title, max_len=255)
        if not clean_title:
            raise ValidationError("title is required.", field="title")
        price = require_positive(amount, field="amount")

        revision = PaidRevisionRequest(
            project_id=project.id,
            title=clean_title,
            details=optional_text(details),
            amount=price,
            status=RevisionStatus.PENDING,
            session_links=[],
            created_by_id=actor.user_id,
        )
        self.db.add(revision)
        self.db.flush()
        self._audit(actor.user_id, "revision.requested", "revision", revision.id, note=clean_title)
        self.commit()
        self.db.refresh(revision)

        logger.info(
            "revision.requested",
            extra={
                "event": "revision.requested",
                "revision_id": revision.id,
                "project_id": project.id,
                "amount": str(price),
                "actor_id": actor.user_id,
            },
        )
        self.notifier.notify_admins(
            subject="New paid revision request",
            body=f"Project {project.id}: '{revision.title}' requested for {price}.",
            actor_id=actor.user_id,
            revision_id=revision.id,
        )
        return revision

    def update_revision(self, revision_id: int, project_id: int, actor: Actor, **fields: Any) -> PaidRevisionRequest:
        """Apply a partial update.

        Clients owning the project may propose a session time and attach payment
        proof while the revision is open. Staff may additionally move the status,
        reprice, schedule the session and record delivery; moving to DELIVERED
        stamps ``completed_at`` unless one is given.
        """
        if not fields:
            raise ValidationError("Nothing to update.")
        project = self._get(Project, project_id)
        self._require_project_access(project, actor, action="update revisions for this project")
        allowed = STAFF_FIELDS if actor.is_staff else CLIENT_FIELDS
        forbidden = sorted(set(fields) - allowed)
        if forbidden:
            if set(forbidden) <= STAFF_FIELDS:
                raise AuthorizationError(f"Only staff may set: {', '.join(forbidden)}.")
            raise ValidationError(f"Unknown fields: {', '.join(forbidden)}.")

        revision = self._get_revision(revision_id, project.id)
        if not actor.is_staff and revision.status in _TERMINAL:
            raise ConflictError(f"Revision is already {revision.status.value}.", field="status")

        previous_status = revision.status
        new_status = RevisionStatus(fields["status"]) if fields.get("status") is not None else None
        if new_status is not None and new_status != revision.status:
            REVISION_MACHINE.assert_transition(revision.status, new_status)
            revision.status = new_status

        if "amount" in fields and fields["amount"] is not None:
            revision.amount = require_positive(fields["amount"], field="amount")
        if "session_at" in fields:
            revision.session_at = fields["session_at"]
        if "session_duration_minutes" in fields:
            revision.session_duration_minutes = _duration(
                fields["session_duration_minutes"], "session_duration_minutes"
            )
        if "session_notes" in fields:
            revision.session_notes = optional_text(fields["session_notes"])
        if "session_links" in fields:
            revision.session_links = normalize_links(fields["session_links"])
        if "payment_proof_ref" in fields:
            revision.payment_proof_ref = optional_text(fields["payment_proof_ref"], max_len=2048)
        if "client_proposed_at" in fields:
            revision.client_proposed_at = fields["client_proposed_at"]
        if "client_proposed_duration_minutes" in fields:
            revision.client_proposed_duration_minutes = _duration(
                fields["client_proposed_duration_minutes"], "client_proposed_duration_minutes"
            )
        if "client_proposed_note" in fields:
            revision.client_proposed_note = optional_text(fields["client_proposed_note"])
        if fields.get("clear_proposal"):
            revision.client_proposed_at = None
            revision.client_proposed_duration_minutes = None
            revision.client_proposed_note = None

        completed_at: datetime | None = fields.get("completed_at")
        if "completed_at" in fields:
            revision.completed_at = completed_at
        delivered_now = revision.status == RevisionStatus.DELIVERED and previous_status != RevisionStatus.DELIVERED
        if delivered_now and completed_at is None:
            revision.completed_at = utcnow()

        note = optional_text(fields.get("note"))
        if revision.status != previous_status or note:
            self._audit(actor.user_id, "revision.reviewed", "revision", revision.id, note=note or revision.status.value)
        self.commit()
        self.db.refresh(revision)

        logger.info(
            "revision.updated",
            extra={
                "event": "revision.updated",
                "revision_id": revision.id,
                "project_id": project.id,
                "from_status": previous_status.value,
                "to_status": revision.status.value,
                "fields": sorted(fields),
                "actor_id": actor.user_id,
            },
        )
        if not actor.is_staff and fields.keys() & {"client_proposed_at", "payment_proof_ref"}:
            self.notifier.notify_admins(
                subject="Paid revision updated by client",
                body=f"Project {project.id}: '{revision.title}' has a new proposal or payment proof.",
                actor_id=actor.user_id,
                revision_id=revision.id,
            )
        return revision

    def list_revisions(self, actor: Actor, project_id: int | None = None) -> list[PaidRevisionRequest]:
        """Newest first; clients only see revisions on their own orders."""
        query = self.db.query(PaidRevisionRequest)
        if project_id is not None:
            project = self._get(Project, project_id)
            self._require_project_access(project, actor, action="view this project")
            query = query.filter(PaidRevisionRequest.project_id == project.id)
        elif not actor.is_staff:
            query = (
                query.join(Project, Project.id == PaidRevisionRequest.project_id)
                .join(Order, Order.id == Project.order_id)
                .filter(Order.user_id == actor.user_id)
            )
        return query.order_by(PaidRevisionRequest.created_at.desc(), PaidRevisionRequest.id.desc()).all()
