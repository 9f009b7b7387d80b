"""Change request ledger: priced scope additions and their effect on the order total."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderflow.auth.rbac import Actor, require_staff
from orderflow.core.exceptions import AmountNotSetError, ConflictError, NotFoundError, ValidationError
from orderflow.models import ChangeRequest, ChangeRequestStatus, MilestonePayment, MilestoneStatus, Order, Project
from orderflow.models.base import utcnow
from orderflow.orchestration.state_machine import CHANGE_REQUEST_MACHINE
from orderflow.services.base_service import BaseService
from orderflow.services.notification_service import NotificationService
from orderflow.utils.money import ZERO, MoneyInput, require_positive, to_decimal
from orderflow.utils.text import optional_text, sanitize_text

logger = logging.getLogger(__name__)

_UNSET = object()


class ChangeRequestService(BaseService):
    """Service for proposing, pricing and deciding change requests."""

    def __init__(self, db: Session | None = None, notifier: NotificationService | None = None) -> None:
        super().__init__(db)
        self.notifier = notifier or NotificationService()

    def _get_change(self, change_id: int, project_id: int, lock: bool = False) -> ChangeRequest:
        query = self.db.query(ChangeRequest).filter(
            ChangeRequest.id == change_id,
            ChangeRequest.project_id == project_id,
        )
        if lock:
            query = query.with_for_update()
        change = query.first()
        if change is None:
            raise NotFoundError(f"Change request {change_id} not found in project {project_id}.")
        return change

    def propose(
        self,
        project_id: int,
        title: str,
        actor: Actor,
        description: str | None = None,
        amount: MoneyInput = None,
    ) -> ChangeRequest:
        project = self._get(Project, project_id)
        self._require_project_access(project, actor, action="propose changes for this project")

        clean_title = sanitize_text(title, max_len=255)
        if not clean_title:
            raise ValidationError("title is required.", field="title")
        clean_description = optional_text(description)
        if actor.is_staff:
            price = require_positive(amount, field="amount")
        else:
            if clean_description is None:
                raise ValidationError("description is required.", field="description")
            # Clients describe; staff price it afterwards.
            price = ZERO

        change = ChangeRequest(
            project_id=project.id,
            title=clean_title,
            description=clean_description,
            amount=price,
            status=ChangeRequestStatus.PENDING,
            created_by_id=actor.user_id,
        )
        self.db.add(change)
        self.db.flush()
        self._audit(actor.user_id, "change_request.proposed", "change_request", change.id, note=clean_title)
        self.commit()
        self.db.refresh(change)

        logger.info(
            "change_request.proposed",
            extra={
                "event": "change_request.proposed",
                "change_request_id": change.id,
                "project_id": project.id,
                "actor_id": actor.user_id,
            },
        )
        self.notifier.notify_admins(
            subject="New change request",
            body=f"Project {project.id}: '{change.title}' was proposed.",
            actor_id=actor.user_id,
            change_request_id=change.id,
        )
        return change

    def edit(
        self,
        change_id: int,
        project_id: int,
        actor: Actor,
        title: str | None = None,
        description: str | None | object = _UNSET,
        amount: MoneyInput = None,
    ) -> ChangeRequest:
        """Staff pricing/wording edit of a PENDING change request.

        ``description=None`` clears it; leaving it out keeps the current text.
        """
        require_staff(actor, "edit change requests")
        change = self._get_change(change_id, project_id, lock=True)
        if change.status != ChangeRequestStatus.PENDING:
            raise ConflictError("Only pending change requests can be edited.", field="status")

        changed = False
        if title is not None and sanitize_text(title, max_len=255):
            change.title = sanitize_text(title, max_len=255)
            changed = True
        if description is not _UNSET:
            change.description = optional_text(description)  # type: ignore[arg-type]
            changed = True
        if amount is not None:
            change.amount = require_positive(amount, field="amount")
            changed = True
        if not changed:
            raise ValidationError("Nothing to update.")

        self._audit(actor.user_id, "change_request.edited", "change_request", change.id)
        self.commit()
        self.db.refresh(change)
        return change

    def accept(self, change_id: int, project_id: int, actor: Actor) -> ChangeRequest:
        require_staff(actor, "accept change requests")
        project = self._get(Project, project_id)
        change = self._get_change(change_id, project.id, lock=True)
        if change.status == ChangeRequestStatus.ACCEPTED:
            return change
        CHANGE_REQUEST_MACHINE.assert_transition(change.status, ChangeRequestStatus.ACCEPTED)
        amount = to_decimal(change.amount)
        if amount <= ZERO:
            raise AmountNotSetError("Change request amount is not set.", field="amount")

        change.status = ChangeRequestStatus.ACCEPTED
        change.decided_at = utcnow()
        self.db.add(
            MilestonePayment(
                project_id=project.id,
                label=f"Change request: {change.title}"[:255],
                amount=amount,
                status=MilestoneStatus.PENDING,
                change_request_id=change.id,
            )
        )
        try:
            self.db.flush()
        except IntegrityError:
            # A concurrent accept already booked the milestone; report its outcome.
            self.rollback()
            change = self._get_change(change_id, project_id)
            if change.status != ChangeRequestStatus.ACCEPTED:
                raise
            return change
        self._increment_order_total(project.order_id, amount)
        self._audit(actor.user_id, "change_request.accepted", "change_request", change.id, note=str(amount))
        self.commit()
        self.db.refresh(change)

        logger.info(
            "change_request.accepted",
            extra={
                "event": "change_request.accepted",
                "change_request_id": change.id,
                "project_id": project.id,
                "order_id": project.order_id,
                "amount": str(amount),
                "actor_id": actor.user_id,
            },
        )
        return change

    def reject(self, change_id: int, project_id: int, actor: Actor) -> ChangeRequest:
        require_staff(actor, "reject change requests")
        change = self._get_change(change_id, project_id, lock=True)
        if change.status == ChangeRequestStatus.REJECTED:
            return change
        CHANGE_REQUEST_MACHINE.assert_transition(change.status, ChangeRequestStatus.REJECTED)

        change.status = ChangeRequestStatus.REJECTED
        change.decided_at = utcnow()
        self._audit(actor.user_id, "change_request.rejected", "change_request", change.id)
        self.commit()
        self.db.refresh(change)

        logger.info(
            "change_request.rejected",
            extra={"event": "change_request.rejected", "change_request_id": change.id, "actor_id": actor.user_id},
        )
        return change

    def list_changes(self, project_id: int, actor: Actor) -> list[ChangeRequest]:
        project = self._get(Project, project_id)
        self._require_project_access(project, actor, action="view this project")
        return (
            self.db.query(ChangeRequest)
            .filter(ChangeRequest.project_id == project.id)
            .order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc())
            .all()
        )

    def _increment_order_total(self, order_id: int, amount: Decimal) -> None:
        self.db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(total_amount=Order.total_amount + amount)
            .execution_options(synchronize_session=False)
        )
        order = self.db.get(Order, order_id)
        if order is not None:
            self.db.expire(order, ["total_amount"])
