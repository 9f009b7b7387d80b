"""Milestone payment ledger: proof submission, staff review, archive."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from orderflow.auth.rbac import Actor, require_staff
from orderflow.core.exceptions import AuthorizationError, ValidationError
from orderflow.models import MilestonePayment, MilestoneStatus, Order, Project
from orderflow.models.base import utcnow
from orderflow.orchestration.state_machine import MILESTONE_MACHINE
from orderflow.services.base_service import BaseService
from orderflow.services.notification_service import NotificationService
from orderflow.utils.money import require_non_negative, to_decimal
from orderflow.utils.text import optional_text, sanitize_text

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = frozenset({MilestoneStatus.APPROVED, MilestoneStatus.REJECTED})


def paid_amount_for_order(db: Session, order_id: int) -> Decimal:
    """Sum of APPROVED milestone amounts across all of an order's projects.

    Archived milestones still count; archiving only hides a row.
    """
    total = (
        db.query(func.coalesce(func.sum(MilestonePayment.amount), 0))
        .join(Project, Project.id == MilestonePayment.project_id)
        .filter(Project.order_id == order_id, MilestonePayment.status == MilestoneStatus.APPROVED)
        .scalar()
    )
    return to_decimal(total)


class MilestoneService(BaseService):
    """Service for milestone payment proof and review workflow."""

    def __init__(self, db: Session | None = None, notifier: NotificationService | None = None) -> None:
        super().__init__(db)
        self.notifier = notifier or NotificationService()

    def submit_proof(
        self,
        project_id: int,
        label: str,
        amount: Decimal | float | int | str | None,
        proof_ref: str | None,
        actor: Actor,
    ) -> MilestonePayment:
        project = self._get(Project, project_id)
        self._require_project_access(project, actor, action="submit payments for this project")

        clean_label = sanitize_text(label, max_len=255)
        if not clean_label:
            raise ValidationError("label is required.", field="label")
        clean_amount = require_non_negative(amount, field="amount")

        payment = MilestonePayment(
            project_id=project.id,
            label=clean_label,
            amount=clean_amount,
            status=MilestoneStatus.UNDER_REVIEW,
            proof_ref=optional_text(proof_ref, max_len=1024),
        )
        self.db.add(payment)
        self.db.flush()
        self._audit(actor.user_id, "payment.submitted", "milestone_payment", payment.id, note=clean_label)
        self.commit()
        self.db.refresh(payment)

        logger.info(
            "milestone.proof_submitted",
            extra={
                "event": "milestone.proof_submitted",
                "milestone_id": payment.id,
                "project_id": project.id,
                "actor_id": actor.user_id,
            },
        )
        self.notifier.notify_admins(
            subject="Payment proof submitted",
            body=f"Project {project.id}: '{payment.label}' for {payment.amount} awaits review.",
            actor_id=actor.user_id,
            milestone_id=payment.id,
        )
        return payment

    def attach_proof(self, milestone_id: int, proof_ref: str, actor: Actor) -> MilestonePayment:
        """Attach a proof reference to a PENDING or REJECTED milestone, moving it to review."""
        payment = self._get(MilestonePayment, milestone_id, label="Milestone payment", lock=True)
        self._require_project_access(payment.project, actor, action="submit payments for this project")
        reference = optional_text(proof_ref, max_len=1024)
        if reference is None:
            raise ValidationError("proof_ref is required.", field="proof_ref")

        MILESTONE_MACHINE.assert_transition(payment.status, MilestoneStatus.UNDER_REVIEW)
        payment.proof_ref = reference
        payment.status = MilestoneStatus.UNDER_REVIEW
        payment.reviewed_by_id = None
        payment.reviewed_at = None
        self._audit(actor.user_id, "payment.proof_attached", "milestone_payment", payment.id)
        self.commit()
        self.db.refresh(payment)

        logger.info(
            "milestone.proof_attached",
            extra={"event": "milestone.proof_attached", "milestone_id": payment.id, "actor_id": actor.user_id},
        )
        self.notifier.notify_admins(
            subject="Payment proof uploaded",
            body=f"Milestone '{payment.label}' ({payment.amount}) has new proof to review.",
            actor_id=actor.user_id,
            milestone_id=payment.id,
        )
        return payment

    def review(
        self,
        milestone_id: int,
        decision: MilestoneStatus | str,
        actor: Actor,
        note: str | None = None,
    ) -> MilestonePayment:
        require_staff(actor, "review payments")
        try:
            target = MilestoneStatus(decision)
        except ValueError as exc:
            raise ValidationError("decision must be APPROVED or REJECTED.", field="decision") from exc
        if target not in REVIEW_DECISIONS:
            raise ValidationError("decision must be APPROVED or REJECTED.", field="decision")

        payment = self._get(MilestonePayment, milestone_id, label="Milestone payment", lock=True)
        MILESTONE_MACHINE.assert_transition(payment.status, target)

        payment.status = target
        payment.reviewed_by_id = actor.user_id
        payment.reviewed_at = utcnow()
        action = "payment.approved" if target == MilestoneStatus.APPROVED else "payment.rejected"
        self._audit(actor.user_id, action, "milestone_payment", payment.id, note=optional_text(note))
        self.commit()
        self.db.refresh(payment)

        logger.info(
            "milestone.reviewed",
            extra={
                "event": "milestone.reviewed",
                "milestone_id": payment.id,
                "decision": target.value,
                "actor_id": actor.user_id,
            },
        )
        return payment

    def archive(self, milestone_id: int, archived: bool, actor: Actor) -> MilestonePayment:
        require_staff(actor, "archive payments")
        payment = self._get(MilestonePayment, milestone_id, label="Milestone payment", lock=True)
        if archived and payment.archived_at is None:
            payment.archived_at = utcnow()
        elif not archived:
            payment.archived_at = None
        self._audit(
            actor.user_id,
            "payment.archived" if archived else "payment.unarchived",
            "milestone_payment",
            payment.id,
        )
        self.commit()
        self.db.refresh(payment)
        return payment

    def list_payments(
        self,
        actor: Actor,
        project_id: int | None = None,
        include_archived: bool = False,
    ) -> list[MilestonePayment]:
        query = self.db.query(MilestonePayment).join(Project, Project.id == MilestonePayment.project_id)
        if project_id is not None:
            query = query.filter(MilestonePayment.project_id == project_id)
        if not actor.is_staff:
            query = query.join(Order, Order.id == Project.order_id).filter(Order.user_id == actor.user_id)
        if not include_archived:
            query = query.filter(MilestonePayment.archived_at.is_(None))
        return query.order_by(MilestonePayment.created_at.desc(), MilestonePayment.id.desc()).all()

    def paid_amount_for_order(self, order_id: int, actor: Actor | None = None) -> Decimal:
        if actor is not None and not actor.is_staff:
            order = self._get(Order, order_id)
            if order.user_id != actor.user_id:
                raise AuthorizationError("Not allowed to view this order.")
        return paid_amount_for_order(self.db, order_id)
