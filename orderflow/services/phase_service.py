"""Project phase state machine and delivery trigger."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from orderflow.auth.rbac import Actor, require_staff
from orderflow.core.exceptions import ConflictError, NotFoundError, ValidationError
from orderflow.database.db import insert_or_ignore
from orderflow.models import Order, OrderStatus, PhaseStatus, PortfolioDraft, Project, ProjectPhase, ProjectStatus
from orderflow.models.enums import LIFECYCLE_ORDER
from orderflow.services.base_service import BaseService
from orderflow.utils.text import optional_text, sanitize_text, slugify

logger = logging.getLogger(__name__)


class PhaseLike(Protocol):
    group: ProjectStatus
    status: PhaseStatus


def derive_project_status(phases: Iterable[PhaseLike]) -> ProjectStatus | None:
    """First lifecycle stage still holding an unfinished phase.

    Returns ``DELIVERED`` once no REQUIREMENTS through QA phase is left
    unfinished, even while phases grouped under DELIVERED are still open,
    and ``None`` for a project without phases.
    """
    phases = list(phases)
    if not phases:
        return None
    for stage in LIFECYCLE_ORDER:
        if any(ProjectStatus(p.group) == stage and PhaseStatus(p.status) != PhaseStatus.COMPLETED for p in phases):
            return stage
    return ProjectStatus.DELIVERED


class PhaseService(BaseService):
    """Service for project phases and derived project status."""

    def add_phase(
        self,
        project_id: int,
        group: ProjectStatus | str,
        title: str,
        actor: Actor,
        description: str | None = None,
        due_date: datetime | None = None,
        order_index: int | None = None,
    ) -> ProjectPhase:
        require_staff(actor, "manage project phases")
        project = self._get(Project, project_id, lock=True)
        try:
            stage = ProjectStatus(group)
        except ValueError as exc:
            raise ValidationError(f"Unknown phase group: {group!r}", field="group") from exc
        clean_title = sanitize_text(title, max_len=255)
        if not clean_title:
            raise ValidationError("title is required.", field="title")
        if order_index is None:
            current_max = (
                self.db.query(func.max(ProjectPhase.order_index)).filter(ProjectPhase.project_id == project.id).scalar()
            )
            order_index = 0 if current_max is None else current_max + 1
        elif order_index < 0:
            raise ValidationError("order_index must not be negative.", field="order_index")

        phase = ProjectPhase(
            project_id=project.id,
            group=stage,
            title=clean_title,
            description=optional_text(description),
            due_date=due_date,
            status=PhaseStatus.PENDING,
            order_index=order_index,
        )
        self.db.add(phase)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.rollback()
            raise ConflictError(
                f"Phase order {order_index} is already used in this project.", field="order_index"
            ) from exc

        self._audit(actor.user_id, "phase.created", "project", project.id, note=f"phase={phase.id}")
        self._sync_project_status(project, actor)
        self.commit()
        self.db.refresh(phase)
        return phase

    def set_phase_status(
        self,
        project_id: int,
        phase_id: int,
        new_status: PhaseStatus | str,
        actor: Actor,
    ) -> ProjectPhase:
        require_staff(actor, "update project phases")
        try:
            target = PhaseStatus(new_status)
        except ValueError as exc:
            raise ValidationError(f"Unknown phase status: {new_status!r}", field="status") from exc

        project = self._get(Project, project_id, lock=True)
        phase = (
            self.db.query(ProjectPhase)
            .filter(ProjectPhase.id == phase_id, ProjectPhase.project_id == project.id)
            .with_for_update()
            .first()
        )
        if phase is None:
            raise NotFoundError(f"Phase {phase_id} not found in project {project_id}.")

        phase.status = target
        self._audit(actor.user_id, "phase.status", "project", project.id, note=f"phase={phase.id} status={target.value}")
        self.db.flush()
        derived = self._sync_project_status(project, actor)
        self.commit()
        self.db.refresh(phase)

        logger.info(
            "phase.status_updated",
            extra={
                "event": "phase.status_updated",
                "project_id": project.id,
                "phase_id": phase.id,
                "status": target.value,
                "project_status": derived.value if derived else None,
                "actor_id": actor.user_id,
            },
        )
        return phase

    def get_project(self, project_id: int, actor: Actor) -> Project:
        project = self._get(Project, project_id)
        self._require_project_access(project, actor, action="view this project")
        return project

    def list_phases(self, project_id: int, actor: Actor) -> list[ProjectPhase]:
        project = self._get(Project, project_id)
        self._require_project_access(project, actor, action="view this project")
        return (
            self.db.query(ProjectPhase)
            .filter(ProjectPhase.project_id == project.id)
            .order_by(ProjectPhase.order_index)
            .all()
        )

    def _sync_project_status(self, project: Project, actor: Actor | None) -> ProjectStatus | None:
        phases = self.db.query(ProjectPhase).filter(ProjectPhase.project_id == project.id).all()
        derived = derive_project_status(phases)
        if derived is None:
            return None
        project.status = derived
        if derived == ProjectStatus.DELIVERED:
            self._on_delivered(project, actor)
        return derived

    def _on_delivered(self, project: Project, actor: Actor | None) -> None:
        order_changed = self.db.execute(
            update(Order)
            .where(
                Order.id == project.order_id,
                Order.status.not_in([OrderStatus.DELIVERED, OrderStatus.CANCELLED]),
            )
            .values(status=OrderStatus.DELIVERED)
            .execution_options(synchronize_session="fetch")
        ).rowcount
        if order_changed:
            self._audit(self._actor_id(actor), "order.delivered", "order", project.order_id)

        order = self.db.get(Order, project.order_id)
        title = sanitize_text(project.title, max_len=255) or "Project"
        created = insert_or_ignore(
            self.db,
            PortfolioDraft,
            {
                "project_id": project.id,
                "title": title,
                "slug": f"{slugify(title)}-{project.id}",
                "description": project.description,
                "project_type": order.service_ref if order is not None else None,
                "locale": "en",
                "is_published": False,
            },
            conflict_columns=["project_id"],
        )
        logger.info(
            "project.delivered",
            extra={
                "event": "project.delivered",
                "project_id": project.id,
                "order_id": project.order_id,
                "order_marked_delivered": bool(order_changed),
                "portfolio_draft_created": created,
            },
        )
