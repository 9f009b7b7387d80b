"""Shared service base with robust session lifecycle behavior."""

from __future__ import annotations

from typing import TypeVar

from sqlalchemy.orm import Session

import orderflow.database.db as db_module
from orderflow.auth.rbac import Actor
from orderflow.core.exceptions import AuthorizationError, NotFoundError
from orderflow.models import AuditEntry, Order, Project

ModelT = TypeVar("ModelT")


class BaseService:
    """Base class for services that operate on a SQLAlchemy session."""

    def __init__(self, db: Session | None = None) -> None:
        self.db = db if db is not None else db_module.get_session_factory()()

    def commit(self) -> None:
        """Commit current transaction and rollback on failure."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "BaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        self.close()

    def _get(self, model: type[ModelT], record_id: int, label: str | None = None, lock: bool = False) -> ModelT:
        """Load a row by primary key, optionally ``SELECT ... FOR UPDATE``."""
        query = self.db.query(model).filter(model.id == record_id)
        if lock:
            query = query.with_for_update()
        record = query.first()
        if record is None:
            raise NotFoundError(f"{label or model.__name__} {record_id} not found.")
        return record

    def _audit(
        self,
        actor_id: int | None,
        action: str,
        target_type: str,
        target_id: int,
        note: str | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            note=note,
        )
        self.db.add(entry)
        return entry

    def _require_project_access(self, project: Project, actor: Actor | None, action: str = "access this project") -> None:
        """Staff, or the user owning the project's order."""
        if actor is None:
            raise AuthorizationError(f"Not allowed to {action}.")
        if actor.is_staff:
            return
        order = project.order or self.db.get(Order, project.order_id)
        if order is None or order.user_id != actor.user_id:
            raise AuthorizationError(f"Not allowed to {action}.")

    @staticmethod
    def _actor_id(actor: Actor | None) -> int | None:
        return actor.user_id if actor is not None else None
