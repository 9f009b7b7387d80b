from __future__ import annotations

import os

os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("SMTP_SANDBOX_MODE", "true")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from orderflow.auth.rbac import Actor
from orderflow.core.security import hash_password
from orderflow.models import (
    Base,
    Order,
    OrderStatus,
    PhaseStatus,
    Project,
    ProjectPhase,
    ProjectRequest,
    ProjectStatus,
    User,
    UserRole,
)


class RecordingNotifier:
    """Stands in for NotificationService so tests can assert what staff were told."""

    def __init__(self) -> None:
        self.sent: list[dict] = []

    def notify_admins(self, subject: str, body: str, actor_id: int | None = None, **context) -> bool:
        self.sent.append({"subject": subject, "body": body, "actor_id": actor_id, **context})
        return True

    @property
    def subjects(self) -> list[str]:
        return [item["subject"] for item in self.sent]


def _build_session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)()


@pytest.fixture
def session():
    db = _build_session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def racing_sessions(tmp_path):
    """Two independent sessions on one file-backed database, for interleaving writers."""
    engine = create_engine(f"sqlite:///{tmp_path}/race.db")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    first, second = factory(), factory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(
        email: str | None = None,
        role: UserRole = UserRole.CLIENT,
        password: str | None = None,
        referral_code: str | None = None,
        referred_by: User | None = None,
        rate: str = "0.10",
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            role=role,
            password_hash=hash_password(password) if password else None,
            referral_code=referral_code,
            referred_by_id=referred_by.id if referred_by is not None else None,
            referral_commission_rate=Decimal(rate),
        )
        session.add(user)
        session.commit()
        return user

    return _make


@pytest.fixture
def admin(make_user) -> User:
    return make_user(email="admin@agency.test", role=UserRole.ADMIN)


@pytest.fixture
def admin_actor(admin) -> Actor:
    return Actor(user_id=admin.id, role=UserRole.ADMIN)


@pytest.fixture
def as_actor():
    def _as_actor(user: User) -> Actor:
        return Actor(user_id=user.id, role=user.role)

    return _as_actor


@pytest.fixture
def make_request(session):
    def _make(email: str = "client@example.com", full_name: str = "Casey Client") -> ProjectRequest:
        request = ProjectRequest(full_name=full_name, email=email, details="Landing page and CMS")
        session.add(request)
        session.commit()
        return request

    return _make


@pytest.fixture
def make_project(session):
    """Order + project owned by ``owner``; ``phases`` is a list of (group, status)."""

    def _make(
        owner: User,
        total: str = "1000.00",
        phases: list[tuple[ProjectStatus, PhaseStatus]] | None = None,
        order_status: OrderStatus = OrderStatus.IN_PROGRESS,
        title: str = "Website rebuild",
    ) -> Project:
        order = Order(user_id=owner.id, total_amount=Decimal(total), status=order_status, service_ref="web")
        session.add(order)
        session.flush()
        project = Project(order_id=order.id, title=title, description="Rebuild", status=ProjectStatus.REQUIREMENTS)
        session.add(project)
        session.flush()
        for index, (group, status) in enumerate(phases or []):
            session.add(
                ProjectPhase(project_id=project.id, group=group, title=f"{group.value} {index}", status=status, order_index=index)
            )
        session.commit()
        return project

    return _make
