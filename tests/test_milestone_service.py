from __future__ import annotations

from decimal import Decimal

import pytest

from orderflow.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from orderflow.models import AuditEntry, MilestonePayment, MilestoneStatus, Project
from orderflow.orchestration.state_machine import InvalidTransitionError
from orderflow.services.milestone_service import MilestoneService, paid_amount_for_order


def _service(session, notifier) -> MilestoneService:
    return MilestoneService(session, notifier=notifier)


def test_owner_submits_proof_for_review(session, notifier, make_user, make_project, as_actor):
    owner = make_user()
    project = make_project(owner)

    payment = _service(session, notifier).submit_proof(project.id, "Deposit", "250", "s3://proofs/1.pdf", as_actor(owner))

    assert payment.status == MilestoneStatus.UNDER_REVIEW
    assert payment.amount == Decimal("250.00")
    assert payment.proof_ref == "s3://proofs/1.pdf"
    assert notifier.subjects == ["Payment proof submitted"]
    assert session.query(AuditEntry).filter(AuditEntry.action == "payment.submitted").count() == 1


@pytest.mark.parametrize(("label", "amount"), [("", 10), ("Deposit", -1), ("Deposit", None), ("Deposit", "abc")])
def test_submit_proof_validates_input(session, notifier, make_user, make_project, as_actor, label, amount):
    owner = make_user()
    project = make_project(owner)
    with pytest.raises(ValidationError):
        _service(session, notifier).submit_proof(project.id, label, amount, None, as_actor(owner))


def test_submit_proof_rejects_strangers_and_unknown_projects(session, notifier, make_user, make_project, as_actor):
    owner = make_user()
    stranger = make_user()
    project = make_project(owner)
    service = _service(session, notifier)

    with pytest.raises(AuthorizationError):
        service.submit_proof(project.id, "Deposit", 10, None, as_actor(stranger))
    with pytest.raises(NotFoundError):
        service.submit_proof(9999, "Deposit", 10, None, as_actor(owner))


def test_review_requires_staff_and_under_review(session, notifier, make_user, make_project, admin_actor, as_actor):
    owner = make_user()
    project = make_project(owner)
    service = _service(session, notifier)
    payment = service.submit_proof(project.id, "Deposit", 100, None, as_actor(owner))

    with pytest.raises(AuthorizationError):
        service.review(payment.id, MilestoneStatus.APPROVED, as_actor(owner))
    with pytest.raises(ValidationError):
        service.review(payment.id, MilestoneStatus.PENDING, admin_actor)
    with pytest.raises(ValidationError):
        service.review(payment.id, "MAYBE", admin_actor)

    approved = service.review(payment.id, "APPROVED", admin_actor, note="Received")
    assert approved.status == MilestoneStatus.APPROVED
    assert approved.reviewed_by_id == admin_actor.user_id
    assert approved.reviewed_at is not None

    with pytest.raises(InvalidTransitionError):
        service.review(payment.id, MilestoneStatus.REJECTED, admin_actor)
    assert issubclass(InvalidTransitionError, ConflictError)


def test_rejected_proof_can_be_resubmitted(session, notifier, make_user, make_project, admin_actor, as_actor):
    owner = make_user()
    project = make_project(owner)
    service = _service(session, notifier)
    payment = service.submit_proof(project.id, "Deposit", 100, None, as_actor(owner))
    service.review(payment.id, MilestoneStatus.REJECTED, admin_actor)

    resubmitted = service.attach_proof(payment.id, "s3://proofs/2.pdf", as_actor(owner))
    assert resubmitted.status == MilestoneStatus.UNDER_REVIEW
    assert resubmitted.reviewed_by_id is None

    with pytest.raises(ValidationError):
        service.attach_proof(payment.id, "  ", as_actor(owner))


def test_attach_proof_moves_pending_milestone_to_review(session, notifier, make_user, make_project, as_actor):
    owner = make_user()
    project = make_project(owner)
    pending = MilestonePayment(project_id=project.id, label="Launch", amount=Decimal("400"), status=MilestoneStatus.PENDING)
    session.add(pending)
    session.commit()

    payment = _service(session, notifier).attach_proof(pending.id, "receipt-77", as_actor(owner))
    assert payment.status == MilestoneStatus.UNDER_REVIEW
    assert payment.proof_ref == "receipt-77"
    assert "Payment proof uploaded" in notifier.subjects


def test_paid_amount_counts_only_approved_including_archived(session, notifier, make_user, make_project, admin_actor, as_actor):
    owner = make_user()
    project = make_project(owner)
    second = Project(order_id=project.order_id, title="Follow-up", status=project.status)
    session.add(second)
    session.commit()
    service = _service(session, notifier)

    approved = service.submit_proof(project.id, "Deposit", 300, None, as_actor(owner))
    service.review(approved.id, MilestoneStatus.APPROVED, admin_actor)
    other = service.submit_proof(second.id, "Extra", 50, None, as_actor(owner))
    service.review(other.id, MilestoneStatus.APPROVED, admin_actor)
    rejected = service.submit_proof(project.id, "Bad", 999, None, as_actor(owner))
    service.review(rejected.id, MilestoneStatus.REJECTED, admin_actor)
    service.submit_proof(project.id, "Waiting", 70, None, as_actor(owner))

    assert paid_amount_for_order(session, project.order_id) == Decimal("350.00")
    service.archive(approved.id, True, admin_actor)
    assert service.paid_amount_for_order(project.order_id, as_actor(owner)) == Decimal("350.00")

    stranger = make_user()
    with pytest.raises(AuthorizationError):
        service.paid_amount_for_order(project.order_id, as_actor(stranger))


def test_list_payments_scopes_to_owner_and_hides_archived(session, notifier, make_user, make_project, admin_actor, as_actor):
    owner = make_user()
    other = make_user()
    project = make_project(owner)
    other_project = make_project(other)
    service = _service(session, notifier)

    mine = service.submit_proof(project.id, "Deposit", 10, None, as_actor(owner))
    hidden = service.submit_proof(project.id, "Old", 10, None, as_actor(owner))
    service.submit_proof(other_project.id, "Theirs", 10, None, as_actor(other))
    service.archive(hidden.id, True, admin_actor)

    assert [p.id for p in service.list_payments(as_actor(owner))] == [mine.id]
    assert len(service.list_payments(as_actor(owner), include_archived=True)) == 2
    assert len(service.list_payments(admin_actor)) == 2
    assert [p.id for p in service.list_payments(admin_actor, project_id=project.id)] == [mine.id]

    with pytest.raises(AuthorizationError):
        service.archive(mine.id, True, as_actor(owner))
