from __future__ import annotations

from decimal import Decimal

import pytest

from orderflow.core.exceptions import AuthorizationError, NotFoundError
from orderflow.models import (
    AuditEntry,
    MilestonePayment,
    MilestoneStatus,
    Project,
    ProjectStatus,
    ReferralStatus,
    ReferralTracking,
)
from orderflow.services.order_service import OrderService
from orderflow.services.referral_service import REFERRAL_CODE_LENGTH, ReferralService, commission_for


def _approve(session, order, amount: str) -> None:
    project = session.query(Project).filter(Project.order_id == order.id).first()
    if project is None:
        project = Project(order_id=order.id, title="Catalog fulfilment", status=ProjectStatus.DEV)
        session.add(project)
        session.flush()
    session.add(
        MilestonePayment(project_id=project.id, label="Payment", amount=Decimal(amount), status=MilestoneStatus.APPROVED)
    )
    session.commit()


@pytest.fixture
def referral_pair(make_user):
    referrer = make_user(email="ref@example.com", referral_code="refer1", rate="0.10")
    buyer = make_user(email="buyer@example.com", referred_by=referrer)
    return referrer, buyer


def test_commission_for_rounds_half_up():
    assert commission_for("0.10", "1000") == Decimal("100.00")
    assert commission_for("0.075", "33.30") == Decimal("2.50")
    assert commission_for(Decimal("0.1000"), "0") == Decimal("0.00")


def test_order_grants_commission_once(session, referral_pair):
    referrer, buyer = referral_pair
    order = OrderService(session).place_order(buyer.id, "1000", "seo-audit")

    rows = session.query(ReferralTracking).filter(ReferralTracking.order_id == order.id).all()
    assert len(rows) == 1
    assert rows[0].referrer_id == referrer.id
    assert rows[0].commission_amount == Decimal("100.00")
    assert rows[0].status == ReferralStatus.EARNED

    ReferralService(session).grant_on_order(order, buyer, Decimal("5000"))
    session.commit()
    rows = session.query(ReferralTracking).filter(ReferralTracking.order_id == order.id).all()
    assert len(rows) == 1
    assert rows[0].commission_amount == Decimal("100.00")


def test_no_commission_without_referrer_or_on_self_referral(session, make_user):
    plain = make_user()
    order = OrderService(session).place_order(plain.id, "300", "logo")
    assert session.query(ReferralTracking).count() == 0

    selfish = make_user()
    selfish.referred_by_id = selfish.id
    session.commit()
    assert ReferralService(session).grant_on_order(order, selfish, "300") is None


def test_payout_follows_paid_amount(session, referral_pair, as_actor):
    referrer, buyer = referral_pair
    order = OrderService(session).place_order(buyer.id, "1000", "web")
    service = ReferralService(session)

    summary = service.summarize(referrer.id)
    assert summary.earned == Decimal("100.00")
    assert summary.available == Decimal("0.00")
    assert summary.pending == Decimal("100.00")

    _approve(session, order, "400")
    summary = service.request_payout(referrer.id, as_actor(referrer))
    tracking = session.query(ReferralTracking).filter(ReferralTracking.order_id == order.id).one()
    assert tracking.commission_paid_out == Decimal("40.00")
    assert tracking.status == ReferralStatus.EARNED
    assert summary.available == Decimal("0.00")
    assert summary.pending == Decimal("60.00")

    # Nothing new is available, so a second request settles nothing.
    service.request_payout(referrer.id, as_actor(referrer))
    session.refresh(tracking)
    assert tracking.commission_paid_out == Decimal("40.00")

    _approve(session, order, "600")
    service.request_payout(referrer.id, as_actor(referrer))
    session.refresh(tracking)
    assert tracking.commission_paid_out == Decimal("100.00")
    assert tracking.status == ReferralStatus.PAID_OUT
    assert session.query(AuditEntry).filter(AuditEntry.action == "referral.payout").count() == 2


def test_payout_never_exceeds_commission_when_overpaid(session, referral_pair, as_actor):
    referrer, buyer = referral_pair
    order = OrderService(session).place_order(buyer.id, "1000", "web")
    _approve(session, order, "1500")

    summary = ReferralService(session).request_payout(referrer.id, as_actor(referrer))
    tracking = session.query(ReferralTracking).filter(ReferralTracking.order_id == order.id).one()
    assert tracking.commission_paid_out == Decimal("100.00")
    assert tracking.status == ReferralStatus.PAID_OUT
    assert summary.available == Decimal("0.00")
    assert summary.pending == Decimal("0.00")


def test_only_referrer_may_request_payout(session, referral_pair, admin_actor, as_actor):
    referrer, buyer = referral_pair
    service = ReferralService(session)
    with pytest.raises(AuthorizationError):
        service.request_payout(referrer.id, as_actor(buyer))
    with pytest.raises(AuthorizationError):
        service.request_payout(referrer.id, admin_actor)


def test_admin_payout_settles_available_only(session, referral_pair, admin_actor, as_actor):
    referrer, buyer = referral_pair
    order = OrderService(session).place_order(buyer.id, "1000", "web")
    tracking = session.query(ReferralTracking).filter(ReferralTracking.order_id == order.id).one()
    service = ReferralService(session)

    with pytest.raises(AuthorizationError):
        service.admin_payout(tracking.id, as_actor(referrer))
    with pytest.raises(NotFoundError):
        service.admin_payout(9999, admin_actor)

    _approve(session, order, "250")
    settled = service.admin_payout(tracking.id, admin_actor)
    assert settled.commission_paid_out == Decimal("25.00")
    assert settled.status == ReferralStatus.EARNED


def test_signup_rows_count_as_referrals_without_commission(session, referral_pair, make_user, admin_actor):
    referrer, buyer = referral_pair
    newcomer = make_user(referred_by=referrer)
    service = ReferralService(session)
    service.ensure_referral_signup(referrer.id, newcomer.id)
    service.ensure_referral_signup(referrer.id, newcomer.id)
    session.commit()
    OrderService(session).place_order(buyer.id, "200", "web")

    summary = service.summarize(referrer.id)
    assert summary.referrals == 2
    assert summary.earned == Decimal("20.00")
    assert len(summary.items) == 2
    assert session.query(ReferralTracking).filter(ReferralTracking.order_id.is_(None)).count() == 1

    assert len(service.list_all(admin_actor).items) == 2
    with pytest.raises(NotFoundError):
        service.summarize(9999)


def test_ensure_referral_code_is_stable(session, make_user):
    user = make_user()
    service = ReferralService(session)
    code = service.ensure_referral_code(user.id)
    assert len(code) == REFERRAL_CODE_LENGTH
    assert code.isalnum() and code == code.lower()
    assert service.ensure_referral_code(user.id) == code
    assert service.find_referrer(code).id == user.id
    assert service.find_referrer("  ") is None
