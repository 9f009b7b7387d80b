from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from orderflow.auth.rbac import Actor
from orderflow.core.exceptions import (
    AlreadyRejectedError,
    ArchivedError,
    AuthorizationError,
    ConflictError,
    ExpiredError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    ValidationError,
)
from orderflow.core.security import USED_TOKEN_PREFIX, generate_magic_token
from orderflow.models import (
    AuditEntry,
    MilestonePayment,
    MilestoneStatus,
    Order,
    OrderStatus,
    ProjectRequest,
    ProjectStatus,
    Quote,
    QuoteStatus,
    ReferralStatus,
    ReferralTracking,
    RequestStatus,
    User,
    UserRole,
)
from orderflow.models.base import utcnow
from orderflow.services.quote_service import PlanPaymentInput, PlanPhaseInput, QuotePlanInput, QuoteService


def _service(session, notifier) -> QuoteService:
    return QuoteService(db=session, notifier=notifier)


def _plan() -> QuotePlanInput:
    return QuotePlanInput(
        project_title="Acme storefront",
        project_description="Headless shop",
        service_ref="ecommerce",
        phases=[
            PlanPhaseInput(key="req", title="Discovery", group=ProjectStatus.REQUIREMENTS),
            PlanPhaseInput(key="design", title="Mockups", group=ProjectStatus.DESIGN),
            PlanPhaseInput(key="build", title="Build", group=ProjectStatus.DEV),
        ],
        payments=[
            PlanPaymentInput(label="Deposit", amount="500"),
            PlanPaymentInput(label="Before build", amount="500", before_phase_key="build"),
        ],
    )


def test_issue_requires_staff(session, notifier, make_request, make_user, as_actor):
    request = make_request()
    client = make_user(email="someone@example.com")
    with pytest.raises(AuthorizationError):
        _service(session, notifier).issue(request.id, 1000, "Scope", as_actor(client))


@pytest.mark.parametrize(("amount", "scope"), [(0, "Scope"), (-5, "Scope"), (100, "   ")])
def test_issue_validates_amount_and_scope(session, notifier, make_request, admin_actor, amount, scope):
    request = make_request()
    with pytest.raises(ValidationError):
        _service(session, notifier).issue(request.id, amount, scope, admin_actor)


def test_issue_rejects_past_expiry_and_unknown_request(session, notifier, make_request, admin_actor):
    request = make_request()
    service = _service(session, notifier)
    with pytest.raises(ValidationError):
        service.issue(request.id, 100, "Scope", admin_actor, expires_at=utcnow() - timedelta(minutes=1))
    with pytest.raises(NotFoundError):
        service.issue(9999, 100, "Scope", admin_actor)


def test_issue_stores_only_token_hash_and_links_client(session, notifier, make_request, admin_actor):
    request = make_request(email="Client@Example.com")
    issued = _service(session, notifier).issue(request.id, "1000", "Website", admin_actor)

    quote = session.get(Quote, issued.quote.id)
    assert quote.status == QuoteStatus.DRAFT
    assert quote.token_hash != issued.token
    assert len(issued.token) == 64
    assert issued.magic_link.endswith(f"/magic/quote?token={issued.token}")
    assert quote.amount == Decimal("1000.00")

    session.refresh(request)
    client = session.query(User).filter(User.email == "client@example.com").one()
    assert client.role == UserRole.CLIENT
    assert request.user_id == client.id
    assert request.status == RequestStatus.REVIEWED
    assert "Quote issued" in notifier.subjects


def test_issue_send_now_and_plan_validation(session, notifier, make_request, admin_actor):
    request = make_request()
    service = _service(session, notifier)
    issued = service.issue(request.id, 1000, "Scope", admin_actor, plan=_plan(), send_now=True)
    assert issued.quote.status == QuoteStatus.SENT
    assert issued.quote.sent_at is not None
    assert [phase.key for phase in issued.quote.plan.phases] == ["req", "design", "build"]

    bad_gate = QuotePlanInput(payments=[PlanPaymentInput(label="x", amount=10, before_phase_key="missing")])
    with pytest.raises(ValidationError):
        service.issue(request.id, 1000, "Scope", admin_actor, plan=bad_gate)


def test_redeem_moves_draft_to_sent_and_rejects_unknown_tokens(session, notifier, make_request, admin_actor):
    request = make_request()
    service = _service(session, notifier)
    issued = service.issue(request.id, 1000, "Scope", admin_actor)

    redeemed = service.redeem(issued.token)
    assert redeemed.quote.status == QuoteStatus.SENT
    assert redeemed.user.email == "client@example.com"

    with pytest.raises(InvalidOrExpiredTokenError):
        service.redeem("not-a-real-token")


def test_redeem_fails_for_expired_archived_or_rejected_quotes(session, notifier, make_request, admin_actor):
    service = _service(session, notifier)

    expired = service.issue(make_request(email="a@example.com").id, 100, "Scope", admin_actor)
    quote = session.get(Quote, expired.quote.id)
    quote.expires_at = utcnow() - timedelta(seconds=1)
    session.commit()

    archived = service.issue(make_request(email="b@example.com").id, 100, "Scope", admin_actor)
    service.archive(archived.quote.id, True, admin_actor)

    rejected = service.issue(make_request(email="c@example.com").id, 100, "Scope", admin_actor)
    service.reject(rejected.quote.id, token=rejected.token)

    for token in (expired.token, archived.token, rejected.token):
        with pytest.raises(InvalidOrExpiredTokenError) as exc:
            service.redeem(token)
        assert str(exc.value) == "Invalid or expired token."


def test_redeem_attaches_referrer_for_new_client(session, notifier, make_request, make_user, admin_actor):
    referrer = make_user(email="ref@example.com", referral_code="abc123")
    request = make_request(email="newbie@example.com")
    service = _service(session, notifier)
    issued = service.issue(request.id, 1000, "Scope", admin_actor)

    # issue() already created the client, so a later code cannot re-parent it.
    redeemed = service.redeem(issued.token, referral_code="abc123")
    assert redeemed.user.referred_by_id is None

    other_request = make_request(email="fresh@example.com")
    quote = Quote(
        request_id=other_request.id,
        amount=Decimal("100"),
        currency="USD",
        scope="s",
        status=QuoteStatus.DRAFT,
        expires_at=utcnow() + timedelta(days=1),
    )
    token, hashed = generate_magic_token()
    quote.token_hash = hashed
    session.add(quote)
    session.commit()

    fresh = service.redeem(token, referral_code="abc123").user
    assert fresh.referred_by_id == referrer.id
    signup = session.query(ReferralTracking).filter(ReferralTracking.referred_user_id == fresh.id).one()
    assert signup.status == ReferralStatus.PENDING
    assert signup.order_id is None


def test_accept_with_token_creates_order_project_and_consumes_token(session, notifier, make_request, admin_actor):
    request = make_request()
    service = _service(session, notifier)
    issued = service.issue(request.id, 1000, "Scope", admin_actor, plan=_plan(), send_now=True)

    result = service.accept(issued.quote.id, token=issued.token)

    assert result.created is True
    assert result.quote.status == QuoteStatus.ACCEPTED
    assert result.quote.token_hash.startswith(USED_TOKEN_PREFIX)
    assert result.order.status == OrderStatus.IN_PROGRESS
    assert result.order.total_amount == Decimal("1000.00")
    assert result.order.service_ref == "ecommerce"
    assert result.project.title == "Acme storefront"
    assert result.project.status == ProjectStatus.REQUIREMENTS
    assert [phase.title for phase in result.project.phases] == ["Discovery", "Mockups", "Build"]

    payments = session.query(MilestonePayment).filter(MilestonePayment.project_id == result.project.id).all()
    assert {p.status for p in payments} == {MilestoneStatus.PENDING}
    gated = next(p for p in payments if p.label == "Before build")
    assert gated.gate_phase_id == result.project.phases[2].id

    session.refresh(request)
    assert request.status == RequestStatus.CONVERTED_TO_ORDER
    assert "Quote accepted" in notifier.subjects

    # A consumed token no longer opens the quote.
    with pytest.raises(InvalidOrExpiredTokenError):
        service.redeem(issued.token)


def test_accept_is_idempotent(session, notifier, make_request, admin_actor):
    request = make_request()
    service = _service(session, notifier)
    issued = service.issue(request.id, 1000, "Scope", admin_actor)

    first = service.accept(issued.quote.id, actor=admin_actor)
    second = service.accept(issued.quote.id, actor=admin_actor)
    replay = service.accept(issued.quote.id, token=issued.token)

    assert second.created is False
    assert second.order.id == first.order.id
    assert second.project.id == first.project.id
    assert replay.order.id == first.order.id
    assert session.query(Order).filter(Order.quote_id == issued.quote.id).count() == 1


def test_accept_guards(session, notifier, make_request, admin_actor):
    service = _service(session, notifier)

    archived = service.issue(make_request(email="a@example.com").id, 100, "Scope", admin_actor)
    service.archive(archived.quote.id, True, admin_actor)
    with pytest.raises(ArchivedError):
        service.accept(archived.quote.id, actor=admin_actor)

    rejected = service.issue(make_request(email="b@example.com").id, 100, "Scope", admin_actor)
    service.reject(rejected.quote.id, actor=admin_actor)
    with pytest.raises(AlreadyRejectedError):
        service.accept(rejected.quote.id, actor=admin_actor)

    expired = service.issue(make_request(email="c@example.com").id, 100, "Scope", admin_actor)
    quote = session.get(Quote, expired.quote.id)
    quote.expires_at = utcnow() - timedelta(seconds=1)
    session.commit()
    with pytest.raises(ExpiredError):
        service.accept(expired.quote.id, actor=admin_actor)


def test_accept_requires_staff_owner_or_token(session, notifier, make_request, make_user, admin_actor, as_actor):
    service = _service(session, notifier)
    issued = service.issue(make_request().id, 100, "Scope", admin_actor)
    stranger = make_user(email="stranger@example.com")

    with pytest.raises(AuthorizationError):
        service.accept(issued.quote.id)
    with pytest.raises(AuthorizationError):
        service.accept(issued.quote.id, actor=as_actor(stranger), token="wrong")

    owner = session.query(User).filter(User.email == "client@example.com").one()
    assert service.accept(issued.quote.id, actor=as_actor(owner)).created is True


def test_reject_guards_and_effects(session, notifier, make_request, admin_actor):
    service = _service(session, notifier)
    request = make_request()
    issued = service.issue(request.id, 100, "Scope", admin_actor)

    rejected = service.reject(issued.quote.id, token=issued.token)
    assert rejected.status == QuoteStatus.REJECTED
    assert rejected.token_hash.startswith(USED_TOKEN_PREFIX)
    session.refresh(request)
    assert request.status == RequestStatus.REJECTED
    with pytest.raises(AlreadyRejectedError):
        service.reject(issued.quote.id, actor=admin_actor)

    accepted = service.issue(make_request(email="other@example.com").id, 100, "Scope", admin_actor)
    service.accept(accepted.quote.id, actor=admin_actor)
    with pytest.raises(ConflictError):
        service.reject(accepted.quote.id, actor=admin_actor)


def test_send_rotates_token_and_extends_expiry(session, notifier, make_request, admin_actor):
    service = _service(session, notifier)
    issued = service.issue(make_request().id, 100, "Scope", admin_actor)
    quote = session.get(Quote, issued.quote.id)
    quote.expires_at = utcnow() - timedelta(hours=1)
    session.commit()

    resent = service.send(issued.quote.id, admin_actor)
    assert resent.token != issued.token
    assert resent.quote.status == QuoteStatus.SENT
    assert not resent.quote.is_expired()
    with pytest.raises(InvalidOrExpiredTokenError):
        service.redeem(issued.token)
    assert service.redeem(resent.token).quote.id == issued.quote.id

    service.accept(issued.quote.id, actor=admin_actor)
    with pytest.raises(ConflictError):
        service.send(issued.quote.id, admin_actor)


def test_list_quotes_scopes_clients_and_hides_archived(session, notifier, make_request, admin_actor, as_actor):
    service = _service(session, notifier)
    mine = service.issue(make_request(email="mine@example.com").id, 100, "Scope", admin_actor)
    theirs = service.issue(make_request(email="theirs@example.com").id, 100, "Scope", admin_actor)
    service.archive(theirs.quote.id, True, admin_actor)

    owner = session.query(User).filter(User.email == "mine@example.com").one()
    assert [q.id for q in service.list_quotes(as_actor(owner))] == [mine.quote.id]
    assert [q.id for q in service.list_quotes(admin_actor)] == [mine.quote.id]
    assert len(service.list_quotes(admin_actor, include_archived=True)) == 2

    actions = {entry.action for entry in session.query(AuditEntry).all()}
    assert {"quote.issued", "quote.archived"} <= actions


def test_racing_accepts_create_a_single_order(racing_sessions, notifier):
    first, second = racing_sessions
    admin = User(email="admin@agency.test", role=UserRole.ADMIN)
    request = ProjectRequest(full_name="Casey Client", email="client@example.com", details="Storefront")
    second.add_all([admin, request])
    second.commit()
    actor = Actor(user_id=admin.id, role=UserRole.ADMIN)
    quote_id = QuoteService(second, notifier=notifier).issue(request.id, 1000, "Storefront", actor).quote.id

    # The first session still holds the quote as it looked before the winner committed.
    assert first.get(Quote, quote_id).status == QuoteStatus.DRAFT
    winner = QuoteService(second, notifier=notifier).accept(quote_id, actor=actor)
    loser = QuoteService(first, notifier=notifier).accept(quote_id, actor=actor)

    assert winner.created is True
    assert loser.created is False
    assert loser.order.id == winner.order.id
    assert loser.quote.status == QuoteStatus.ACCEPTED
    assert first.query(Order).filter(Order.quote_id == quote_id).count() == 1
