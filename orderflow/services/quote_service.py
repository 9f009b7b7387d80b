"""Quote lifecycle: issue, send, token redemption, accept/reject, archive."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderflow.auth.rbac import Actor, require_staff
from orderflow.core.config import get_config
from orderflow.core.exceptions import (
    AlreadyRejectedError,
    ArchivedError,
    AuthorizationError,
    ConflictError,
    ExpiredError,
    InvalidOrExpiredTokenError,
    ValidationError,
)
from orderflow.core.security import generate_magic_token, hash_token, mark_token_used, token_matches
from orderflow.models import (
    MilestonePayment,
    MilestoneStatus,
    Order,
    OrderStatus,
    PhaseStatus,
    Project,
    ProjectPhase,
    ProjectRequest,
    ProjectStatus,
    Quote,
    QuotePlan,
    QuotePlanPayment,
    QuotePlanPhase,
    QuoteStatus,
    RequestStatus,
    User,
    UserRole,
)
from orderflow.models.base import as_utc, utcnow
from orderflow.orchestration.state_machine import QUOTE_MACHINE
from orderflow.services.base_service import BaseService
from orderflow.services.notification_service import NotificationService
from orderflow.services.phase_service import derive_project_status
from orderflow.services.referral_service import ReferralService
from orderflow.utils.money import MoneyInput, require_positive
from orderflow.utils.text import normalize_email, optional_text, sanitize_text

logger = logging.getLogger(__name__)


@dataclass
class PlanPhaseInput:
    key: str
    title: str
    group: ProjectStatus | str = ProjectStatus.REQUIREMENTS
    description: str | None = None
    due_date: datetime | None = None
    order_index: int | None = None


@dataclass
class PlanPaymentInput:
    label: str
    amount: MoneyInput
    due_date: datetime | None = None
    before_phase_key: str | None = None


@dataclass
class QuotePlanInput:
    project_title: str | None = None
    project_description: str | None = None
    service_ref: str | None = None
    delivery_estimate: str | None = None
    timeline: str | None = None
    payment_notes: str | None = None
    phases: list[PlanPhaseInput] = field(default_factory=list)
    payments: list[PlanPaymentInput] = field(default_factory=list)


@dataclass(frozen=True)
class IssuedQuote:
    """A quote together with its plaintext token; the token is never stored."""

    quote: Quote
    token: str
    magic_link: str


@dataclass(frozen=True)
class RedeemedQuote:
    quote: Quote
    user: User


@dataclass(frozen=True)
class AcceptedQuote:
    quote: Quote
    order: Order
    project: Project
    created: bool


def magic_link_for(token: str) -> str:
    return f"{get_config().PUBLIC_BASE_URL}/magic/quote?token={token}"


class QuoteService(BaseService):
    """Service for the quote state machine and its acceptance side effects."""

    def __init__(self, db: Session | None = None, notifier: NotificationService | None = None) -> None:
        super().__init__(db)
        self.notifier = notifier or NotificationService()
        self.referrals = ReferralService(self.db)

    # -- issuing -----------------------------------------------------------

    def issue(
        self,
        request_id: int,
        amount: MoneyInput,
        scope: str,
        actor: Actor,
        currency: str | None = None,
        expires_at: datetime | None = None,
        plan: QuotePlanInput | None = None,
        send_now: bool = False,
    ) -> IssuedQuote:
        require_staff(actor, "issue quotes")
        config = get_config()
        price = require_positive(amount, field="amount")
        clean_scope = sanitize_text(scope)
        if not clean_scope:
            raise ValidationError("scope is required.", field="scope")
        clean_currency = (currency or config.DEFAULT_CURRENCY).strip().upper()
        if len(clean_currency) != 3:
            raise ValidationError("currency must be a 3-letter code.", field="currency")

        now = utcnow()
        expiry = as_utc(expires_at) if expires_at is not None else now + timedelta(days=config.QUOTE_TOKEN_TTL_DAYS)
        if expiry <= now:
            raise ValidationError("expires_at must be in the future.", field="expires_at")

        request = self._get(ProjectRequest, request_id, label="Request", lock=True)
        plan_record = self._build_plan(plan) if plan is not None else None

        token, hashed = generate_magic_token()
        quote = Quote(
            request_id=request.id,
            amount=price,
            currency=clean_currency,
            scope=clean_scope,
            status=QuoteStatus.SENT if send_now else QuoteStatus.DRAFT,
            expires_at=expiry,
            sent_at=now if send_now else None,
            token_hash=hashed,
        )
        if plan_record is not None:
            quote.plan = plan_record
        self.db.add(quote)

        client = self._ensure_client(request)
        if request.status == RequestStatus.NEW:
            request.status = RequestStatus.REVIEWED
        self.db.flush()
        self._audit(actor.user_id, "quote.issued", "quote", quote.id, note=f"amount={price}")
        self.commit()
        self.db.refresh(quote)

        logger.info(
            "quote.issued",
            extra={
                "event": "quote.issued",
                "quote_id": quote.id,
                "request_id": request.id,
                "client_id": client.id,
                "status": quote.status.value,
                "actor_id": actor.user_id,
            },
        )
        self.notifier.notify_admins(
            subject="Quote issued",
            body=f"Quote {quote.id} for {request.email}: {quote.amount} {quote.currency}.",
            actor_id=actor.user_id,
            quote_id=quote.id,
        )
        return IssuedQuote(quote=quote, token=token, magic_link=magic_link_for(token))

    def send(self, quote_id: int, actor: Actor) -> IssuedQuote:
        """(Re)send a quote with a freshly rotated token."""
        require_staff(actor, "send quotes")
        quote = self._get(Quote, quote_id, lock=True)
        if quote.is_archived:
            raise ArchivedError("Quote is archived.")
        if quote.status in (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED):
            raise ConflictError(f"Quote is already {quote.status.value}.", field="status")
        QUOTE_MACHINE.assert_transition(quote.status, QuoteStatus.SENT)

        now = utcnow()
        token, hashed = generate_magic_token()
        quote.token_hash = hashed
        quote.status = QuoteStatus.SENT
        quote.sent_at = now
        if quote.is_expired(now):
            quote.expires_at = now + timedelta(days=get_config().QUOTE_TOKEN_TTL_DAYS)
        self._audit(actor.user_id, "quote.sent", "quote", quote.id)
        self.commit()
        self.db.refresh(quote)

        logger.info("quote.sent", extra={"event": "quote.sent", "quote_id": quote.id, "actor_id": actor.user_id})
        return IssuedQuote(quote=quote, token=token, magic_link=magic_link_for(token))

    # -- client side -------------------------------------------------------

    def find_by_token(self, token: str) -> Quote | None:
        """Quote an unconsumed token still opens: DRAFT/SENT, not archived, not expired."""
        if not token or not token.strip():
            return None
        candidate = (
            self.db.query(Quote)
            .filter(
                Quote.token_hash == hash_token(token.strip()),
                Quote.status.in_([QuoteStatus.DRAFT, QuoteStatus.SENT]),
                Quote.archived_at.is_(None),
            )
            .first()
        )
        if candidate is None or candidate.is_expired():
            return None
        return candidate

    def redeem(self, token: str, referral_code: str | None = None) -> RedeemedQuote:
        quote = self.find_by_token(token)
        if quote is None:
            logger.info("quote.redeem_failed", extra={"event": "quote.redeem_failed"})
            raise InvalidOrExpiredTokenError()

        quote = self._get(Quote, quote.id, lock=True)
        if quote.status == QuoteStatus.DRAFT:
            quote.status = QuoteStatus.SENT
            quote.sent_at = quote.sent_at or utcnow()
        user = self._ensure_client(quote.request, referral_code=referral_code)
        self._audit(user.id, "quote.viewed", "quote", quote.id)
        self.commit()
        self.db.refresh(quote)

        logger.info("quote.redeemed", extra={"event": "quote.redeemed", "quote_id": quote.id, "user_id": user.id})
        return RedeemedQuote(quote=quote, user=user)

    def accept(
        self,
        quote_id: int,
        actor: Actor | None = None,
        token: str | None = None,
        referral_code: str | None = None,
    ) -> AcceptedQuote:
        quote = self._get(Quote, quote_id, lock=True)
        self._authorize_response(quote, actor, token)

        if quote.is_archived:
            raise ArchivedError("Quote is archived.")
        if quote.status == QuoteStatus.ACCEPTED:
            return self._accepted_result(quote, created=False)
        if quote.status == QuoteStatus.REJECTED:
            raise AlreadyRejectedError("Quote was rejected.")
        if quote.is_expired():
            raise ExpiredError("Quote has expired.")
        QUOTE_MACHINE.assert_transition(quote.status, QuoteStatus.ACCEPTED)

        request = quote.request
        plan = quote.plan
        client = self._ensure_client(request, referral_code=referral_code)
        actor_id = actor.user_id if actor is not None else client.id

        order = Order(
            user_id=client.id,
            quote_id=quote.id,
            service_ref=plan.service_ref if plan is not None else None,
            total_amount=quote.amount,
            status=OrderStatus.IN_PROGRESS,
        )
        self.db.add(order)
        try:
            self.db.flush()
        except IntegrityError:
            # Another request accepted this quote first; report its outcome.
            self.rollback()
            quote = self._get(Quote, quote_id)
            if quote.status != QuoteStatus.ACCEPTED:
                raise
            return self._accepted_result(quote, created=False)

        project = self._seed_project(order, quote, request, plan)

        now = utcnow()
        quote.status = QuoteStatus.ACCEPTED
        quote.accepted_at = now
        if quote.token_hash:
            quote.token_hash = mark_token_used(quote.token_hash)
        request.status = RequestStatus.CONVERTED_TO_ORDER
        request.user_id = client.id

        self.referrals.grant_on_order(order, client, order.total_amount)
        self._audit(actor_id, "quote.accepted", "quote", quote.id, note=f"order={order.id} project={project.id}")
        self._audit(actor_id, "order.created", "order", order.id, note=f"quote={quote.id}")
        self.commit()
        self.db.refresh(quote)

        logger.info(
            "quote.accepted",
            extra={
                "event": "quote.accepted",
                "quote_id": quote.id,
                "order_id": order.id,
                "project_id": project.id,
                "actor_id": actor_id,
            },
        )
        self.notifier.notify_admins(
            subject="Quote accepted",
            body="\n".join(
                [
                    f"Client: {client.email}",
                    f"Quote ID: {quote.id}",
                    f"Order ID: {order.id}",
                    f"Project ID: {project.id}",
                    f"Amount: {order.total_amount}",
                ]
            ),
            actor_id=actor_id,
            quote_id=quote.id,
        )
        return AcceptedQuote(quote=quote, order=order, project=project, created=True)

    def reject(self, quote_id: int, actor: Actor | None = None, token: str | None = None) -> Quote:
        quote = self._get(Quote, quote_id, lock=True)
        self._authorize_response(quote, actor, token)

        if quote.is_archived:
            raise ArchivedError("Quote is archived.")
        if quote.status == QuoteStatus.ACCEPTED:
            raise ConflictError("Quote was already accepted.", field="status")
        if quote.status == QuoteStatus.REJECTED:
            raise AlreadyRejectedError("Quote was rejected.")
        if quote.is_expired():
            raise ExpiredError("Quote has expired.")
        QUOTE_MACHINE.assert_transition(quote.status, QuoteStatus.REJECTED)

        quote.status = QuoteStatus.REJECTED
        quote.rejected_at = utcnow()
        if quote.token_hash:
            quote.token_hash = mark_token_used(quote.token_hash)
        quote.request.status = RequestStatus.REJECTED
        actor_id = actor.user_id if actor is not None else quote.request.user_id
        self._audit(actor_id, "quote.rejected", "quote", quote.id)
        self.commit()
        self.db.refresh(quote)

        logger.info("quote.rejected", extra={"event": "quote.rejected", "quote_id": quote.id, "actor_id": actor_id})
        self.notifier.notify_admins(
            subject="Quote rejected",
            body=f"Quote {quote.id} was rejected.",
            actor_id=actor_id,
            quote_id=quote.id,
        )
        return quote

    # -- administration ----------------------------------------------------

    def archive(self, quote_id: int, archived: bool, actor: Actor) -> Quote:
        require_staff(actor, "archive quotes")
        quote = self._get(Quote, quote_id, lock=True)
        if archived and quote.archived_at is None:
            quote.archived_at = utcnow()
        elif not archived:
            quote.archived_at = None
        self._audit(actor.user_id, "quote.archived" if archived else "quote.unarchived", "quote", quote.id)
        self.commit()
        self.db.refresh(quote)
        return quote

    def list_quotes(self, actor: Actor, include_archived: bool = False) -> list[Quote]:
        query = self.db.query(Quote)
        if not actor.is_staff:
            query = query.join(ProjectRequest, ProjectRequest.id == Quote.request_id).filter(
                ProjectRequest.user_id == actor.user_id
            )
        if not include_archived:
            query = query.filter(Quote.archived_at.is_(None))
        return query.order_by(Quote.created_at.desc(), Quote.id.desc()).all()

    def get_quote(self, quote_id: int, actor: Actor | None = None, token: str | None = None) -> Quote:
        quote = self._get(Quote, quote_id)
        self._authorize_response(quote, actor, token)
        return quote

    # -- helpers -----------------------------------------------------------

    def _authorize_response(self, quote: Quote, actor: Actor | None, token: str | None) -> None:
        """Staff, the request's client, or whoever holds the quote's token."""
        if actor is not None and actor.is_staff:
            return
        request = quote.request
        if actor is not None:
            if request.user_id == actor.user_id:
                return
            user = self.db.get(User, actor.user_id)
            if user is not None and normalize_email(user.email) == normalize_email(request.email):
                return
        if token:
            if quote.status == QuoteStatus.ACCEPTED and token_matches(token.strip(), quote.token_hash):
                # A consumed token may still replay the outcome of its own acceptance.
                return
            if quote.token_hash and quote.token_hash == hash_token(token.strip()):
                return
        raise AuthorizationError("Not allowed to respond to this quote.")

    def _ensure_client(self, request: ProjectRequest, referral_code: str | None = None) -> User:
        """Find or create the CLIENT account for a request's e-mail and link it."""
        email = normalize_email(request.email)
        user = self.db.query(User).filter(User.email == email).first()
        if user is None:
            referrer = self.referrals.find_referrer(referral_code)
            user = User(
                email=email,
                name=sanitize_text(request.full_name, max_len=255) or None,
                role=UserRole.CLIENT,
                referred_by_id=referrer.id if referrer is not None else None,
            )
            self.db.add(user)
            self.db.flush()
            if referrer is not None:
                self.referrals.ensure_referral_signup(referrer.id, user.id)
            logger.info(
                "user.client_created",
                extra={"event": "user.client_created", "user_id": user.id, "referred": referrer is not None},
            )
        if request.user_id != user.id:
            request.user_id = user.id
        return user

    def _build_plan(self, plan: QuotePlanInput) -> QuotePlan:
        record = QuotePlan(
            service_ref=optional_text(plan.service_ref, max_len=120),
            project_title=optional_text(plan.project_title, max_len=255),
            project_description=optional_text(plan.project_description),
            delivery_estimate=optional_text(plan.delivery_estimate, max_len=255),
            timeline=optional_text(plan.timeline, max_len=255),
            payment_notes=optional_text(plan.payment_notes),
        )
        keys: set[str] = set()
        indexes: set[int] = set()
        for position, phase in enumerate(plan.phases):
            key = sanitize_text(phase.key, max_len=64) or f"phase-{position + 1}"
            if key in keys:
                raise ValidationError(f"Duplicate phase key: {key}", field="phases")
            order_index = phase.order_index if phase.order_index is not None else position
            if order_index in indexes:
                raise ValidationError(f"Duplicate phase order: {order_index}", field="phases")
            try:
                group = ProjectStatus(phase.group)
            except ValueError as exc:
                raise ValidationError(f"Unknown phase group: {phase.group!r}", field="phases") from exc
            keys.add(key)
            indexes.add(order_index)
            record.phases.append(
                QuotePlanPhase(
                    key=key,
                    group=group,
                    title=sanitize_text(phase.title, max_len=255) or f"Phase {position + 1}",
                    description=optional_text(phase.description),
                    due_date=phase.due_date,
                    order_index=order_index,
                )
            )
        for position, payment in enumerate(plan.payments):
            gate = optional_text(payment.before_phase_key, max_len=64)
            if gate is not None and gate not in keys:
                raise ValidationError(f"Unknown phase key for payment gate: {gate}", field="payments")
            record.payments.append(
                QuotePlanPayment(
                    label=sanitize_text(payment.label, max_len=255) or f"Payment {position + 1}",
                    amount=require_positive(payment.amount, field="payments.amount"),
                    due_date=payment.due_date,
                    before_phase_key=gate,
                )
            )
        return record

    def _seed_project(self, order: Order, quote: Quote, request: ProjectRequest, plan: QuotePlan | None) -> Project:
        project = Project(
            order_id=order.id,
            title=(plan.project_title if plan is not None and plan.project_title else None)
            or f"Custom project for {request.full_name}",
            description=(plan.project_description if plan is not None and plan.project_description else None)
            or quote.scope,
            status=ProjectStatus.REQUIREMENTS,
        )
        self.db.add(project)
        self.db.flush()
        if plan is None:
            return project

        phases_by_key: dict[str, ProjectPhase] = {}
        for seed in plan.phases:
            phase = ProjectPhase(
                project_id=project.id,
                group=seed.group,
                title=seed.title,
                description=seed.description,
                due_date=seed.due_date,
                status=PhaseStatus.PENDING,
                order_index=seed.order_index,
            )
            self.db.add(phase)
            phases_by_key[seed.key] = phase
        self.db.flush()

        for seed in plan.payments:
            gate = phases_by_key.get(seed.before_phase_key) if seed.before_phase_key else None
            self.db.add(
                MilestonePayment(
                    project_id=project.id,
                    label=seed.label,
                    amount=seed.amount,
                    status=MilestoneStatus.PENDING,
                    due_date=seed.due_date or (gate.due_date if gate is not None else None),
                    gate_phase_id=gate.id if gate is not None else None,
                )
            )
        project.status = derive_project_status(phases_by_key.values()) or ProjectStatus.REQUIREMENTS
        self.db.flush()
        return project

    def _accepted_result(self, quote: Quote, created: bool) -> AcceptedQuote:
        order = self.db.query(Order).filter(Order.quote_id == quote.id).one()
        project = self.db.query(Project).filter(Project.order_id == order.id).order_by(Project.id).first()
        if project is None:
            raise ConflictError("Accepted quote has no project.")
        return AcceptedQuote(quote=quote, order=order, project=project, created=created)
