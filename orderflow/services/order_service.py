"""Order placement and staff administration."""

from __future__ import annotations

import logging

from orderflow.auth.rbac import Actor, require_staff
from orderflow.core.exceptions import AuthorizationError, ConflictError, ValidationError
from orderflow.models import Order, OrderStatus, Project, User
from orderflow.models.base import utcnow
from orderflow.services.base_service import BaseService
from orderflow.services.referral_service import ReferralService
from orderflow.utils.money import MoneyInput, require_positive, to_decimal
from orderflow.utils.text import optional_text, sanitize_text

logger = logging.getLogger(__name__)


class OrderService(BaseService):
    """Service for catalog purchases and order administration."""

    def place_order(self, buyer_id: int, total_amount: MoneyInput, service_ref: str | None) -> Order:
        """Create a PENDING catalog order and its referral commission in one transaction."""
        ref = optional_text(service_ref, max_len=120)
        if ref is None:
            raise ValidationError("service_ref is required.", field="service_ref")
        total = require_positive(total_amount, field="total_amount")
        buyer = self._get(User, buyer_id)

        order = Order(user_id=buyer.id, service_ref=ref, total_amount=total, status=OrderStatus.PENDING)
        self.db.add(order)
        self.db.flush()
        ReferralService(self.db).grant_on_order(order, buyer, total)
        self._audit(buyer.id, "order.placed", "order", order.id, note=ref)
        self.commit()
        self.db.refresh(order)

        logger.info(
            "order.placed",
            extra={"event": "order.placed", "order_id": order.id, "user_id": buyer.id, "total": str(total)},
        )
        return order

    def update_status(self, order_id: int, status: OrderStatus | str, actor: Actor) -> Order:
        require_staff(actor, "update order status")
        try:
            target = OrderStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Unknown order status: {status!r}", field="status") from exc

        order = self._get(Order, order_id, lock=True)
        if order.status == target:
            return order
        if order.status == OrderStatus.CANCELLED:
            raise ConflictError("Cancelled orders cannot change status.", field="status")
        if target == OrderStatus.DELIVERED:
            has_project = self.db.query(Project.id).filter(Project.order_id == order.id).first() is not None
            if has_project:
                raise ConflictError("Project orders are delivered by completing their phases.", field="status")

        previous = order.status
        order.status = target
        self._audit(actor.user_id, "order.status", "order", order.id, note=f"{previous.value}->{target.value}")
        self.commit()
        self.db.refresh(order)

        logger.info(
            "order.status_updated",
            extra={
                "event": "order.status_updated",
                "order_id": order.id,
                "from_status": previous.value,
                "to_status": target.value,
                "actor_id": actor.user_id,
            },
        )
        return order

    def correct_total(self, order_id: int, new_total: MoneyInput, actor: Actor, reason: str) -> Order:
        """Explicit staff correction; the only path that may lower an order total."""
        require_staff(actor, "correct order totals")
        clean_reason = sanitize_text(reason, max_len=2000)
        if not clean_reason:
            raise ValidationError("reason is required.", field="reason")
        total = require_positive(new_total, field="total_amount")

        order = self._get(Order, order_id, lock=True)
        previous = to_decimal(order.total_amount)
        order.total_amount = total
        self._audit(actor.user_id, "order.total_corrected", "order", order.id, note=f"{previous}->{total}: {clean_reason}")
        self.commit()
        self.db.refresh(order)

        logger.warning(
            "order.total_corrected",
            extra={
                "event": "order.total_corrected",
                "order_id": order.id,
                "from_total": str(previous),
                "to_total": str(total),
                "actor_id": actor.user_id,
            },
        )
        return order

    def archive(self, order_id: int, archived: bool, actor: Actor) -> Order:
        require_staff(actor, "archive orders")
        order = self._get(Order, order_id, lock=True)
        if archived and order.archived_at is None:
            order.archived_at = utcnow()
        elif not archived:
            order.archived_at = None
        self._audit(actor.user_id, "order.archived" if archived else "order.unarchived", "order", order.id)
        self.commit()
        self.db.refresh(order)
        return order

    def list_orders(self, actor: Actor, include_archived: bool = False) -> list[Order]:
        query = self.db.query(Order)
        if not actor.is_staff:
            query = query.filter(Order.user_id == actor.user_id, Order.archived_at.is_(None))
        elif not include_archived:
            query = query.filter(Order.archived_at.is_(None))
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def get_order(self, order_id: int, actor: Actor) -> Order:
        order = self._get(Order, order_id)
        if not actor.is_staff and order.user_id != actor.user_id:
            raise AuthorizationError("Not allowed to view this order.")
        return order
