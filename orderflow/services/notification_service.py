"""Fire-and-forget staff notifications.

Callers invoke :meth:`NotificationService.notify_admins` only after their
transaction committed; a broker outage is logged and never propagates.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from orderflow.tasks.notifications import send_admin_notification

logger = logging.getLogger(__name__)


class NotificationService:
    def notify_admins(self, subject: str, body: str, actor_id: int | None = None, **context: Any) -> bool:
        payload = {"actor_id": actor_id, "trace_id": uuid.uuid4().hex, **context}
        try:
            send_admin_notification.delay(subject, body, payload)
        except Exception:
            logger.exception(
                "notification.enqueue_failed",
                extra={"event": "notification.enqueue_failed", "subject": subject},
            )
            return False
        logger.info("notification.enqueued", extra={"event": "notification.enqueued", "subject": subject})
        return True
