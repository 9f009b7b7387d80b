"""Staff notification delivery task."""

from __future__ import annotations

import logging
import smtplib
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from orderflow.core.config import get_config
from orderflow.tasks.celery_app import celery_app
from orderflow.tasks.hooks import after_task, before_task

logger = logging.getLogger(__name__)

TASK_NAME = "notifications.send_admin_notification"


def send_email(to_email: str, subject: str, body: str) -> bool:
    """Send a plain-text e-mail; sandbox mode only logs it."""
    config = get_config()
    if config.SMTP_SANDBOX_MODE:
        logger.info(
            "email.sandbox_sent",
            extra={"event": "email.sandbox_sent", "to_email": to_email, "subject": subject},
        )
        return True
    if not config.SMTP_SERVER:
        logger.warning("email.smtp_not_configured", extra={"event": "email.smtp_not_configured"})
        return False

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = config.SMTP_FROM_EMAIL
    message["To"] = to_email
    message.attach(MIMEText(body, "plain"))

    try:
        with smtplib.SMTP(config.SMTP_SERVER, config.SMTP_PORT) as server:
            server.starttls()
            if config.SMTP_USERNAME:
                server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD or "")
            server.send_message(message)
        return True
    except (smtplib.SMTPException, OSError):
        logger.exception("email.send_failed", extra={"event": "email.send_failed", "to_email": to_email})
        return False


@celery_app.task(bind=True, name=TASK_NAME)
def send_admin_notification(self, subject: str, body: str, context: dict[str, Any] | None = None) -> dict[str, Any]:
    context = dict(context or {})
    context.setdefault("task_id", getattr(self.request, "id", None) or uuid.uuid4().hex)
    logger.info("task.start", extra=before_task(task_name=TASK_NAME, context=context))

    recipient = get_config().ADMIN_NOTIFICATION_EMAIL
    if not recipient:
        logger.warning(
            "notification.recipient_missing",
            extra={"event": "notification.recipient_missing", "subject": subject},
        )
        logger.info("task.finish", extra=after_task(task_name=TASK_NAME, context=context, status="skipped"))
        return {"status": "skipped", "subject": subject}

    delivered = send_email(recipient, subject, body)
    status = "sent" if delivered else "failed"
    logger.info("task.finish", extra=after_task(task_name=TASK_NAME, context=context, status=status))
    return {"status": status, "subject": subject}
