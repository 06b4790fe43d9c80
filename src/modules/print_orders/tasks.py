"""Asynchronous print-order tasks."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

logger = structlog.get_logger(__name__)


@shared_task(name="print_orders.send_email")
def send_print_order_email(subject: str, body: str, recipients: list[str]) -> int:
    """Deliver a notification e-mail; returns the number of messages sent."""
    sent = send_mail(
        subject,
        body,
        settings.DEFAULT_FROM_EMAIL,
        recipients,
        fail_silently=False,
    )
    logger.info("notification.sent", recipient_count=len(recipients), sent=sent)
    return sent


@shared_task(name="print_orders.refresh_status")
def refresh_print_order_status(order_id: str) -> dict:
    """Poll the vendor for an order's status and apply it (webhook fallback)."""
    from modules.print_orders.services import build_admin_service

    order = build_admin_service().refresh_status(order_id)
    logger.info(
        "print_order.status_refreshed",
        order_id=order_id,
        status=order.fulfillment_status,
    )
    return {"order_id": order_id, "status": order.fulfillment_status}
