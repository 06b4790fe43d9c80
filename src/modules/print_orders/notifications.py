"""Notification Sink: tells people about print-order events.

Callers always go through ``best_effort``; a failing sink never blocks a
status change.  ``EmailNotificationSink`` renders a plain-text e-mail and
hands delivery to a Celery task.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Sequence

import structlog

from modules.print_orders.constants import FulfillmentStatus

if TYPE_CHECKING:
    from modules.print_orders.models import PrintOrder

logger = structlog.get_logger(__name__)

# Statuses the parent hears about directly; ops hear about everything.
PARENT_FACING_STATES = {
    FulfillmentStatus.CONFIRMED,
    FulfillmentStatus.SHIPPED,
    FulfillmentStatus.DELIVERED,
    FulfillmentStatus.CANCELLED,
}


class INotificationSink(ABC):
    @abstractmethod
    def notify_status_changed(
        self, order: PrintOrder, previous_status: str, new_status: str
    ) -> None:
        """Announce that *order* is now in *new_status*."""

    @abstractmethod
    def notify_rejected(self, order: PrintOrder, reason: str) -> None:
        """Announce that an admin rejected *order*."""


class EmailNotificationSink(INotificationSink):
    def __init__(self, ops_recipients: Sequence[str]) -> None:
        self._ops_recipients = [r for r in ops_recipients if r]

    def notify_status_changed(
        self, order: PrintOrder, previous_status: str, new_status: str
    ) -> None:
        label = FulfillmentStatus(new_status).label
        lines = [
            f"Print order {order.id} is now: {label}.",
            f"Previous status: {previous_status or '-'}",
        ]
        if order.tracking_number:
            lines.append(f"Tracking number: {order.tracking_number} ({order.carrier})")
        if order.tracking_url:
            lines.append(f"Track your parcel: {order.tracking_url}")
        if new_status == FulfillmentStatus.VALIDATION_FAILED:
            lines.extend(f"- {error}" for error in order.vendor_validation_errors)

        self._send(
            subject=f"Storybook print order: {label}",
            body="\n".join(lines),
            recipients=self._recipients(order, new_status in PARENT_FACING_STATES),
            order=order,
            kind=f"status.{new_status}",
        )

    def notify_rejected(self, order: PrintOrder, reason: str) -> None:
        self._send(
            subject="Storybook print order rejected",
            body=f"Print order {order.id} was rejected.\n\nReason: {reason}",
            recipients=self._recipients(order, True),
            order=order,
            kind="rejected",
        )

    def _recipients(self, order: PrintOrder, include_parent: bool) -> List[str]:
        recipients = list(self._ops_recipients)
        if include_parent and order.contact_email:
            recipients.append(order.contact_email)
        return recipients

    def _send(
        self,
        *,
        subject: str,
        body: str,
        recipients: List[str],
        order: PrintOrder,
        kind: str,
    ) -> None:
        from modules.print_orders.tasks import send_print_order_email

        if not recipients:
            logger.info("notification.skipped_no_recipients", order_id=str(order.id))
            return
        send_print_order_email.delay(subject, body, recipients)
        logger.info(
            "notification.enqueued",
            order_id=str(order.id),
            kind=kind,
            recipient_count=len(recipients),
        )
