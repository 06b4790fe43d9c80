"""Unit tests for the e-mail Notification Sink and its Celery task."""

from __future__ import annotations

import pytest

from django.conf import settings
from django.core import mail

from modules.print_orders.constants import FulfillmentStatus
from modules.print_orders.notifications import EmailNotificationSink
from modules.print_orders.tasks import send_print_order_email

pytestmark = pytest.mark.unit

OPS = "print-ops@storybook.local"


@pytest.fixture()
def sink():
    return EmailNotificationSink([OPS, ""])


class TestEmailNotificationSink:
    def test_shipped_goes_to_ops_and_parent(self, sink, make_order):
        order = make_order(
            fulfillment_status=FulfillmentStatus.SHIPPED,
            tracking_number="TRK1",
            carrier="Royal Mail",
        )

        sink.notify_status_changed(
            order, FulfillmentStatus.IN_PRODUCTION, FulfillmentStatus.SHIPPED
        )

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == [OPS, "ada@example.com"]
        assert "Shipped" in message.subject
        assert "TRK1" in message.body

    def test_validation_failure_goes_to_ops_only(self, sink, make_order):
        order = make_order(
            fulfillment_status=FulfillmentStatus.VALIDATION_FAILED,
            vendor_validation_errors=["Bleed missing on cover"],
        )

        sink.notify_status_changed(
            order, FulfillmentStatus.SUBMITTED, FulfillmentStatus.VALIDATION_FAILED
        )

        message = mail.outbox[0]
        assert message.to == [OPS]
        assert "Bleed missing on cover" in message.body

    def test_rejection_includes_reason(self, sink, make_order):
        order = make_order()

        sink.notify_rejected(order, "Blurry cover art")

        message = mail.outbox[0]
        assert "Blurry cover art" in message.body
        assert "ada@example.com" in message.to

    def test_no_recipients_sends_nothing(self, make_order):
        order = make_order(contact_email="")

        EmailNotificationSink([]).notify_status_changed(
            order, FulfillmentStatus.SUBMITTED, FulfillmentStatus.CONFIRMED
        )

        assert mail.outbox == []


class TestSendEmailTask:
    def test_task_sends_mail(self):
        result = send_print_order_email.delay("Subject", "Body", [OPS])

        assert result.successful()
        assert result.result == 1
        assert mail.outbox[0].from_email == settings.DEFAULT_FROM_EMAIL
