"""Integration tests for POST /api/v1/webhooks/mixam/.

Covers:
- Signature gate: 401 on missing/invalid signature, 500 with no secret;
  nothing is stored either way.
- Verified events are always acknowledged with 200 (unknown order,
  malformed payload, unmapped event, illegal transition).
- Status mapping, tracking merge, notes from validation errors.
- Replays are idempotent on status and tracking fields.
- A failing notifier still yields 200 and a ``notification_failed`` entry.
"""

from __future__ import annotations

import json
from unittest import mock

import pytest

from django.conf import settings
from django.core import mail

from modules.print_orders.constants import FulfillmentStatus, InteractionDirection
from modules.print_orders.models import (
    PrintOrderProcessLog,
    PrintOrderStatusHistory,
    VendorInteraction,
)
from modules.print_orders.webhooks import compute_signature

pytestmark = pytest.mark.integration

S = FulfillmentStatus
URL = "/api/v1/webhooks/mixam/"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _body(order_id, event, **data):
    return json.dumps(
        {
            "event": event,
            "timestamp": "2026-10-18T09:00:00Z",
            "orderId": str(order_id),
            "jobNumber": 778899,
            "data": data,
        }
    ).encode()


def _post(client, body, signature=None, secret=None):
    if signature is None:
        signature = compute_signature(secret or settings.MIXAM_WEBHOOK_SECRET, body)
    return client.post(
        URL,
        data=body,
        content_type="application/json",
        HTTP_X_VENDOR_SIGNATURE=signature,
    )


@pytest.fixture()
def submitted_order(make_order):
    return make_order(
        fulfillment_status=S.SUBMITTED,
        mixam_order_id="MX-1",
        mixam_job_number="778899",
    )


# ===========================================================================
# Signature gate
# ===========================================================================


class TestSignatureGate:
    def test_missing_signature_is_401(self, api_client, submitted_order):
        body = _body(submitted_order.id, "order.shipped")

        response = api_client.post(URL, data=body, content_type="application/json")

        assert response.status_code == 401
        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.SUBMITTED
        assert not VendorInteraction.objects.exists()

    def test_wrong_signature_is_401(self, api_client, submitted_order):
        body = _body(submitted_order.id, "order.shipped")

        response = _post(api_client, body, secret="not-the-secret")

        assert response.status_code == 401
        assert not PrintOrderStatusHistory.objects.exists()

    def test_tampered_body_is_401(self, api_client, submitted_order):
        body = _body(submitted_order.id, "order.confirmed")
        signature = compute_signature(settings.MIXAM_WEBHOOK_SECRET, body)
        tampered = _body(submitted_order.id, "order.delivered")

        response = _post(api_client, tampered, signature=signature)

        assert response.status_code == 401

    def test_unconfigured_secret_is_500(self, api_client, submitted_order, settings):
        settings.MIXAM_WEBHOOK_SECRET = ""
        body = _body(submitted_order.id, "order.shipped")

        response = _post(api_client, body, secret="anything")

        assert response.status_code == 500
        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.SUBMITTED

    def test_no_authentication_required(self, api_client, submitted_order):
        body = _body(submitted_order.id, "order.confirmed")

        response = _post(api_client, body)

        assert response.status_code == 200

    def test_vendor_retries_are_not_throttled(self):
        from modules.print_orders.views import MixamWebhookView

        assert MixamWebhookView().get_throttles() == []


# ===========================================================================
# Acknowledged but not applied
# ===========================================================================


class TestAcknowledged:
    def test_unknown_order(self, api_client):
        body = _body("0192f000-0000-7000-8000-000000000000", "order.shipped")

        response = _post(api_client, body)

        assert response.status_code == 200
        assert response.json() == {"received": True, "processed": False}

    def test_malformed_payload(self, api_client):
        body = b'{"event": "order.shipped"}'

        response = _post(api_client, body)

        assert response.status_code == 200
        assert response.json()["processed"] is False

    def test_unmapped_event(self, api_client, submitted_order):
        body = _body(submitted_order.id, "proof.ready")

        response = _post(api_client, body)

        assert response.status_code == 200
        assert response.json()["processed"] is False
        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.SUBMITTED
        assert PrintOrderProcessLog.objects.filter(
            order=submitted_order, event="webhook_unmapped_event"
        ).exists()

    def test_illegal_transition_is_ignored(self, api_client, make_order):
        order = make_order(fulfillment_status=S.DELIVERED, mixam_order_id="MX-1")
        body = _body(order.id, "order.in_production")

        response = _post(api_client, body)

        assert response.status_code == 200
        assert response.json()["processed"] is False
        order.refresh_from_db()
        assert order.fulfillment_status == S.DELIVERED
        assert not PrintOrderStatusHistory.objects.filter(order=order).exists()
        ignored = PrintOrderProcessLog.objects.get(
            order=order, event="webhook_transition_ignored"
        )
        assert ignored.data["event"] == "order.in_production"

    def test_processing_error_still_acknowledged(self, api_client, submitted_order):
        body = _body(submitted_order.id, "order.confirmed")

        with mock.patch(
            "modules.print_orders.webhooks.OrderLifecycle.apply_external",
            side_effect=RuntimeError("database went away"),
        ):
            response = _post(api_client, body)

        assert response.status_code == 200
        assert response.json()["processed"] is False


# ===========================================================================
# Applied events
# ===========================================================================


class TestAppliedEvents:
    def test_shipped_merges_tracking_and_notifies(self, api_client, submitted_order):
        body = _body(
            submitted_order.id,
            "order.shipped",
            status="DISPATCHED",
            trackingNumber="TRK123",
            carrier="Royal Mail",
            trackingUrl="https://track.test/TRK123",
        )

        response = _post(api_client, body)

        assert response.status_code == 200
        assert response.json() == {"received": True, "processed": True}
        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.SHIPPED
        assert submitted_order.tracking_number == "TRK123"
        assert submitted_order.carrier == "Royal Mail"
        assert submitted_order.tracking_url == "https://track.test/TRK123"
        assert submitted_order.mixam_status == "DISPATCHED"
        assert submitted_order.last_webhook_at is not None

        history = PrintOrderStatusHistory.objects.get(order=submitted_order)
        assert (history.old_status, history.status) == (S.SUBMITTED, S.SHIPPED)
        assert history.source == "webhook"

        inbound = VendorInteraction.objects.get(order=submitted_order)
        assert inbound.direction == InteractionDirection.INBOUND
        assert inbound.action == "webhook:order.shipped"
        assert len(mail.outbox) == 1

    def test_later_event_keeps_tracking(self, api_client, submitted_order):
        _post(
            api_client,
            _body(submitted_order.id, "order.shipped", trackingNumber="TRK123"),
        )

        response = _post(api_client, _body(submitted_order.id, "order.delivered"))

        assert response.status_code == 200
        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.DELIVERED
        assert submitted_order.tracking_number == "TRK123"

    def test_numeric_timestamp_is_accepted(self, api_client, submitted_order):
        body = json.dumps(
            {
                "event": "order.confirmed",
                "timestamp": 1760778000,
                "orderId": str(submitted_order.id),
                "data": {},
            }
        ).encode()

        response = _post(api_client, body)

        assert response.json() == {"received": True, "processed": True}
        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.CONFIRMED

    def test_replay_is_idempotent(self, api_client, submitted_order):
        body = _body(
            submitted_order.id,
            "order.shipped",
            trackingNumber="TRK123",
            carrier="DPD",
        )

        first = _post(api_client, body)
        submitted_order.refresh_from_db()
        snapshot = (
            submitted_order.fulfillment_status,
            submitted_order.tracking_number,
            submitted_order.carrier,
        )
        second = _post(api_client, body)

        assert first.status_code == second.status_code == 200
        submitted_order.refresh_from_db()
        assert (
            submitted_order.fulfillment_status,
            submitted_order.tracking_number,
            submitted_order.carrier,
        ) == snapshot
        statuses = list(
            PrintOrderStatusHistory.objects.filter(order=submitted_order).values_list(
                "status", flat=True
            )
        )
        assert statuses == [S.SHIPPED, S.SHIPPED]

    def test_validation_failed_records_errors(self, api_client, submitted_order):
        body = _body(
            submitted_order.id,
            "file.validation_failed",
            validationErrors=["Cover bleed missing", "Low resolution image p.7"],
        )

        _post(api_client, body)

        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.VALIDATION_FAILED
        assert submitted_order.vendor_validation_errors == [
            "Cover bleed missing",
            "Low resolution image p.7",
        ]
        assert "Cover bleed missing" in submitted_order.fulfillment_notes

    def test_on_hold_message_becomes_note(self, api_client, submitted_order):
        body = _body(
            submitted_order.id, "order.on_hold", message="Payment card declined"
        )

        _post(api_client, body)

        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.ON_HOLD
        assert submitted_order.fulfillment_notes == "Payment card declined"

    def test_notification_failure_still_200(self, api_client, submitted_order):
        body = _body(submitted_order.id, "order.confirmed")

        with mock.patch(
            "modules.print_orders.notifications.EmailNotificationSink."
            "notify_status_changed",
            side_effect=RuntimeError("smtp down"),
        ):
            response = _post(api_client, body)

        assert response.status_code == 200
        assert response.json()["processed"] is True
        submitted_order.refresh_from_db()
        assert submitted_order.fulfillment_status == S.CONFIRMED
        failure = PrintOrderProcessLog.objects.get(
            order=submitted_order, event="notification_failed"
        )
        assert failure.message == "smtp down"
