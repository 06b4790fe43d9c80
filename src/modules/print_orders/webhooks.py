"""Webhook Ingestor: signed vendor status events.

Security contract:
- The signature is an HMAC-SHA256 hex digest of the *raw* request body
  with the shared secret, compared in constant time.  The body is never
  re-serialized before verification.
- Missing secret -> ``WebhookConfigurationError`` (fail closed).
- Missing or wrong signature -> ``WebhookSignatureError``; nothing is
  parsed, stored or audited.
- Once the signature verifies the event is always acknowledged: unknown
  orders, unmapped events, illegal transitions and internal errors are
  logged, never surfaced to the vendor.

Processing is idempotent in the set sense: replaying an event leaves
the same fulfillment status and tracking fields; only the history and
process log grow.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.utils import timezone
from pydantic import ValidationError

from modules.print_orders.best_effort import best_effort
from modules.print_orders.constants import (
    NOTIFY_STATES,
    WEBHOOK_EVENT_STATUS,
    AuditSource,
    FulfillmentStatus,
    InteractionDirection,
)
from modules.print_orders.dtos import VendorEventEnvelope
from modules.print_orders.exceptions import (
    WebhookConfigurationError,
    WebhookSignatureError,
)
from modules.print_orders.lifecycle import OrderLifecycle
from modules.print_orders.vendor.interactions import InteractionRecord, redact

if TYPE_CHECKING:
    from modules.print_orders.models import PrintOrder
    from modules.print_orders.notifications import INotificationSink
    from modules.print_orders.repositories.interfaces import IPrintOrderRepository

logger = structlog.get_logger(__name__)

WEBHOOK_ENDPOINT = "/api/v1/webhooks/mixam/"


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> None:
    """Raise unless *signature* is the HMAC of exactly *body*."""
    if not secret:
        logger.error("webhook.secret_not_configured")
        raise WebhookConfigurationError("Webhook secret is not configured.")
    if not signature:
        logger.warning("webhook.signature_missing")
        raise WebhookSignatureError("Missing webhook signature.")
    expected = compute_signature(secret, body)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        logger.warning("webhook.signature_invalid")
        raise WebhookSignatureError("Invalid webhook signature.")


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WebhookOutcome:
    """What happened to a verified event (the HTTP answer is 200 regardless)."""

    processed: bool
    detail: str
    order_id: Optional[str] = None
    status: Optional[str] = None


class WebhookIngestor:
    def __init__(
        self,
        repository: IPrintOrderRepository,
        notifier: INotificationSink,
        webhook_secret: str,
        lifecycle: Optional[OrderLifecycle] = None,
    ) -> None:
        self._repo = repository
        self._notifier = notifier
        self._secret = webhook_secret
        self._lifecycle = lifecycle or OrderLifecycle(repository)

    def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """Verify, then process one vendor event.

        Raises:
            WebhookConfigurationError: no shared secret configured.
            WebhookSignatureError: signature missing or wrong.
        """
        verify_signature(self._secret, raw_body, signature)
        try:
            return self._process(raw_body)
        except Exception:
            logger.exception("webhook.processing_failed")
            return WebhookOutcome(processed=False, detail="processing_error")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _process(self, raw_body: bytes) -> WebhookOutcome:
        try:
            envelope = VendorEventEnvelope.model_validate_json(raw_body)
        except ValidationError as exc:
            logger.warning("webhook.payload_invalid", error_count=exc.error_count())
            return WebhookOutcome(processed=False, detail="invalid_payload")

        log = logger.bind(event=envelope.event, order_id=envelope.order_id)
        order = self._repo.get_by_id(envelope.order_id)
        if order is None:
            log.warning("webhook.order_not_found")
            return WebhookOutcome(processed=False, detail="order_not_found")

        self._record_inbound(order, raw_body, envelope)

        new_status = WEBHOOK_EVENT_STATUS.get(envelope.event)
        if new_status is None:
            self._repo.add_process_log(
                order.id,
                "webhook_unmapped_event",
                message=f"No status mapping for event {envelope.event}.",
                data={"event": envelope.event, "status": envelope.data.status},
                source=AuditSource.WEBHOOK,
            )
            log.info("webhook.event_unmapped")
            return WebhookOutcome(
                processed=False, detail="unmapped_event", order_id=str(order.id)
            )

        outcome = self._lifecycle.apply_external(
            order.id,
            new_status,
            note=self._note(envelope),
            source=AuditSource.WEBHOOK,
            updates=self._updates(envelope, new_status),
            context={"event": envelope.event},
        )
        if not outcome.applied:
            return WebhookOutcome(
                processed=False,
                detail="transition_ignored",
                order_id=str(order.id),
                status=outcome.order.fulfillment_status,
            )

        if new_status in NOTIFY_STATES:
            best_effort(
                "webhook.notification_failed",
                self._notifier.notify_status_changed,
                outcome.order,
                outcome.previous_status,
                new_status,
                on_error=lambda exc: self._repo.add_process_log(
                    order.id,
                    "notification_failed",
                    message=str(exc),
                    data={"status": new_status},
                    source=AuditSource.WEBHOOK,
                ),
            )

        log.info("webhook.processed", status=new_status)
        return WebhookOutcome(
            processed=True,
            detail="applied",
            order_id=str(order.id),
            status=new_status,
        )

    @staticmethod
    def _note(envelope: VendorEventEnvelope) -> str:
        note = f"Vendor event {envelope.event}"
        if envelope.data.message:
            note += f": {envelope.data.message}"
        return note

    @staticmethod
    def _updates(envelope: VendorEventEnvelope, new_status: str) -> Dict[str, Any]:
        """Fields to merge; absent values never clear what is stored."""
        data = envelope.data
        updates: Dict[str, Any] = {
            "mixam_status": data.status or envelope.event,
            "last_webhook_at": timezone.now(),
        }
        if envelope.job_number:
            updates["mixam_job_number"] = envelope.job_number
        if data.tracking_number:
            updates["tracking_number"] = data.tracking_number
        if data.carrier:
            updates["carrier"] = data.carrier
        if data.tracking_url:
            updates["tracking_url"] = data.tracking_url
        if data.estimated_delivery:
            updates["estimated_delivery"] = data.estimated_delivery
        if data.validation_errors:
            updates["vendor_validation_errors"] = list(data.validation_errors)
            updates["fulfillment_notes"] = "; ".join(data.validation_errors)
        elif data.message and new_status in {
            FulfillmentStatus.ON_HOLD,
            FulfillmentStatus.VALIDATION_FAILED,
        }:
            updates["fulfillment_notes"] = data.message
        return updates

    def _record_inbound(
        self, order: PrintOrder, raw_body: bytes, envelope: VendorEventEnvelope
    ) -> None:
        try:
            payload: Any = json.loads(raw_body)
        except ValueError:
            payload = envelope.model_dump(by_alias=True)
        record = InteractionRecord(
            action=f"webhook:{envelope.event}",
            method="POST",
            endpoint=WEBHOOK_ENDPOINT,
            direction=InteractionDirection.INBOUND,
            status_code=200,
            request_body=redact(payload),
            vendor_order_id=envelope.job_number or order.mixam_order_id,
        )
        best_effort(
            "webhook.interaction_log_failed",
            self._repo.add_interactions,
            order.id,
            [record],
        )
