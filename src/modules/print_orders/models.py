"""PrintOrder and its append-only audit trails.

- ``PrintOrder``: the order being fulfilled, its vendor linkage, printable
  assets, shipping details and post-shipment tracking.
- ``PrintOrderStatusHistory``: one row per fulfillment status change.
- ``PrintOrderProcessLog``: operational events (submissions, cancellations,
  ignored webhooks, notification failures).
- ``VendorInteraction``: every request/response exchanged with the vendor,
  payloads redacted.

Orders are never deleted; the three trails accept inserts only.
"""

from __future__ import annotations

from typing import Any

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import AppendOnlyModel, BaseModel
from modules.print_orders.constants import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ApprovalStatus,
    AuditSource,
    FulfillmentStatus,
    InteractionDirection,
    PaymentStatus,
)


def _empty_dict() -> dict[str, Any]:
    return {}


def _empty_list() -> list[Any]:
    return []


class PrintOrder(BaseModel):
    """A request to physically print and ship one storybook.

    ``printable_files`` holds ``cover_pdf_url`` / ``interior_pdf_url``;
    ``printable_metadata`` holds ``interior_page_count``,
    ``cover_page_count``, ``binding_type``, ``trim_size`` and
    ``padding_page_count``.  ``shipping_address`` uses the keys ``name``,
    ``line1``, ``line2``, ``city``, ``state``, ``postal_code``, ``country``.
    """

    parent_uid: models.CharField = models.CharField(max_length=128, db_index=True)
    story_id: models.CharField = models.CharField(max_length=128)
    book_id: models.CharField = models.CharField(max_length=128, blank=True, default="")

    fulfillment_status: models.CharField = models.CharField(
        max_length=32,
        choices=FulfillmentStatus.choices,
        default=FulfillmentStatus.VALIDATING,
    )
    approval_status: models.CharField = models.CharField(
        max_length=32,
        choices=ApprovalStatus.choices,
        default=ApprovalStatus.NONE,
    )
    requires_approval: models.BooleanField = models.BooleanField(default=False)

    # Vendor linkage
    mixam_order_id: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    mixam_job_number: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    mixam_status: models.CharField = models.CharField(
        max_length=64, blank=True, default=""
    )
    previous_mixam_order_id: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    previous_mixam_job_number: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )

    # Payment
    payment_status: models.CharField = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )
    payment_marked_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    payment_marked_by: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )

    # Printable assets
    printable_files: models.JSONField = models.JSONField(default=_empty_dict)
    printable_metadata: models.JSONField = models.JSONField(default=_empty_dict)

    # Shipping
    shipping_address: models.JSONField = models.JSONField(default=_empty_dict)
    contact_email: models.EmailField = models.EmailField()
    contact_phone: models.CharField = models.CharField(
        max_length=32, blank=True, default=""
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )

    fulfillment_notes: models.TextField = models.TextField(blank=True, default="")
    vendor_validation_errors: models.JSONField = models.JSONField(default=_empty_list)

    # Tracking
    tracking_number: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    carrier: models.CharField = models.CharField(max_length=64, blank=True, default="")
    tracking_url: models.URLField = models.URLField(
        max_length=500, blank=True, default=""
    )
    estimated_delivery: models.CharField = models.CharField(
        max_length=64, blank=True, default=""
    )

    # Actor / timestamp bookkeeping
    submitted_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    submitted_by: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    resubmitted_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    resubmitted_by: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    # Set while a vendor submission is in flight; cleared when it settles.
    submission_started_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    approved_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    approved_by: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    rejected_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    rejected_by: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    rejected_reason: models.TextField = models.TextField(blank=True, default="")
    cancelled_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    cancelled_by: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )
    cancellation_reason: models.TextField = models.TextField(blank=True, default="")
    last_webhook_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    status_checked_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )

    class Meta:
        db_table = "print_orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["fulfillment_status"], name="print_orders_status_idx"
            ),
            models.Index(fields=["mixam_order_id"], name="print_orders_vendor_idx"),
            models.Index(fields=["-created_at"], name="print_orders_created_idx"),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is delivered or cancelled."""
        return self.fulfillment_status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether moving to *new_status* is a legal edge."""
        allowed = VALID_TRANSITIONS.get(self.fulfillment_status, set())
        return new_status in allowed

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"PrintOrder {self.id} ({self.fulfillment_status})"


class PrintOrderStatusHistory(AppendOnlyModel):
    """One fulfillment status change.

    ``old_status`` equals ``status`` when a vendor re-delivers an event
    for the status the order already has.  ``actor_id`` is blank for
    webhook and system driven changes.
    """

    order: models.ForeignKey = models.ForeignKey(
        "print_orders.PrintOrder",
        on_delete=models.PROTECT,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(
        max_length=32,
        choices=FulfillmentStatus.choices,
        blank=True,
        default="",
    )
    status: models.CharField = models.CharField(
        max_length=32,
        choices=FulfillmentStatus.choices,
    )
    note: models.TextField = models.TextField(blank=True, default="")
    source: models.CharField = models.CharField(
        max_length=16,
        choices=AuditSource.choices,
        default=AuditSource.SYSTEM,
    )
    actor_id: models.CharField = models.CharField(max_length=128, blank=True, default="")

    class Meta:
        db_table = "print_order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="posh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.status}"


class PrintOrderProcessLog(AppendOnlyModel):
    """Operational event attached to an order (``event`` is a short slug)."""

    order: models.ForeignKey = models.ForeignKey(
        "print_orders.PrintOrder",
        on_delete=models.PROTECT,
        related_name="process_log",
    )
    event: models.CharField = models.CharField(max_length=64)
    message: models.TextField = models.TextField(blank=True, default="")
    data: models.JSONField = models.JSONField(default=_empty_dict, blank=True)
    source: models.CharField = models.CharField(
        max_length=16,
        choices=AuditSource.choices,
        default=AuditSource.SYSTEM,
    )
    actor_id: models.CharField = models.CharField(max_length=128, blank=True, default="")

    class Meta:
        db_table = "print_order_process_log"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "event"], name="popl_order_event_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.event}"


class VendorInteraction(AppendOnlyModel):
    """A single exchange with the print vendor."""

    order: models.ForeignKey = models.ForeignKey(
        "print_orders.PrintOrder",
        on_delete=models.PROTECT,
        related_name="vendor_interactions",
        null=True,
        blank=True,
    )
    direction: models.CharField = models.CharField(
        max_length=16,
        choices=InteractionDirection.choices,
        default=InteractionDirection.OUTBOUND,
    )
    action: models.CharField = models.CharField(max_length=64)
    method: models.CharField = models.CharField(max_length=8, blank=True, default="")
    endpoint: models.CharField = models.CharField(max_length=500, blank=True, default="")
    status_code: models.PositiveIntegerField = models.PositiveIntegerField(
        null=True, blank=True
    )
    request_body: models.JSONField = models.JSONField(null=True, blank=True)
    response_body: models.JSONField = models.JSONField(null=True, blank=True)
    error: models.TextField = models.TextField(blank=True, default="")
    duration_ms: models.PositiveIntegerField = models.PositiveIntegerField(
        null=True, blank=True
    )
    vendor_order_id: models.CharField = models.CharField(
        max_length=128, blank=True, default=""
    )

    class Meta:
        db_table = "print_order_vendor_interactions"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.direction} {self.action} [{self.status_code}]"
