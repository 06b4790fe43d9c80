"""Print-order domain constants.

Defines the fulfillment status choices and the legal transitions of the
order lifecycle state machine, plus the tables that translate vendor
webhook events and raw vendor statuses into fulfillment statuses.
"""

from datetime import timedelta

from django.db import models


class FulfillmentStatus(models.TextChoices):
    VALIDATING = "validating", "Validating"
    AWAITING_APPROVAL = "awaiting_approval", "Awaiting approval"
    READY_TO_SUBMIT = "ready_to_submit", "Ready to submit"
    SUBMITTED = "submitted", "Submitted"
    CONFIRMED = "confirmed", "Confirmed"
    IN_PRODUCTION = "in_production", "In production"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    ON_HOLD = "on_hold", "On hold"
    VALIDATION_FAILED = "validation_failed", "Validation failed"
    CANCELLED = "cancelled", "Cancelled"


class ApprovalStatus(models.TextChoices):
    NONE = "none", "Not required"
    AWAITING_APPROVAL = "awaiting_approval", "Awaiting approval"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class PaymentStatus(models.TextChoices):
    UNPAID = "unpaid", "Unpaid"
    PAID = "paid", "Paid"


class BindingType(models.TextChoices):
    CASE = "case", "Hardcover (case bound)"
    CASE_WITH_SEWING = "case_with_sewing", "Hardcover, sewn"
    PERFECT = "perfect", "Softcover (perfect bound)"
    SADDLE_STITCH = "saddle_stitch", "Saddle stitched"


class AuditSource(models.TextChoices):
    ADMIN = "admin", "Admin"
    SYSTEM = "system", "System"
    WEBHOOK = "webhook", "Webhook"
    PARENT = "parent", "Parent"


class InteractionDirection(models.TextChoices):
    OUTBOUND = "outbound", "Outbound"
    INBOUND = "inbound", "Inbound"


S = FulfillmentStatus

VALID_TRANSITIONS: dict[str, set[str]] = {
    S.VALIDATING: {
        S.READY_TO_SUBMIT,
        S.AWAITING_APPROVAL,
        S.VALIDATION_FAILED,
        S.CANCELLED,
    },
    S.AWAITING_APPROVAL: {
        S.READY_TO_SUBMIT,
        S.SUBMITTED,
        S.ON_HOLD,
        S.VALIDATION_FAILED,
        S.CANCELLED,
    },
    S.READY_TO_SUBMIT: {
        S.SUBMITTED,
        S.ON_HOLD,
        S.VALIDATION_FAILED,
        S.CANCELLED,
    },
    S.SUBMITTED: {
        S.CONFIRMED,
        S.IN_PRODUCTION,
        S.SHIPPED,
        S.DELIVERED,
        S.ON_HOLD,
        S.VALIDATION_FAILED,
        S.CANCELLED,
    },
    S.CONFIRMED: {
        S.IN_PRODUCTION,
        S.SHIPPED,
        S.DELIVERED,
        S.ON_HOLD,
        S.VALIDATION_FAILED,
        S.CANCELLED,
    },
    S.IN_PRODUCTION: {
        S.SHIPPED,
        S.DELIVERED,
        S.ON_HOLD,
        S.VALIDATION_FAILED,
        S.CANCELLED,
    },
    S.SHIPPED: {S.DELIVERED, S.VALIDATION_FAILED, S.CANCELLED},
    # on_hold -> on_hold records a failed resubmission attempt
    S.ON_HOLD: {S.SUBMITTED, S.ON_HOLD, S.VALIDATION_FAILED, S.CANCELLED},
    S.VALIDATION_FAILED: {S.READY_TO_SUBMIT, S.AWAITING_APPROVAL, S.CANCELLED},
    S.DELIVERED: set(),
    S.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {S.DELIVERED, S.CANCELLED}

SUBMITTABLE_STATES: set[str] = {S.READY_TO_SUBMIT, S.AWAITING_APPROVAL}
RESUBMITTABLE_STATES: set[str] = {S.ON_HOLD}
# A submission claim older than this is treated as abandoned.
SUBMISSION_CLAIM_TIMEOUT = timedelta(minutes=10)
REJECTABLE_STATES: set[str] = {S.AWAITING_APPROVAL, S.READY_TO_SUBMIT}
APPROVABLE_STATES: set[str] = {S.AWAITING_APPROVAL, S.READY_TO_SUBMIT}
VALIDATABLE_STATES: set[str] = {S.VALIDATING, S.VALIDATION_FAILED}
ASSET_EDITABLE_STATES: set[str] = {S.VALIDATING, S.VALIDATION_FAILED, S.ON_HOLD}
# Once the vendor is printing or has dispatched, cancelling is refused.
ADMIN_CANCELLABLE_STATES: set[str] = {
    S.VALIDATING,
    S.AWAITING_APPROVAL,
    S.READY_TO_SUBMIT,
    S.SUBMITTED,
    S.CONFIRMED,
    S.ON_HOLD,
    S.VALIDATION_FAILED,
}

# Statuses that warrant telling someone.
NOTIFY_STATES: set[str] = {
    S.VALIDATION_FAILED,
    S.CONFIRMED,
    S.SHIPPED,
    S.DELIVERED,
    S.CANCELLED,
}

# ---------------------------------------------------------------------------
# Validation thresholds
# ---------------------------------------------------------------------------

CASE_BINDINGS: set[str] = {BindingType.CASE, BindingType.CASE_WITH_SEWING}
MIN_INTERIOR_PAGES_CASE = 24
MIN_INTERIOR_PAGES_DEFAULT = 8
PAGE_MULTIPLE = 4

# ---------------------------------------------------------------------------
# Vendor mappings
# ---------------------------------------------------------------------------

WEBHOOK_EVENT_STATUS: dict[str, str] = {
    "file.validation_passed": S.READY_TO_SUBMIT,
    "file.validation_failed": S.VALIDATION_FAILED,
    "order.received": S.SUBMITTED,
    "order.confirmed": S.CONFIRMED,
    "order.in_production": S.IN_PRODUCTION,
    "order.on_hold": S.ON_HOLD,
    "order.shipped": S.SHIPPED,
    "order.dispatched": S.SHIPPED,
    "order.delivered": S.DELIVERED,
    "order.cancelled": S.CANCELLED,
    "order.canceled": S.CANCELLED,
}

VENDOR_STATUS_MAP: dict[str, str] = {
    "PENDING": S.SUBMITTED,
    "RECEIVED": S.SUBMITTED,
    "CONFIRMED": S.CONFIRMED,
    "ACCEPTED": S.CONFIRMED,
    "INPRODUCTION": S.IN_PRODUCTION,
    "PRINTING": S.IN_PRODUCTION,
    "DISPATCHED": S.SHIPPED,
    "SHIPPED": S.SHIPPED,
    "DELIVERED": S.DELIVERED,
    "CANCELLED": S.CANCELLED,
    "CANCELED": S.CANCELLED,
    "ONHOLD": S.ON_HOLD,
}

WEBHOOK_SIGNATURE_HEADER = "X-Vendor-Signature"
