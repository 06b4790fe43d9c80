"""Print-order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.

Parents get a coarse view without vendor internals; admins get the full
order with its status history, process log and vendor interactions.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.print_orders.constants import BindingType
from modules.print_orders.models import (
    PrintOrder,
    PrintOrderProcessLog,
    PrintOrderStatusHistory,
    VendorInteraction,
)

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class ShippingAddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    line1 = serializers.CharField(max_length=200)
    line2 = serializers.CharField(
        max_length=200, required=False, default="", allow_blank=True
    )
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(
        max_length=100, required=False, default="", allow_blank=True
    )
    postal_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=2, required=False, default="GB")


class PrintableFilesSerializer(serializers.Serializer):
    cover_pdf_url = serializers.URLField(required=False, allow_null=True, default=None)
    interior_pdf_url = serializers.URLField(
        required=False, allow_null=True, default=None
    )


class PrintableMetadataSerializer(serializers.Serializer):
    interior_page_count = serializers.IntegerField(min_value=0)
    cover_page_count = serializers.IntegerField(min_value=0, required=False, default=4)
    binding_type = serializers.ChoiceField(
        choices=BindingType.choices, required=False, default=BindingType.CASE
    )
    trim_size = serializers.CharField(max_length=32, required=False, default="A4")
    padding_page_count = serializers.IntegerField(
        min_value=0, required=False, default=0
    )


class CreatePrintOrderSerializer(serializers.Serializer):
    """Validates the print-order creation request payload."""

    story_id = serializers.CharField(max_length=128)
    book_id = serializers.CharField(
        max_length=128, required=False, default="", allow_blank=True
    )
    shipping_address = ShippingAddressSerializer()
    contact_email = serializers.EmailField()
    contact_phone = serializers.CharField(
        max_length=32, required=False, default="", allow_blank=True
    )
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)
    printable_files = PrintableFilesSerializer(required=False)
    printable_metadata = PrintableMetadataSerializer()
    requires_approval = serializers.BooleanField(required=False, default=False)


class UpdatePrintableAssetsSerializer(serializers.Serializer):
    printable_files = PrintableFilesSerializer()
    printable_metadata = PrintableMetadataSerializer()


class RejectSerializer(serializers.Serializer):
    # blank passes here; the service raises RejectionReasonRequired
    reason = serializers.CharField(required=False, default="", allow_blank=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = PrintOrderStatusHistory
        fields = [
            "id",
            "old_status",
            "status",
            "note",
            "source",
            "actor_id",
            "created_at",
        ]
        read_only_fields = fields


class ProcessLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = PrintOrderProcessLog
        fields = [
            "id",
            "event",
            "message",
            "data",
            "source",
            "actor_id",
            "created_at",
        ]
        read_only_fields = fields


class VendorInteractionSerializer(serializers.ModelSerializer):
    class Meta:
        model = VendorInteraction
        fields = [
            "id",
            "direction",
            "action",
            "method",
            "endpoint",
            "status_code",
            "request_body",
            "response_body",
            "error",
            "duration_ms",
            "vendor_order_id",
            "created_at",
        ]
        read_only_fields = fields


class ParentPrintOrderSerializer(serializers.ModelSerializer):
    """What a parent sees: progress and tracking, no vendor internals."""

    class Meta:
        model = PrintOrder
        fields = [
            "id",
            "story_id",
            "book_id",
            "fulfillment_status",
            "payment_status",
            "quantity",
            "shipping_address",
            "tracking_number",
            "carrier",
            "tracking_url",
            "estimated_delivery",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AdminPrintOrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for the admin list (no nested relations)."""

    class Meta:
        model = PrintOrder
        fields = [
            "id",
            "parent_uid",
            "story_id",
            "fulfillment_status",
            "approval_status",
            "payment_status",
            "mixam_order_id",
            "mixam_job_number",
            "mixam_status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AdminPrintOrderSerializer(serializers.ModelSerializer):
    """Full order with its audit trails."""

    status_history = StatusHistorySerializer(many=True, read_only=True)
    process_log = ProcessLogSerializer(many=True, read_only=True)
    vendor_interactions = VendorInteractionSerializer(many=True, read_only=True)

    class Meta:
        model = PrintOrder
        fields = [
            "id",
            "parent_uid",
            "story_id",
            "book_id",
            "fulfillment_status",
            "approval_status",
            "requires_approval",
            "payment_status",
            "payment_marked_at",
            "payment_marked_by",
            "mixam_order_id",
            "mixam_job_number",
            "mixam_status",
            "previous_mixam_order_id",
            "previous_mixam_job_number",
            "printable_files",
            "printable_metadata",
            "shipping_address",
            "contact_email",
            "contact_phone",
            "quantity",
            "fulfillment_notes",
            "vendor_validation_errors",
            "tracking_number",
            "carrier",
            "tracking_url",
            "estimated_delivery",
            "submitted_at",
            "submitted_by",
            "resubmitted_at",
            "resubmitted_by",
            "submission_started_at",
            "approved_at",
            "approved_by",
            "rejected_at",
            "rejected_by",
            "rejected_reason",
            "cancelled_at",
            "cancelled_by",
            "cancellation_reason",
            "last_webhook_at",
            "status_checked_at",
            "created_at",
            "updated_at",
            "status_history",
            "process_log",
            "vendor_interactions",
        ]
        read_only_fields = fields


class SubmissionResultSerializer(serializers.Serializer):
    mixam_order_id = serializers.CharField()
    mixam_job_number = serializers.CharField(allow_blank=True)
    mixam_status = serializers.CharField(allow_blank=True)
    is_resubmission = serializers.BooleanField()
    previous_mixam_order_id = serializers.CharField(allow_blank=True)
    previous_mixam_job_number = serializers.CharField(allow_blank=True)
