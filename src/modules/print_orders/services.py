"""Print-order service layer (Use Cases).

- ``PrintOrderService``: parent-facing creation, lookup and payment.
- ``AdminActionService``: the operator console actions (validate,
  approve, submit, resubmit, reject, cancel, refresh status, update
  assets, mark paid).

Every fulfillment status change goes through ``OrderLifecycle`` so the
transition check, the field write and the history row share one
transaction.  Vendor calls and notifications happen outside it.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.db import models
from django.utils import timezone

from modules.print_orders.best_effort import best_effort
from modules.print_orders.config import FulfillmentConfig
from modules.print_orders.constants import (
    ADMIN_CANCELLABLE_STATES,
    APPROVABLE_STATES,
    ASSET_EDITABLE_STATES,
    NOTIFY_STATES,
    REJECTABLE_STATES,
    VALIDATABLE_STATES,
    VENDOR_STATUS_MAP,
    ApprovalStatus,
    AuditSource,
    FulfillmentStatus,
    PaymentStatus,
)
from modules.print_orders.exceptions import (
    InvalidOrderStatus,
    PrintOrderNotFound,
    PrintOrderValidationFailed,
    RejectionReasonRequired,
    VendorAPIError,
    VendorCancellationRefused,
)
from modules.print_orders.lifecycle import OrderLifecycle
from modules.print_orders.notifications import EmailNotificationSink
from modules.print_orders.repositories import PrintOrderDjangoRepository
from modules.print_orders.submission import SubmissionWorkflow
from modules.print_orders.validation import validate_printable_assets
from modules.print_orders.vendor.client import MixamClient

if TYPE_CHECKING:
    from modules.print_orders.dtos import (
        CreatePrintOrderDTO,
        SubmissionResult,
        UpdatePrintableAssetsDTO,
    )
    from modules.print_orders.models import PrintOrder
    from modules.print_orders.notifications import INotificationSink
    from modules.print_orders.repositories.interfaces import IPrintOrderRepository
    from modules.print_orders.vendor.client import IVendorClient
    from modules.print_orders.vendor.interactions import InteractionRecord

logger = structlog.get_logger(__name__)


def _source(actor_id: str) -> str:
    return AuditSource.ADMIN if actor_id else AuditSource.SYSTEM


def normalize_vendor_status(raw: str) -> str:
    """``"In Production"`` / ``"in_production"`` -> ``"INPRODUCTION"``."""
    return re.sub(r"[^A-Z]", "", (raw or "").upper())


# ---------------------------------------------------------------------------
# Parent-facing use cases
# ---------------------------------------------------------------------------


class PrintOrderService:
    """Application service for the parent's own print orders.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(self, repository: IPrintOrderRepository) -> None:
        self._repo = repository

    def create_order(self, dto: CreatePrintOrderDTO) -> PrintOrder:
        """Persist a new order in ``validating``.

        Creation is not a status change, so no history row is written;
        the process log records it instead.
        """
        order = self._repo.create(
            {
                "parent_uid": dto.parent_uid,
                "story_id": dto.story_id,
                "book_id": dto.book_id,
                "shipping_address": dto.shipping_address.model_dump(),
                "contact_email": dto.contact_email,
                "contact_phone": dto.contact_phone,
                "quantity": dto.quantity,
                "printable_files": dto.printable_files.model_dump(),
                "printable_metadata": dto.printable_metadata.model_dump(),
                "requires_approval": dto.requires_approval,
            }
        )
        self._repo.add_process_log(
            order.id,
            "order_created",
            message="Print order created.",
            data={"story_id": dto.story_id, "book_id": dto.book_id},
            source=AuditSource.PARENT,
            actor_id=dto.parent_uid,
        )
        logger.info(
            "print_order.creation_completed",
            order_id=str(order.id),
            parent_uid=dto.parent_uid,
        )
        return order

    def list_for_parent(self, parent_uid: str) -> models.QuerySet:
        return self._repo.list({"parent_uid": parent_uid})

    def get_for_parent(self, order_id: str, parent_uid: str) -> PrintOrder:
        """Raises ``PrintOrderNotFound`` for orders the parent does not own."""
        order = self._repo.get_by_id(str(order_id))
        if not order or order.parent_uid != parent_uid:
            raise PrintOrderNotFound(f"Print order {order_id} not found.")
        return order

    def mark_paid(
        self, order_id: str, actor_id: str = "", source: str = AuditSource.PARENT
    ) -> PrintOrder:
        """Record payment; allowed in any state and never touches the vendor."""
        lifecycle = OrderLifecycle(self._repo)
        order = lifecycle.update(
            order_id,
            {
                "payment_status": PaymentStatus.PAID,
                "payment_marked_at": timezone.now(),
                "payment_marked_by": actor_id,
            },
        )
        self._repo.add_process_log(
            order.id,
            "payment_marked",
            message="Order marked as paid.",
            source=source,
            actor_id=actor_id,
        )
        logger.info(
            "print_order.marked_paid", order_id=str(order.id), actor_id=actor_id
        )
        return order


# ---------------------------------------------------------------------------
# Admin actions
# ---------------------------------------------------------------------------


class AdminActionService:
    """Operator actions on print orders.

    Receives the store, vendor client, notifier and configuration via DI.
    """

    def __init__(
        self,
        repository: IPrintOrderRepository,
        vendor_client: IVendorClient,
        notifier: INotificationSink,
        config: FulfillmentConfig,
    ) -> None:
        self._repo = repository
        self._vendor = vendor_client
        self._notifier = notifier
        self._lifecycle = OrderLifecycle(repository)
        self._submission = SubmissionWorkflow(
            repository, vendor_client, config, lifecycle=self._lifecycle
        )
        self._orders = PrintOrderService(repository)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, order_id: str) -> PrintOrder:
        order = self._repo.get_by_id(str(order_id))
        if not order:
            raise PrintOrderNotFound(f"Print order {order_id} not found.")
        return order

    # ------------------------------------------------------------------
    # Validation & approval
    # ------------------------------------------------------------------

    def validate(self, order_id: str, actor_id: str = "") -> PrintOrder:
        """Run the Validation Engine and advance the order when it passes.

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: order is past validation.
            PrintOrderValidationFailed: errors found; state unchanged.
        """
        order = self.get(order_id)
        if order.fulfillment_status not in VALIDATABLE_STATES:
            raise InvalidOrderStatus(
                f"Cannot validate an order that is {order.fulfillment_status}."
            )

        result = validate_printable_assets(
            order.printable_files, order.printable_metadata
        )
        if not result.valid:
            self._repo.add_process_log(
                order.id,
                "validation_failed",
                message="; ".join(result.errors),
                data={"errors": result.errors},
                source=_source(actor_id),
                actor_id=actor_id,
            )
            raise PrintOrderValidationFailed(result.errors)

        updates: Dict[str, Any] = {
            "fulfillment_notes": "",
            "vendor_validation_errors": [],
        }
        if order.requires_approval and order.approval_status != ApprovalStatus.APPROVED:
            new_status = FulfillmentStatus.AWAITING_APPROVAL
            updates["approval_status"] = ApprovalStatus.AWAITING_APPROVAL
        else:
            new_status = FulfillmentStatus.READY_TO_SUBMIT

        order, _ = self._lifecycle.transition(
            order.id,
            new_status,
            note="Printable assets passed validation.",
            source=_source(actor_id),
            actor_id=actor_id,
            updates=updates,
            allowed_from=VALIDATABLE_STATES,
        )
        return order

    def approve(self, order_id: str, actor_id: str) -> PrintOrder:
        """Approve an order for printing.

        From ``awaiting_approval`` the order also moves to
        ``ready_to_submit``; from ``ready_to_submit`` only the approval
        fields change.
        """
        order = self.get(order_id)
        if order.fulfillment_status not in APPROVABLE_STATES:
            raise InvalidOrderStatus(
                f"Cannot approve an order that is {order.fulfillment_status}."
            )

        updates = {
            "approval_status": ApprovalStatus.APPROVED,
            "approved_at": timezone.now(),
            "approved_by": actor_id,
        }
        if order.fulfillment_status == FulfillmentStatus.AWAITING_APPROVAL:
            order, _ = self._lifecycle.transition(
                order.id,
                FulfillmentStatus.READY_TO_SUBMIT,
                note="Approved for printing.",
                source=AuditSource.ADMIN,
                actor_id=actor_id,
                updates=updates,
                allowed_from={FulfillmentStatus.AWAITING_APPROVAL},
            )
        else:
            order = self._lifecycle.update(
                order.id, updates, allowed_from=APPROVABLE_STATES
            )

        self._repo.add_process_log(
            order.id,
            "order_approved",
            message="Order approved for printing.",
            source=AuditSource.ADMIN,
            actor_id=actor_id,
        )
        logger.info("print_order.approved", order_id=str(order.id), actor_id=actor_id)
        return order

    def reject(self, order_id: str, actor_id: str, reason: str) -> PrintOrder:
        """Reject an order before submission; it ends up ``cancelled``.

        Raises:
            RejectionReasonRequired: *reason* is blank.
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: order is not awaiting approval or ready.
        """
        reason = (reason or "").strip()
        if not reason:
            raise RejectionReasonRequired("A rejection reason is required.")

        order, _ = self._lifecycle.transition(
            order_id,
            FulfillmentStatus.CANCELLED,
            note=f"Rejected: {reason}",
            source=AuditSource.ADMIN,
            actor_id=actor_id,
            updates={
                "approval_status": ApprovalStatus.REJECTED,
                "rejected_at": timezone.now(),
                "rejected_by": actor_id,
                "rejected_reason": reason,
            },
            allowed_from=REJECTABLE_STATES,
        )
        self._repo.add_process_log(
            order.id,
            "order_rejected",
            message=reason,
            source=AuditSource.ADMIN,
            actor_id=actor_id,
        )
        best_effort(
            "print_order.rejection_notification_failed",
            self._notifier.notify_rejected,
            order,
            reason,
            on_error=self._notification_failed(order, actor_id),
        )
        logger.info("print_order.rejected", order_id=str(order.id), actor_id=actor_id)
        return order

    # ------------------------------------------------------------------
    # Vendor submission
    # ------------------------------------------------------------------

    def submit(self, order_id: str, actor_id: str) -> SubmissionResult:
        return self._submission.submit(order_id, actor_id)

    def resubmit(self, order_id: str, actor_id: str) -> SubmissionResult:
        return self._submission.resubmit(order_id, actor_id)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, order_id: str, actor_id: str, reason: str = "") -> PrintOrder:
        """Cancel an order, cancelling the vendor order first when one exists.

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: order is in production, shipped or terminal.
            VendorCancellationRefused: the vendor answered 409.
        """
        order = self.get(order_id)
        if order.fulfillment_status not in ADMIN_CANCELLABLE_STATES:
            raise InvalidOrderStatus(
                f"Cannot cancel an order that is {order.fulfillment_status}."
            )
        reason = (reason or "").strip()
        log = logger.bind(order_id=str(order.id), actor_id=actor_id)

        if order.mixam_order_id:
            try:
                call = self._vendor.cancel_order(order.mixam_order_id)
            except VendorAPIError as exc:
                self._log_interactions(order, exc.interactions)
                if exc.status_code == 409:
                    self._repo.add_process_log(
                        order.id,
                        "mixam_cancel_refused",
                        message=str(exc),
                        data={"mixam_order_id": order.mixam_order_id},
                        source=AuditSource.ADMIN,
                        actor_id=actor_id,
                    )
                    log.warning("print_order.vendor_cancel_refused")
                    raise VendorCancellationRefused(
                        f"Vendor refused to cancel order {order.mixam_order_id}."
                    ) from exc
                self._repo.add_process_log(
                    order.id,
                    "mixam_cancel_failed",
                    message=str(exc),
                    data={
                        "mixam_order_id": order.mixam_order_id,
                        "status_code": exc.status_code,
                    },
                    source=AuditSource.ADMIN,
                    actor_id=actor_id,
                )
                log.warning("print_order.vendor_cancel_failed", error=str(exc))
            else:
                self._log_interactions(order, call.interactions)
                self._repo.add_process_log(
                    order.id,
                    "mixam_order_cancelled",
                    message=f"Vendor order {order.mixam_order_id} cancelled.",
                    data={"mixam_order_id": order.mixam_order_id},
                    source=AuditSource.ADMIN,
                    actor_id=actor_id,
                )

        order, previous_status = self._lifecycle.transition(
            order.id,
            FulfillmentStatus.CANCELLED,
            note=f"Cancelled by admin{f': {reason}' if reason else ''}",
            source=AuditSource.ADMIN,
            actor_id=actor_id,
            updates={
                "cancelled_at": timezone.now(),
                "cancelled_by": actor_id,
                "cancellation_reason": reason,
            },
            allowed_from=ADMIN_CANCELLABLE_STATES,
        )
        self._notify_status(order, previous_status, actor_id)
        log.info("print_order.cancelled")
        return order

    # ------------------------------------------------------------------
    # Vendor status polling
    # ------------------------------------------------------------------

    def refresh_status(self, order_id: str, actor_id: str = "") -> PrintOrder:
        """Ask the vendor for the current status and apply it tolerantly.

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: the order has never been submitted.
            VendorAPIError: the vendor lookup failed.
        """
        order = self.get(order_id)
        vendor_ref = order.mixam_order_id or order.mixam_job_number
        if not vendor_ref:
            raise InvalidOrderStatus("Order has not been submitted to the vendor.")

        try:
            call = self._vendor.get_order_status(vendor_ref)
        except VendorAPIError as exc:
            self._log_interactions(order, exc.interactions)
            logger.warning(
                "print_order.status_refresh_failed",
                order_id=str(order.id),
                error=str(exc),
            )
            raise
        self._log_interactions(order, call.interactions)

        vendor_status = call.value
        now = timezone.now()
        raw_status = normalize_vendor_status(vendor_status.status)
        new_status = VENDOR_STATUS_MAP.get(raw_status)
        if new_status is None:
            order = self._lifecycle.update(
                order.id,
                {"mixam_status": vendor_status.status, "status_checked_at": now},
            )
            self._repo.add_process_log(
                order.id,
                "vendor_status_unmapped",
                message=f"No mapping for vendor status {vendor_status.status}.",
                data={"mixam_status": vendor_status.status},
                source=_source(actor_id),
                actor_id=actor_id,
            )
            return order

        updates: Dict[str, Any] = {
            "mixam_status": vendor_status.status,
            "status_checked_at": now,
        }
        if vendor_status.tracking_url:
            updates["tracking_url"] = vendor_status.tracking_url
        if vendor_status.estimated_delivery:
            updates["estimated_delivery"] = vendor_status.estimated_delivery

        outcome = self._lifecycle.apply_external(
            order.id,
            new_status,
            note=f"Vendor reports {vendor_status.status}",
            source=AuditSource.SYSTEM,
            updates=updates,
            context={"mixam_status": vendor_status.status},
        )
        if outcome.changed:
            self._notify_status(outcome.order, outcome.previous_status, actor_id)
        return outcome.order

    # ------------------------------------------------------------------
    # Assets & payment
    # ------------------------------------------------------------------

    def update_assets(
        self, order_id: str, dto: UpdatePrintableAssetsDTO, actor_id: str
    ) -> PrintOrder:
        """Replace the printable files and metadata (manual correction)."""
        order = self._lifecycle.update(
            order_id,
            {
                "printable_files": dto.printable_files.model_dump(),
                "printable_metadata": dto.printable_metadata.model_dump(),
            },
            allowed_from=ASSET_EDITABLE_STATES,
        )
        self._repo.add_process_log(
            order.id,
            "assets_updated",
            message="Printable assets replaced.",
            data={
                "printable_files": order.printable_files,
                "printable_metadata": order.printable_metadata,
            },
            source=AuditSource.ADMIN,
            actor_id=actor_id,
        )
        return order

    def mark_paid(self, order_id: str, actor_id: str) -> PrintOrder:
        return self._orders.mark_paid(order_id, actor_id, source=AuditSource.ADMIN)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _notify_status(
        self, order: PrintOrder, previous_status: str, actor_id: str
    ) -> None:
        if order.fulfillment_status not in NOTIFY_STATES:
            return
        best_effort(
            "print_order.notification_failed",
            self._notifier.notify_status_changed,
            order,
            previous_status,
            order.fulfillment_status,
            on_error=self._notification_failed(order, actor_id),
        )

    def _notification_failed(self, order: PrintOrder, actor_id: str):
        def record(exc: Exception) -> None:
            self._repo.add_process_log(
                order.id,
                "notification_failed",
                message=str(exc),
                data={"status": order.fulfillment_status},
                source=_source(actor_id),
                actor_id=actor_id,
            )

        return record

    def _log_interactions(
        self, order: PrintOrder, interactions: list[InteractionRecord]
    ) -> None:
        if interactions:
            best_effort(
                "print_order.interaction_log_failed",
                self._repo.add_interactions,
                order.id,
                interactions,
            )


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_vendor_client() -> IVendorClient:
    """Process-wide vendor client so the bearer token cache is shared."""
    return MixamClient.from_settings()


def build_admin_service(
    vendor_client: Optional[IVendorClient] = None,
) -> AdminActionService:
    config = FulfillmentConfig.from_settings()
    return AdminActionService(
        repository=PrintOrderDjangoRepository(),
        vendor_client=vendor_client or get_vendor_client(),
        notifier=EmailNotificationSink(config.notify_emails),
        config=config,
    )
