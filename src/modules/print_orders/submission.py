"""Submission workflow: hand a validated order to the print vendor.

First submission (from ``ready_to_submit`` / ``awaiting_approval``) and
resubmission (from ``on_hold`` only) share one path:

1. Re-run the Validation Engine.  Failures raise
   ``PrintOrderValidationFailed``; no vendor call, no state change.
2. Resolve the account billing address, best-effort (shipping address is
   billed when it cannot be resolved).
3. Resubmission only: ask the vendor to cancel the previous vendor order,
   best-effort, logging ``mixam_order_cancelled`` or ``mixam_cancel_failed``.
4. Build the job document and submit it.
5. Persist every vendor interaction, success or failure.
6. Success: ``submitted`` with the new vendor ids.  Failure: ``on_hold``
   with the error in ``fulfillment_notes``, existing vendor ids untouched,
   then ``VendorSubmissionFailed`` is raised.

Before step 2 the order is claimed under the row lock (``submission_started_at``)
so a concurrent submit or resubmit is refused before it reaches the vendor.
No database lock is held while the vendor is being called.  If the order
left the submittable states meanwhile, the new vendor order is logged as
``mixam_submitted_orphaned`` and cancelled, best-effort.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence

import structlog
from django.utils import timezone
from pydantic import ValidationError

from modules.print_orders.best_effort import best_effort
from modules.print_orders.constants import (
    RESUBMITTABLE_STATES,
    SUBMISSION_CLAIM_TIMEOUT,
    SUBMITTABLE_STATES,
    ApprovalStatus,
    AuditSource,
    FulfillmentStatus,
)
from modules.print_orders.dtos import SubmissionResult
from modules.print_orders.exceptions import (
    InvalidOrderStatus,
    PrintOrderNotFound,
    PrintOrderValidationFailed,
    VendorAPIError,
    VendorSubmissionFailed,
)
from modules.print_orders.lifecycle import OrderLifecycle
from modules.print_orders.validation import validate
from modules.print_orders.vendor.job_document import build_job_document

if TYPE_CHECKING:
    from modules.print_orders.config import FulfillmentConfig
    from modules.print_orders.dtos import BillingAddressDTO
    from modules.print_orders.models import PrintOrder
    from modules.print_orders.repositories.interfaces import IPrintOrderRepository
    from modules.print_orders.vendor.client import IVendorClient, VendorOrder
    from modules.print_orders.vendor.interactions import InteractionRecord

logger = structlog.get_logger(__name__)


class SubmissionWorkflow:
    """Receives the store, the vendor client and configuration via DI."""

    def __init__(
        self,
        repository: IPrintOrderRepository,
        vendor_client: IVendorClient,
        config: FulfillmentConfig,
        lifecycle: Optional[OrderLifecycle] = None,
    ) -> None:
        self._repo = repository
        self._vendor = vendor_client
        self._config = config
        self._lifecycle = lifecycle or OrderLifecycle(repository)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def submit(self, order_id: str, actor_id: str = "") -> SubmissionResult:
        """Submit an order for the first time.

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: not submittable, or rejected.
            PrintOrderValidationFailed: assets failed validation.
            VendorSubmissionFailed: vendor call failed; order now ``on_hold``.
        """
        order = self._get(order_id)
        if order.fulfillment_status not in SUBMITTABLE_STATES:
            raise InvalidOrderStatus(
                f"Cannot submit an order that is {order.fulfillment_status}."
            )
        if order.approval_status == ApprovalStatus.REJECTED:
            raise InvalidOrderStatus("Cannot submit a rejected order.")
        return self._run(order, actor_id, is_resubmission=False)

    def resubmit(self, order_id: str, actor_id: str = "") -> SubmissionResult:
        """Resubmit an ``on_hold`` order, replacing its previous vendor order.

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: order is not ``on_hold``.
            PrintOrderValidationFailed: assets failed validation.
            VendorSubmissionFailed: vendor call failed; order stays ``on_hold``.
        """
        order = self._get(order_id)
        if order.fulfillment_status not in RESUBMITTABLE_STATES:
            raise InvalidOrderStatus(
                f"Only on_hold orders can be resubmitted (order is "
                f"{order.fulfillment_status})."
            )
        return self._run(order, actor_id, is_resubmission=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, order_id: str) -> PrintOrder:
        order = self._repo.get_by_id(str(order_id))
        if not order:
            raise PrintOrderNotFound(f"Print order {order_id} not found.")
        return order

    def _run(
        self, order: PrintOrder, actor_id: str, *, is_resubmission: bool
    ) -> SubmissionResult:
        log = logger.bind(
            order_id=str(order.id),
            actor_id=actor_id,
            resubmission=is_resubmission,
        )
        source = AuditSource.ADMIN if actor_id else AuditSource.SYSTEM
        allowed_from = RESUBMITTABLE_STATES if is_resubmission else SUBMITTABLE_STATES

        result = validate(order)
        if not result.valid:
            log.warning("print_order.submission_validation_failed", errors=result.errors)
            raise PrintOrderValidationFailed(result.errors)

        order = self._lifecycle.claim_submission(
            order.id,
            allowed_from=allowed_from,
            stale_after=SUBMISSION_CLAIM_TIMEOUT,
        )
        try:
            return self._submit_claimed(
                order, actor_id, source, allowed_from, is_resubmission, log
            )
        except Exception:
            self._release_claim(order)
            raise

    def _submit_claimed(
        self,
        order: PrintOrder,
        actor_id: str,
        source: str,
        allowed_from: set[str],
        is_resubmission: bool,
        log: Any,
    ) -> SubmissionResult:
        billing = self._billing_address()

        previous_order_id = order.mixam_order_id
        previous_job_number = order.mixam_job_number
        if is_resubmission and previous_order_id:
            self._cancel_previous(order, previous_order_id, actor_id, source)

        log.info("print_order.submission_started")
        try:
            document = build_job_document(
                order,
                billing_address=billing,
                payment_method=self._config.payment_method,
                status_callback_url=self._config.status_callback_url,
            )
            call = self._vendor.submit_order(
                document.to_payload(), external_order_id=str(order.id)
            )
        except ValidationError as exc:
            self._park(
                order,
                f"Could not build vendor job document: {exc}",
                actor_id,
                source,
                allowed_from,
                is_resubmission,
            )
            raise VendorSubmissionFailed(str(exc)) from exc
        except VendorAPIError as exc:
            self._log_interactions(order, exc.interactions)
            self._park(
                order, str(exc), actor_id, source, allowed_from, is_resubmission
            )
            raise VendorSubmissionFailed(str(exc), transient=exc.transient) from exc

        self._log_interactions(order, call.interactions)
        vendor_order = call.value

        now = timezone.now()
        updates = {
            "mixam_order_id": vendor_order.order_id,
            "mixam_job_number": vendor_order.job_number,
            "mixam_status": vendor_order.status,
            "fulfillment_notes": "",
            "vendor_validation_errors": [],
            "submission_started_at": None,
        }
        if is_resubmission:
            updates.update(
                previous_mixam_order_id=previous_order_id,
                previous_mixam_job_number=previous_job_number,
                resubmitted_at=now,
                resubmitted_by=actor_id,
            )
        else:
            updates.update(submitted_at=now, submitted_by=actor_id)

        try:
            self._lifecycle.transition(
                order.id,
                FulfillmentStatus.SUBMITTED,
                note=f"{'Resubmitted' if is_resubmission else 'Submitted'} to vendor "
                f"as order {vendor_order.order_id} (job {vendor_order.job_number}).",
                source=source,
                actor_id=actor_id,
                updates=updates,
                allowed_from=allowed_from,
            )
        except InvalidOrderStatus as exc:
            self._discard_orphan(order, vendor_order, str(exc), actor_id, source)
            raise
        self._repo.add_process_log(
            order.id,
            "mixam_resubmitted" if is_resubmission else "mixam_submitted",
            message=f"Vendor order {vendor_order.order_id} created.",
            data={
                "mixam_order_id": vendor_order.order_id,
                "mixam_job_number": vendor_order.job_number,
                "mixam_status": vendor_order.status,
                "previous_mixam_order_id": previous_order_id,
            },
            source=source,
            actor_id=actor_id,
        )
        log.info(
            "print_order.submitted",
            mixam_order_id=vendor_order.order_id,
            mixam_job_number=vendor_order.job_number,
        )

        return SubmissionResult(
            mixam_order_id=vendor_order.order_id,
            mixam_job_number=vendor_order.job_number,
            mixam_status=vendor_order.status,
            is_resubmission=is_resubmission,
            previous_mixam_order_id=previous_order_id if is_resubmission else "",
            previous_mixam_job_number=previous_job_number if is_resubmission else "",
        )

    def _billing_address(self) -> Optional[BillingAddressDTO]:
        outcome = best_effort(
            "print_order.billing_address_unavailable",
            self._config.resolve_billing_address,
        )
        return outcome.value

    def _cancel_previous(
        self, order: PrintOrder, vendor_order_id: str, actor_id: str, source: str
    ) -> None:
        outcome = best_effort(
            "print_order.previous_vendor_order_cancel_failed",
            self._vendor.cancel_order,
            vendor_order_id,
        )
        if outcome.ok:
            self._log_interactions(order, outcome.value.interactions)
            self._repo.add_process_log(
                order.id,
                "mixam_order_cancelled",
                message=f"Previous vendor order {vendor_order_id} cancelled.",
                data={"mixam_order_id": vendor_order_id},
                source=source,
                actor_id=actor_id,
            )
            return

        error = outcome.error
        if isinstance(error, VendorAPIError):
            self._log_interactions(order, error.interactions)
        self._repo.add_process_log(
            order.id,
            "mixam_cancel_failed",
            message=f"Could not cancel previous vendor order {vendor_order_id}: {error}",
            data={
                "mixam_order_id": vendor_order_id,
                "status_code": getattr(error, "status_code", None),
            },
            source=source,
            actor_id=actor_id,
        )

    def _park(
        self,
        order: PrintOrder,
        error: str,
        actor_id: str,
        source: str,
        allowed_from: set[str],
        is_resubmission: bool,
    ) -> None:
        """Move the order to ``on_hold`` with the failure recorded."""
        note = (
            f"{'Resubmission' if is_resubmission else 'Submission'} failed: {error}"
        )
        self._lifecycle.transition(
            order.id,
            FulfillmentStatus.ON_HOLD,
            note=note,
            source=source,
            actor_id=actor_id,
            updates={"fulfillment_notes": note, "submission_started_at": None},
            allowed_from=allowed_from,
        )
        self._repo.add_process_log(
            order.id,
            "mixam_resubmit_failed" if is_resubmission else "mixam_submit_failed",
            message=note,
            source=source,
            actor_id=actor_id,
        )
        logger.warning(
            "print_order.submission_failed",
            order_id=str(order.id),
            resubmission=is_resubmission,
            error=error,
        )

    def _release_claim(self, order: PrintOrder) -> None:
        best_effort(
            "print_order.submission_claim_release_failed",
            self._lifecycle.update,
            order.id,
            {"submission_started_at": None},
        )

    def _discard_orphan(
        self,
        order: PrintOrder,
        vendor_order: VendorOrder,
        error: str,
        actor_id: str,
        source: str,
    ) -> None:
        """Record and cancel a vendor order the local order can no longer take.

        Happens when the order left the submittable states while the
        vendor call was running (e.g. it was cancelled meanwhile).
        """
        cancel = best_effort(
            "print_order.orphaned_vendor_order_cancel_failed",
            self._vendor.cancel_order,
            vendor_order.order_id,
        )
        if cancel.ok:
            self._log_interactions(order, cancel.value.interactions)
        elif isinstance(cancel.error, VendorAPIError):
            self._log_interactions(order, cancel.error.interactions)

        self._repo.add_process_log(
            order.id,
            "mixam_submitted_orphaned",
            message=(
                f"Vendor order {vendor_order.order_id} was created but the order "
                f"could not be marked submitted: {error}"
            ),
            data={
                "mixam_order_id": vendor_order.order_id,
                "mixam_job_number": vendor_order.job_number,
                "cancelled": cancel.ok,
            },
            source=source,
            actor_id=actor_id,
        )
        logger.error(
            "print_order.vendor_order_orphaned",
            order_id=str(order.id),
            mixam_order_id=vendor_order.order_id,
            cancelled=cancel.ok,
        )

    def _log_interactions(
        self, order: PrintOrder, interactions: Sequence[InteractionRecord]
    ) -> None:
        if not interactions:
            return
        best_effort(
            "print_order.interaction_log_failed",
            self._repo.add_interactions,
            order.id,
            interactions,
        )
