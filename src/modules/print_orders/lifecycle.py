"""Order lifecycle state machine.

Every fulfillment status change in the system goes through
``OrderLifecycle``.  Each write is one short ``transaction.atomic()``
block that re-reads the order under ``SELECT FOR UPDATE``, checks the
edge against ``VALID_TRANSITIONS``, writes the status plus any extra
fields with ``update_fields`` and appends the history row.  No lock is
ever held across a vendor call.

Two flavours:

- ``transition``: strict.  Illegal edges raise ``InvalidOrderStatus``
  and nothing changes.  Used by admin and system paths.
- ``apply_external``: tolerant.  A repeat of the current status appends
  history and merges fields; an illegal edge is written to the process
  log and ignored.  Used for vendor-reported statuses.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional, Tuple

import structlog
from django.db import transaction
from django.utils import timezone

from modules.print_orders.constants import AuditSource
from modules.print_orders.exceptions import InvalidOrderStatus, PrintOrderNotFound

if TYPE_CHECKING:
    from modules.print_orders.models import PrintOrder
    from modules.print_orders.repositories.interfaces import IPrintOrderRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExternalStatusOutcome:
    order: PrintOrder
    previous_status: str
    applied: bool

    @property
    def changed(self) -> bool:
        return self.applied and self.previous_status != self.order.fulfillment_status


class OrderLifecycle:
    def __init__(self, repository: IPrintOrderRepository) -> None:
        self._repo = repository

    def _lock(self, order_id: Any) -> PrintOrder:
        order = self._repo.get_for_update(str(order_id))
        if not order:
            raise PrintOrderNotFound(f"Print order {order_id} not found.")
        return order

    @staticmethod
    def _apply_fields(order: PrintOrder, updates: Optional[Dict[str, Any]]) -> list[str]:
        fields = []
        for field_name, value in (updates or {}).items():
            setattr(order, field_name, value)
            fields.append(field_name)
        return fields

    # ------------------------------------------------------------------
    # Strict transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        order_id: Any,
        new_status: str,
        *,
        note: str = "",
        source: str = AuditSource.SYSTEM,
        actor_id: str = "",
        updates: Optional[Dict[str, Any]] = None,
        allowed_from: Optional[Iterable[str]] = None,
    ) -> Tuple[PrintOrder, str]:
        """Move an order to *new_status*; return ``(order, previous_status)``.

        *allowed_from* narrows the legal source states for the calling
        action (e.g. rejection only from approval states).

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: the action or the edge is not allowed.
        """
        with transaction.atomic():
            order = self._lock(order_id)
            old_status = order.fulfillment_status
            log = logger.bind(
                order_id=str(order.id),
                current_status=old_status,
                new_status=new_status,
            )

            if allowed_from is not None and old_status not in set(allowed_from):
                log.warning("print_order.action_not_allowed")
                raise InvalidOrderStatus(
                    f"Action not allowed while order is {old_status}."
                )
            if not order.can_transition_to(new_status):
                log.warning("print_order.invalid_transition")
                raise InvalidOrderStatus(
                    f"Cannot transition from {old_status} to {new_status}."
                )

            order.fulfillment_status = new_status
            fields = ["fulfillment_status", *self._apply_fields(order, updates)]
            self._repo.save(order, update_fields=fields)
            self._repo.add_history(
                order.id,
                new_status,
                old_status=old_status,
                note=note,
                source=source,
                actor_id=actor_id,
            )

        log.info("print_order.status_updated", source=source)
        return order, old_status

    def update(
        self,
        order_id: Any,
        updates: Dict[str, Any],
        *,
        allowed_from: Optional[Iterable[str]] = None,
    ) -> PrintOrder:
        """Write non-status fields under the row lock.

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: order is not in one of *allowed_from*.
        """
        if "fulfillment_status" in updates:
            raise ValueError("Use transition() to change fulfillment_status.")
        with transaction.atomic():
            order = self._lock(order_id)
            if (
                allowed_from is not None
                and order.fulfillment_status not in set(allowed_from)
            ):
                raise InvalidOrderStatus(
                    f"Action not allowed while order is {order.fulfillment_status}."
                )
            self._repo.save(order, update_fields=self._apply_fields(order, updates))
        return order

    def claim_submission(
        self,
        order_id: Any,
        *,
        allowed_from: Iterable[str],
        stale_after: timedelta,
    ) -> PrintOrder:
        """Mark the order as having a vendor submission in flight.

        Only one caller can hold the claim.  A claim older than
        *stale_after* is taken over.

        Raises:
            PrintOrderNotFound: order does not exist.
            InvalidOrderStatus: wrong state, or another submission is running.
        """
        now = timezone.now()
        with transaction.atomic():
            order = self._lock(order_id)
            log = logger.bind(
                order_id=str(order.id), current_status=order.fulfillment_status
            )
            if order.fulfillment_status not in set(allowed_from):
                log.warning("print_order.action_not_allowed")
                raise InvalidOrderStatus(
                    f"Action not allowed while order is {order.fulfillment_status}."
                )
            started = order.submission_started_at
            if started is not None and started > now - stale_after:
                log.warning("print_order.submission_in_progress", started_at=started)
                raise InvalidOrderStatus(
                    "A submission is already in progress for this order."
                )
            if started is not None:
                log.warning("print_order.stale_submission_claim", started_at=started)
            order.submission_started_at = now
            self._repo.save(order, update_fields=["submission_started_at"])
        return order

    # ------------------------------------------------------------------
    # Vendor-reported statuses
    # ------------------------------------------------------------------

    def apply_external(
        self,
        order_id: Any,
        new_status: str,
        *,
        note: str = "",
        source: str = AuditSource.WEBHOOK,
        updates: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExternalStatusOutcome:
        """Apply a status reported by the vendor.

        - Same status as now: history row appended, *updates* merged.
        - Legal edge: status written, history appended, *updates* merged.
        - Illegal edge: ``webhook_transition_ignored`` process-log entry,
          nothing else written.
        """
        with transaction.atomic():
            order = self._lock(order_id)
            old_status = order.fulfillment_status
            log = logger.bind(
                order_id=str(order.id),
                current_status=old_status,
                reported_status=new_status,
                source=source,
            )

            if new_status != old_status and not order.can_transition_to(new_status):
                self._repo.add_process_log(
                    order.id,
                    "webhook_transition_ignored",
                    message=f"Ignored {old_status} -> {new_status}.",
                    data={"from": old_status, "to": new_status, **(context or {})},
                    source=source,
                )
                log.warning("print_order.external_transition_ignored")
                return ExternalStatusOutcome(order, old_status, applied=False)

            order.fulfillment_status = new_status
            fields = ["fulfillment_status", *self._apply_fields(order, updates)]
            self._repo.save(order, update_fields=fields)
            self._repo.add_history(
                order.id,
                new_status,
                old_status=old_status,
                note=note,
                source=source,
            )

        if new_status == old_status:
            log.info("print_order.external_status_repeated")
        else:
            log.info("print_order.status_updated")
        return ExternalStatusOutcome(order, old_status, applied=True)
