"""Django ORM implementation of the print-order repository.

Satisfies ``IPrintOrderRepository`` using Django's QuerySet API.
``get_for_update`` uses ``select_for_update()``; callers wrap it, the
field write and the history append in one ``transaction.atomic()`` block.
Audit rows are inserted only (see ``AppendOnlyModel``).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction

from modules.print_orders.constants import FulfillmentStatus, InteractionDirection
from modules.print_orders.models import (
    PrintOrder,
    PrintOrderProcessLog,
    PrintOrderStatusHistory,
    VendorInteraction,
)
from modules.print_orders.repositories.interfaces import IPrintOrderRepository
from modules.print_orders.vendor.interactions import InteractionRecord

logger = structlog.get_logger(__name__)


class PrintOrderDjangoRepository(IPrintOrderRepository):
    """Concrete print-order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> PrintOrder:
        order = PrintOrder(
            **data,
            fulfillment_status=FulfillmentStatus.VALIDATING,
        )
        order.save()
        logger.info("print_order.created", order_id=str(order.id))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[PrintOrder]:
        """Return ``None`` for non-existent or invalid IDs."""
        try:
            return PrintOrder.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[PrintOrder]:
        try:
            return PrintOrder.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> models.QuerySet:
        queryset = PrintOrder.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def history(self, order_id: Any) -> List[PrintOrderStatusHistory]:
        return list(
            PrintOrderStatusHistory.objects.filter(order_id=order_id).order_by(
                "created_at", "id"
            )
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(
        self, entity: PrintOrder, update_fields: Optional[Iterable[str]] = None
    ) -> PrintOrder:
        if update_fields is None:
            entity.save()
        else:
            entity.save(update_fields=list(update_fields))
        return entity

    def add_history(
        self,
        order_id: Any,
        status: str,
        *,
        old_status: str = "",
        note: str = "",
        source: str = "system",
        actor_id: str = "",
    ) -> PrintOrderStatusHistory:
        history = PrintOrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status or "",
            status=status,
            note=note,
            source=source,
            actor_id=actor_id or "",
        )
        logger.info(
            "print_order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
            source=source,
        )
        return history

    def add_process_log(
        self,
        order_id: Any,
        event: str,
        *,
        message: str = "",
        data: Optional[Dict[str, Any]] = None,
        source: str = "system",
        actor_id: str = "",
    ) -> PrintOrderProcessLog:
        return PrintOrderProcessLog.objects.create(
            order_id=order_id,
            event=event,
            message=message,
            data=data or {},
            source=source,
            actor_id=actor_id or "",
        )

    def add_interactions(
        self,
        order_id: Any,
        interactions: Sequence[InteractionRecord],
    ) -> List[VendorInteraction]:
        rows = [
            VendorInteraction(
                order_id=order_id,
                direction=record.direction or InteractionDirection.OUTBOUND,
                action=record.action,
                method=record.method,
                endpoint=record.endpoint,
                status_code=record.status_code,
                request_body=record.request_body,
                response_body=record.response_body,
                error=record.error,
                duration_ms=record.duration_ms,
                vendor_order_id=record.vendor_order_id,
            )
            for record in interactions
        ]
        created = VendorInteraction.objects.bulk_create(rows)
        logger.info(
            "print_order.interactions_logged",
            order_id=str(order_id),
            count=len(created),
        )
        return created
