"""Print-order repository interface (the Order Store).

Extends ``IRepository[PrintOrder]`` with the append-only trails
(status history, process log, vendor interactions) and a locking read.

The service layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.print_orders.models import (
        PrintOrder,
        PrintOrderProcessLog,
        PrintOrderStatusHistory,
        VendorInteraction,
    )
    from modules.print_orders.vendor.interactions import InteractionRecord


class IPrintOrderRepository(IRepository["PrintOrder"]):
    """Repository contract for the PrintOrder aggregate.

    Writes to ``fulfillment_status`` must be paired with ``add_history``
    inside the same transaction.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> PrintOrder:
        """Create an order in ``validating``."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[PrintOrder]:
        """Retrieve an order; ``None`` for unknown or malformed ids."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[PrintOrder]:
        """Retrieve an order with a row lock (caller holds the transaction)."""

    @abstractmethod
    def save(
        self, entity: PrintOrder, update_fields: Optional[Iterable[str]] = None
    ) -> PrintOrder:
        """Persist an order, optionally only the named fields."""

    @abstractmethod
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
        """Append a status history row."""

    @abstractmethod
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
        """Append an operational event."""

    @abstractmethod
    def add_interactions(
        self,
        order_id: Any,
        interactions: Sequence[InteractionRecord],
    ) -> List[VendorInteraction]:
        """Persist vendor interaction records for an order."""

    @abstractmethod
    def history(self, order_id: Any) -> List[PrintOrderStatusHistory]:
        """Status history, oldest first."""
