"""Print-order repositories package."""

from modules.print_orders.repositories.django_repository import (
    PrintOrderDjangoRepository,
)
from modules.print_orders.repositories.interfaces import IPrintOrderRepository

__all__ = ["IPrintOrderRepository", "PrintOrderDjangoRepository"]
