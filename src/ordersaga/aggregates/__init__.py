"""Order aggregate and repository."""

from ordersaga.aggregates.order import OrderAggregate, create_order
from ordersaga.aggregates.repository import OrderRepository

__all__ = ["OrderAggregate", "OrderRepository", "create_order"]
