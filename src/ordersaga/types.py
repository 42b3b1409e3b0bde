"""Common type definitions for the ordersaga library."""

from enum import Enum
from typing import TypeVar
from uuid import UUID

from pydantic import BaseModel

# Type variable for aggregate state
TState = TypeVar("TState", bound=BaseModel)


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SHIPPING = "SHIPPING"
    COMPLETE = "COMPLETE"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        """True for COMPLETE and CANCELED."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETE, OrderStatus.CANCELED})

# Allowed status edges; every other edge is rejected
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.APPROVED, OrderStatus.CANCELED}),
    OrderStatus.APPROVED: frozenset({OrderStatus.SHIPPING, OrderStatus.CANCELED}),
    OrderStatus.SHIPPING: frozenset({OrderStatus.COMPLETE, OrderStatus.CANCELED}),
    OrderStatus.COMPLETE: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}

# Type aliases for clarity and documentation
OrderNo = UUID
AggregateId = UUID
EventId = UUID

# Version type for optimistic locking
Version = int
