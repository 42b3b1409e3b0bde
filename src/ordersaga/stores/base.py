"""
Persistence contract for order streams.

A store keeps one append-only stream per order, numbered from 1 by the
aggregate that produced the events. Appends are all-or-nothing and
checked against the version the writer last saw.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from uuid import UUID

from ordersaga.events import OrderEvent


class OrderEventStore(ABC):
    """Abstract order event store."""

    @abstractmethod
    async def append(
        self,
        order_no: UUID,
        events: Sequence[OrderEvent],
        expected_version: int | None,
    ) -> int:
        """
        Append events to an order stream.

        Args:
            order_no: Stream to append to
            events: Events numbered from ``expected_version + 1``
            expected_version: Version the writer last saw, 0 for a new
                stream, or None to skip the check

        Returns:
            The stream version after the append

        Raises:
            OptimisticLockError: If the stream moved past ``expected_version``
        """

    @abstractmethod
    async def read(self, order_no: UUID, after_version: int = 0) -> list[OrderEvent]:
        """Events of an order with a version above ``after_version``, oldest first."""

    @abstractmethod
    async def version(self, order_no: UUID) -> int:
        """Current version of an order stream; 0 if it has no events."""

    @abstractmethod
    async def order_numbers(self) -> list[UUID]:
        """Every order with a stream, in the order the streams were opened."""

    async def close(self) -> None:
        """Release resources held by the store."""


__all__ = ["OrderEventStore"]
