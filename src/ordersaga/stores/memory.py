"""In-memory order event store for tests and single-process runs."""

import asyncio
from collections.abc import Sequence
from uuid import UUID

from ordersaga.events import OrderEvent
from ordersaga.exceptions import OptimisticLockError
from ordersaga.stores.base import OrderEventStore


class InMemoryOrderStore(OrderEventStore):
    """
    Keeps every order stream in a dict.

    Contents are lost when the process exits.
    """

    def __init__(self) -> None:
        self._streams: dict[UUID, list[OrderEvent]] = {}
        self._lock = asyncio.Lock()

    async def append(
        self,
        order_no: UUID,
        events: Sequence[OrderEvent],
        expected_version: int | None,
    ) -> int:
        async with self._lock:
            stream = self._streams.get(order_no, [])
            if expected_version is not None and len(stream) != expected_version:
                raise OptimisticLockError(order_no, expected_version, len(stream))
            if events:
                self._streams[order_no] = [*stream, *events]
            return len(stream) + len(events)

    async def read(self, order_no: UUID, after_version: int = 0) -> list[OrderEvent]:
        return [e for e in self._streams.get(order_no, []) if e.version > after_version]

    async def version(self, order_no: UUID) -> int:
        return len(self._streams.get(order_no, []))

    async def order_numbers(self) -> list[UUID]:
        return list(self._streams)

    def clear(self) -> None:
        self._streams.clear()

    @property
    def event_count(self) -> int:
        return sum(len(stream) for stream in self._streams.values())


__all__ = ["InMemoryOrderStore"]
