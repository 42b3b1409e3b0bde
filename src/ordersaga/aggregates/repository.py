"""
Repository for order aggregates.

The repository is the persistence collaborator of the coordinator: it
rebuilds orders from their stream, appends newly recorded events with
optimistic locking and serializes updates to one order through a
per-order lock.
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from ordersaga.aggregates.order import OrderAggregate
from ordersaga.events import OrderEvent
from ordersaga.exceptions import OrderNotFoundError
from ordersaga.guards import GuardPipeline, default_guards
from ordersaga.observability import (
    ATTR_EVENT_COUNT,
    ATTR_ORDER_NO,
    ATTR_VERSION,
    Tracer,
    create_tracer,
)
from ordersaga.state import OrderState
from ordersaga.stores.base import OrderEventStore

logger = logging.getLogger(__name__)


class OrderRepository:
    """
    Loads and saves event-sourced orders.

    Locks are held in a ``WeakValueDictionary``: a lock lives as long as
    someone holds or waits on it, so the table only ever holds orders that
    are being worked on.

    Example:
        >>> repo = OrderRepository(InMemoryOrderStore())
        >>> async with repo.lock(order_no):
        ...     order = await repo.load(order_no)
        ...     order.update({"shipping_address": "1 Main St"})
        ...     await repo.save(order)
    """

    def __init__(
        self,
        store: OrderEventStore,
        *,
        guards: GuardPipeline | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            store: Order event store
            guards: Guard pipeline given to every loaded order (defaults to
                the standard pipeline)
            tracer: Optional custom Tracer instance
            enable_tracing: If True, emit traces (ignored if tracer is provided)
        """
        self._store = store
        self._guards = guards if guards is not None else default_guards()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def store(self) -> OrderEventStore:
        return self._store

    @property
    def guards(self) -> GuardPipeline:
        return self._guards

    @property
    def locked_orders(self) -> list[UUID]:
        """Orders whose lock is currently alive."""
        return list(self._locks.keys())

    @asynccontextmanager
    async def lock(self, order_no: UUID) -> AsyncIterator[None]:
        """Serialize read-modify-write cycles on one order."""
        lock = self._locks.get(order_no)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[order_no] = lock
        async with lock:
            yield

    async def load(self, order_no: UUID) -> OrderAggregate:
        """
        Rebuild an order from its stream.

        Raises:
            OrderNotFoundError: If the order has no events or was deleted
        """
        with self._tracer.span("ordersaga.repository.load", {ATTR_ORDER_NO: str(order_no)}) as span:
            events = await self._store.read(order_no)
            order = OrderAggregate(order_no, guards=self._guards)
            order.replay(events)
            if order.state is None or order.deleted:
                raise OrderNotFoundError(order_no)
            if span:
                span.set_attribute(ATTR_VERSION, order.version)
            logger.debug("Loaded order %s at version %d", order_no, order.version)
            return order

    async def find(self, order_no: UUID) -> OrderState:
        """
        Current state of an order.

        Raises:
            OrderNotFoundError: If the order does not exist or was deleted
        """
        order = await self.load(order_no)
        assert order.state is not None
        return order.state

    async def exists(self, order_no: UUID) -> bool:
        try:
            await self.load(order_no)
        except OrderNotFoundError:
            return False
        return True

    async def order_numbers(self) -> list[UUID]:
        """Orders with a stream, deleted ones included."""
        return await self._store.order_numbers()

    async def save(self, order: OrderAggregate) -> list[OrderEvent]:
        """
        Append the order's pending events and mark them committed.

        Returns:
            The events written (empty if there were none)

        Raises:
            OptimisticLockError: If the stream moved since the order was loaded
        """
        events = order.pending_events
        if not events:
            return []
        with self._tracer.span(
            "ordersaga.repository.save",
            {
                ATTR_ORDER_NO: str(order.order_no),
                ATTR_EVENT_COUNT: len(events),
                ATTR_VERSION: order.version,
            },
        ):
            await self._store.append(order.order_no, events, order.committed_version)
            order.mark_committed()
        return events


__all__ = ["OrderRepository"]
