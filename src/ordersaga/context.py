"""Context handed to adapters and continuations."""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from ordersaga.state import OrderState

Updater = Callable[[UUID, Mapping[str, Any]], Awaitable[OrderState]]


@dataclass(frozen=True)
class OrderContext:
    """
    The order an external call was issued for.

    ``order`` is the snapshot taken when the call was issued; ``update()``
    performs a guarded update on the current order and returns its new state.
    """

    order_no: UUID
    order: OrderState
    updater: Updater

    async def update(self, changes: Mapping[str, Any]) -> OrderState:
        return await self.updater(self.order_no, changes)


__all__ = ["OrderContext", "Updater"]
