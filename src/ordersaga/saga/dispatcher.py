"""
Event dispatcher: runs the status action after a committed status change.

The action runs only for ``OrderCreated`` or for an ``OrderUpdated`` whose
changes include ``order_status``; updates that leave the status unchanged
(address corrections, tracking reports) never re-trigger an action.
"""

import logging

from ordersaga.events import OrderCreated, OrderEvent, OrderUpdated
from ordersaga.observability import (
    ATTR_EVENT_TYPE,
    ATTR_ORDER_NO,
    ATTR_ORDER_STATUS,
    Tracer,
    create_tracer,
)
from ordersaga.saga.transitions import StatusActions
from ordersaga.state import OrderState

logger = logging.getLogger(__name__)


def triggers_action(event: OrderEvent) -> bool:
    """True for events that start the action of the order's new status."""
    if isinstance(event, OrderCreated):
        return True
    return isinstance(event, OrderUpdated) and event.status_changed


class OrderEventDispatcher:
    """Routes committed order events to a status action table."""

    def __init__(
        self,
        actions: StatusActions,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._actions = actions
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def actions(self) -> StatusActions:
        return self._actions

    async def dispatch(self, event: OrderEvent, order: OrderState) -> bool:
        """
        Run the action for ``order``'s current status if ``event`` calls for it.

        Returns:
            True if an action ran
        """
        if not triggers_action(event):
            return False

        status = order.order_status
        with self._tracer.span(
            "ordersaga.dispatcher.dispatch",
            {
                ATTR_ORDER_NO: str(order.order_no),
                ATTR_ORDER_STATUS: status.value,
                ATTR_EVENT_TYPE: event.event_type,
            },
        ):
            logger.info(
                "Order %s entered %s",
                order.order_no,
                status.value,
                extra={"order_no": str(order.order_no), "status": status.value},
            )
            await self._actions.run(status, order)
        return True


__all__ = ["OrderEventDispatcher", "triggers_action"]
