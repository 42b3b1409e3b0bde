"""
Status actions: what happens when an order enters a status.

``StatusActions`` subclasses declare one ``@on_status`` method per order
status. The mapping is checked when the class is defined: a subclass that
leaves a status without an action raises ``MissingStatusActionError``
(pass ``abstract=True`` to define a partial base).

Example:
    >>> class AuditedActions(OrderStatusActions):
    ...     @on_status(OrderStatus.COMPLETE)
    ...     async def complete(self, order):
    ...         await audit(order)
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, ClassVar

from ordersaga.adapters.functions import Continuation
from ordersaga.adapters.invocation import AdapterInvoker
from ordersaga.context import OrderContext
from ordersaga.exceptions import MissingStatusActionError
from ordersaga.saga import continuations
from ordersaga.saga.compensation import CompensationReport
from ordersaga.saga.tasks import SagaTasks
from ordersaga.state import OrderState
from ordersaga.types import OrderStatus

logger = logging.getLogger(__name__)

StatusAction = Callable[[Any, OrderState], Awaitable[None]]
ContextFactory = Callable[[OrderState, str], OrderContext]
Compensator = Callable[[OrderState], Awaitable[CompensationReport]]
CompletionHook = Callable[[OrderState], Awaitable[None] | None]

_STATUS_ATTR = "_handles_status"


def on_status(status: OrderStatus) -> Callable[[StatusAction], StatusAction]:
    """Mark a method as the action for ``status``."""

    def decorator(func: StatusAction) -> StatusAction:
        setattr(func, _STATUS_ATTR, OrderStatus(status))
        return func

    return decorator


class StatusActions:
    """Base class for exhaustive status -> action tables."""

    _actions: ClassVar[dict[OrderStatus, str]] = {}

    def __init_subclass__(cls, abstract: bool = False, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        actions: dict[OrderStatus, str] = {}
        for klass in reversed(cls.__mro__):
            for name, member in vars(klass).items():
                status = getattr(member, _STATUS_ATTR, None)
                if status is not None:
                    actions[status] = name
        cls._actions = actions

        if abstract:
            return
        missing = [status.value for status in OrderStatus if status not in actions]
        if missing:
            raise MissingStatusActionError(cls.__name__, missing)

    @classmethod
    def action_name(cls, status: OrderStatus) -> str:
        return cls._actions[OrderStatus(status)]

    async def run(self, status: OrderStatus, order: OrderState) -> None:
        """
        Run the action of ``status``.

        A failing action is logged with the status name and re-raised.
        """
        action = getattr(self, self.action_name(status))
        try:
            await action(order)
        except Exception:
            logger.exception(
                "Action for status %s failed for order %s",
                OrderStatus(status).value,
                order.order_no,
                extra={"order_no": str(order.order_no), "status": OrderStatus(status).value},
            )
            raise


class OrderStatusActions(StatusActions):
    """
    The standard actions.

    Actions never wait for an external call to resolve: each call is issued
    as a background task whose continuation applies the result.
    """

    def __init__(
        self,
        invoker: AdapterInvoker,
        tasks: SagaTasks,
        context_factory: ContextFactory,
        compensate: Compensator,
        completion_hooks: Iterable[CompletionHook] = (),
    ) -> None:
        self._invoker = invoker
        self._tasks = tasks
        self._context = context_factory
        self._compensate = compensate
        self._completion_hooks = list(completion_hooks)

    def add_completion_hook(self, hook: CompletionHook) -> None:
        self._completion_hooks.append(hook)

    def issue(self, port: str, order: OrderState, continuation: Continuation) -> None:
        """Invoke an adapter in the background."""
        ctx = self._context(order, port)
        self._tasks.submit(
            self._invoker.invoke(port, ctx, continuation),
            name=f"{port}:{order.order_no}",
        )

    @on_status(OrderStatus.PENDING)
    async def verify_order(self, order: OrderState) -> None:
        """Validate the address and authorize payment; the two calls are independent."""
        self.issue("validate_address", order, continuations.address_validated)
        self.issue("authorize_payment", order, continuations.payment_authorized)

    @on_status(OrderStatus.APPROVED)
    async def pick_order(self, order: OrderState) -> None:
        self.issue("pick_order", order, continuations.order_picked)

    @on_status(OrderStatus.SHIPPING)
    async def track_shipment(self, order: OrderState) -> None:
        """(Re)start tracking."""
        self.issue("track_shipment", order, continuations.tracking_update)

    @on_status(OrderStatus.CANCELED)
    async def compensate(self, order: OrderState) -> None:
        self._tasks.submit(self._compensate(order), name=f"compensate:{order.order_no}")

    @on_status(OrderStatus.COMPLETE)
    async def complete(self, order: OrderState) -> None:
        logger.info(
            "Order %s complete",
            order.order_no,
            extra={"order_no": str(order.order_no), "status": order.order_status.value},
        )
        for hook in self._completion_hooks:
            result = hook(order)
            if inspect.isawaitable(result):
                await result


__all__ = [
    "CompletionHook",
    "OrderStatusActions",
    "StatusActions",
    "on_status",
]
