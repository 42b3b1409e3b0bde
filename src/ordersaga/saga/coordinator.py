"""
The order saga coordinator.

``OrderSagaCoordinator`` is the entry point of the package. It commits
guarded updates through the repository, runs the status action after each
committed status change, issues external calls through the adapter invoker
and moves an order to CANCELED (and so into compensation) when an external
call fails or times out.

Example:
    >>> coordinator = OrderSagaCoordinator(repository, fake_services())
    >>> order = await coordinator.create_order(
    ...     customer_info={"name": "Ada"},
    ...     order_items=[{"item_id": "a", "price": 500}],
    ...     shipping_address="1 Main St",
    ... )
    >>> await coordinator.drain()
    >>> await coordinator.approve_order(order.order_no)
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from functools import partial
from typing import Any
from uuid import UUID

from ordersaga.adapters.invocation import AdapterFailure, AdapterInvoker, PortRegistry
from ordersaga.adapters.ports import SagaServices
from ordersaga.aggregates import order as order_factory
from ordersaga.aggregates.repository import OrderRepository
from ordersaga.config import SagaConfig
from ordersaga.context import OrderContext
from ordersaga.exceptions import OrderValidationError, StatusTransitionError
from ordersaga.observability import ATTR_CHANGED_FIELDS, ATTR_ORDER_NO, Tracer, create_tracer
from ordersaga.saga import continuations
from ordersaga.saga.compensation import CompensationChain, CompensationReport
from ordersaga.saga.dispatcher import OrderEventDispatcher
from ordersaga.saga.tasks import SagaTasks
from ordersaga.saga.transitions import CompletionHook, OrderStatusActions
from ordersaga.state import OrderState
from ordersaga.types import OrderStatus

logger = logging.getLogger(__name__)


class OrderSagaCoordinator:
    """
    Coordinates orders through PENDING -> APPROVED -> SHIPPING -> COMPLETE,
    or to CANCELED.

    Updates to one order are serialized by the repository's per-order lock;
    the status action runs after the lock is released.
    """

    def __init__(
        self,
        repository: OrderRepository,
        services: SagaServices,
        config: SagaConfig | None = None,
        *,
        ports: PortRegistry | None = None,
        compensation: CompensationChain | None = None,
        actions_class: type[OrderStatusActions] = OrderStatusActions,
        completion_hooks: Iterable[CompletionHook] = (),
        tracer: Tracer | None = None,
    ) -> None:
        """
        Args:
            repository: Order persistence
            services: External services used by the standard ports and the
                standard compensation chain
            config: Tunables (defaults to SagaConfig())
            ports: Adapter functions by port (defaults to the standard
                adapters bound to ``services``)
            compensation: Compensation chain (defaults to the standard chain)
            actions_class: Status action table to use
            completion_hooks: Called with the order when it completes
            tracer: Optional custom Tracer instance
        """
        self._config = config or SagaConfig()
        self._tracer = tracer or create_tracer(__name__, self._config.enable_tracing)
        self._repository = repository
        self._services = services
        self._tasks = SagaTasks()
        self._reports: dict[UUID, CompensationReport] = {}

        self._invoker = AdapterInvoker(
            ports or PortRegistry.from_services(services),
            on_error=self.error_callback,
            on_timeout=self.timeout_callback,
            timeouts=self._config.timeout_for,
            tracer=self._tracer,
        )
        self._compensation = compensation or CompensationChain.default(
            services,
            step_timeout=self._config.compensation_step_timeout,
            tracer=self._tracer,
        )
        self._actions = actions_class(
            self._invoker,
            self._tasks,
            self._context,
            self._compensate,
            completion_hooks,
        )
        self._dispatcher = OrderEventDispatcher(self._actions, tracer=self._tracer)

    @property
    def config(self) -> SagaConfig:
        return self._config

    @property
    def repository(self) -> OrderRepository:
        return self._repository

    @property
    def services(self) -> SagaServices:
        return self._services

    @property
    def ports(self) -> PortRegistry:
        return self._invoker.ports

    @property
    def actions(self) -> OrderStatusActions:
        return self._actions

    @property
    def tasks(self) -> SagaTasks:
        return self._tasks

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def create_order(
        self,
        *,
        customer_info: Any,
        order_items: Any,
        billing_address: str | None = None,
        shipping_address: str | None = None,
        credit_card_number: str | None = None,
        require_signature: bool | None = None,
    ) -> OrderState:
        """
        Create a PENDING order and start address validation and payment
        authorization.

        Raises:
            ItemsInvalidError: If the items are missing or malformed
            CreditCardFormatError: If the card number is malformed
        """
        order = order_factory.create_order(
            customer_info=customer_info,
            order_items=order_items,
            billing_address=billing_address,
            shipping_address=shipping_address,
            credit_card_number=credit_card_number,
            require_signature=require_signature,
            signature_threshold=self._config.signature_threshold,
            guards=self._repository.guards,
        )
        async with self._repository.lock(order.order_no):
            events = await self._repository.save(order)

        state = order.state
        assert state is not None
        logger.info(
            "Created order %s (total %.2f)",
            state.order_no,
            state.order_total,
            extra={"order_no": str(state.order_no), "status": state.order_status.value},
        )
        for event in events:
            await self._dispatcher.dispatch(event, state)
        return state

    async def update_order(self, order_no: UUID, changes: Mapping[str, Any]) -> OrderState:
        """
        Apply a guarded update and run the status action if the status changed.

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderValidationError: If a guard rejects the update
        """
        with self._tracer.span(
            "ordersaga.coordinator.update",
            {ATTR_ORDER_NO: str(order_no), ATTR_CHANGED_FIELDS: ",".join(sorted(changes))},
        ):
            async with self._repository.lock(order_no):
                order = await self._repository.load(order_no)
                event = order.update(changes)
                if event is not None:
                    await self._repository.save(order)
                state = order.state
                assert state is not None

            if event is None:
                logger.debug("No changes for order %s", order_no, extra={"order_no": str(order_no)})
                return state

            logger.debug(
                "Updated order %s: %s",
                order_no,
                ", ".join(sorted(event.changed_fields)),
                extra={"order_no": str(order_no), "changed_fields": sorted(event.changed_fields)},
            )
            await self._dispatcher.dispatch(event, state)
            return state

    async def approve_order(self, order_no: UUID) -> OrderState:
        """PENDING -> APPROVED; starts pick/pack."""
        return await self.update_order(order_no, {"order_status": OrderStatus.APPROVED})

    async def cancel_order(self, order_no: UUID) -> OrderState:
        """Move an active order to CANCELED; starts compensation."""
        return await self.update_order(order_no, {"order_status": OrderStatus.CANCELED})

    async def ship_order(self, order_no: UUID) -> OrderState:
        """Hand an approved order to the carrier (moves it to SHIPPING)."""
        return await self._invoke("ship_order", order_no, continuations.order_shipped)

    async def verify_delivery(self, order_no: UUID) -> OrderState:
        """Record the carrier's proof of delivery."""
        return await self._invoke("verify_delivery", order_no, continuations.delivery_verified)

    async def complete_payment(self, order_no: UUID) -> OrderState:
        """Capture the payment (moves the order to COMPLETE)."""
        return await self._invoke("complete_payment", order_no, continuations.payment_completed)

    async def refund_payment(self, order_no: UUID) -> OrderState:
        """Refund the order total and record the receipt."""
        return await self._invoke("refund_payment", order_no, continuations.payment_refunded)

    async def resume_tracking(self, order_no: UUID) -> bool:
        """
        Restart shipment tracking, e.g. after a process restart.

        Returns:
            False if the order is not SHIPPING
        """
        state = await self._repository.find(order_no)
        if state.order_status != OrderStatus.SHIPPING:
            logger.info(
                "Not resuming tracking for order %s in status %s",
                order_no,
                state.order_status.value,
                extra={"order_no": str(order_no), "status": state.order_status.value},
            )
            return False
        await self._actions.run(OrderStatus.SHIPPING, state)
        return True

    async def delete_order(self, order_no: UUID, reason: str | None = None) -> None:
        """
        Delete a complete or canceled order.

        Raises:
            DeleteNotAllowedError: If the order is still active
        """
        async with self._repository.lock(order_no):
            order = await self._repository.load(order_no)
            order.delete(reason)
            await self._repository.save(order)
        self._reports.pop(order_no, None)
        logger.info("Deleted order %s", order_no, extra={"order_no": str(order_no)})

    async def get_order(self, order_no: UUID) -> OrderState:
        """
        Raises:
            OrderNotFoundError: If the order does not exist or was deleted
        """
        return await self._repository.find(order_no)

    def compensation_report(self, order_no: UUID) -> CompensationReport | None:
        """Report of the last compensation run for the order, if any."""
        return self._reports.get(order_no)

    async def drain(self, timeout: float | None = None) -> int:
        """Wait until every background call, continuation and compensation has settled."""
        return await self._tasks.drain(timeout)

    async def shutdown(self) -> None:
        """Drain background work, cancelling what is left after ``shutdown_timeout``."""
        logger.info(
            "Shutting down saga coordinator, %d background task(s) pending",
            self._tasks.pending_count,
        )
        await self._tasks.drain(self._config.shutdown_timeout)
        self._tasks.cancel_all()

    # -------------------------------------------------------------------------
    # Error and timeout reporting
    # -------------------------------------------------------------------------

    async def error_callback(self, failure: AdapterFailure) -> None:
        """An external call failed: cancel the order, which compensates."""
        logger.error(
            "External call %s failed for order %s: %s",
            failure.port,
            failure.order_no,
            failure.error,
            extra={"order_no": str(failure.order_no), "port": failure.port},
        )
        await self._cancel_if_active(failure)

    async def timeout_callback(self, failure: AdapterFailure) -> None:
        """An external call timed out: cancel the order, which compensates."""
        logger.error(
            "External call %s timed out for order %s",
            failure.port,
            failure.order_no,
            extra={"order_no": str(failure.order_no), "port": failure.port},
        )
        await self._cancel_if_active(failure)

    async def _cancel_if_active(self, failure: AdapterFailure) -> None:
        state = await self._repository.find(failure.order_no)
        if state.is_terminal:
            logger.info(
                "Order %s already %s; ignoring failure of %s",
                failure.order_no,
                state.order_status.value,
                failure.port,
                extra={"order_no": str(failure.order_no), "port": failure.port},
            )
            return
        try:
            await self.cancel_order(failure.order_no)
        except StatusTransitionError:
            logger.info(
                "Order %s reached a terminal status before it could be canceled",
                failure.order_no,
                extra={"order_no": str(failure.order_no), "port": failure.port},
            )

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    def _context(self, order: OrderState, port: str) -> OrderContext:
        return OrderContext(
            order_no=order.order_no,
            order=order,
            updater=partial(self._apply_result, port),
        )

    async def _apply_result(
        self, port: str, order_no: UUID, changes: Mapping[str, Any]
    ) -> OrderState:
        """
        Update the order with what ``port`` reported.

        A result rejected because the order was canceled while the call was
        in flight is still a side effect in the outside world: the steps
        reversing ``port`` run for it before the rejection propagates.
        """
        try:
            return await self.update_order(order_no, changes)
        except OrderValidationError:
            state = await self._repository.find(order_no)
            if state.order_status == OrderStatus.CANCELED:
                await self._reverse_late_result(port, state, changes)
            raise

    async def _reverse_late_result(
        self, port: str, state: OrderState, changes: Mapping[str, Any]
    ) -> None:
        report = await self._compensation.reverse(port, state.model_copy(update=dict(changes)))
        if not report.outcomes:
            return
        logger.warning(
            "Reversed late %s result for canceled order %s: %s",
            port,
            state.order_no,
            ", ".join(f"{o.step}={o.status.value}" for o in report.outcomes),
            extra={"order_no": str(state.order_no), "port": port},
        )
        self._record(report)

    async def _invoke(
        self,
        port: str,
        order_no: UUID,
        continuation: Callable[..., Awaitable[OrderState]],
    ) -> OrderState:
        state = await self._repository.find(order_no)
        result = await self._invoker.invoke(port, self._context(state, port), continuation)
        assert result is not None
        return result

    async def _compensate(self, order: OrderState) -> CompensationReport:
        return self._record(await self._compensation.run(order))

    def _record(self, report: CompensationReport) -> CompensationReport:
        earlier = self._reports.get(report.order_no)
        merged = earlier.merge(report) if earlier is not None else report
        self._reports[report.order_no] = merged
        return merged


__all__ = ["OrderSagaCoordinator"]
