"""
Adapter invocation protocol.

``PortRegistry`` maps port names to adapter functions; ``AdapterInvoker``
calls one adapter for one order and resolves the continuation with what
the external service returned. Only the service call is timed and
reported:

- timeouts are reported to the timeout callback and raised as
  ``AdapterTimeoutError``
- other exceptions from the external service are reported to the error
  callback and raised as ``ExternalServiceError`` (original error chained)

The continuation runs after the service answered, outside the timeout.
Whatever it raises (missing payload, rejected update, a failing completion
hook) propagates unchanged and is not reported as a service failure.
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any, TypeVar
from uuid import UUID

from ordersaga.adapters import functions
from ordersaga.adapters.functions import AdapterFunction, ServiceResult
from ordersaga.adapters.ports import SagaServices
from ordersaga.context import OrderContext
from ordersaga.exceptions import (
    AdapterTimeoutError,
    ExternalServiceError,
    OrderSagaError,
    UnknownPortError,
)
from ordersaga.observability import ATTR_ORDER_NO, ATTR_PORT, ATTR_TIMEOUT, Tracer, create_tracer

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END: Any = object()


@dataclass(frozen=True)
class AdapterFailure:
    """What the error and timeout callbacks are told about a failed call."""

    port: str
    order_no: UUID
    error: BaseException
    timed_out: bool = False


FailureCallback = Callable[[AdapterFailure], Awaitable[None]]


class PortRegistry:
    """
    Mapping of port names to adapter functions.

    Example:
        >>> ports = PortRegistry.from_services(services)
        >>> ports.register("validate_address", my_adapter)
    """

    def __init__(self, adapters: dict[str, AdapterFunction] | None = None) -> None:
        self._adapters: dict[str, AdapterFunction] = dict(adapters or {})

    @classmethod
    def from_services(cls, services: SagaServices) -> "PortRegistry":
        """Registry with the standard adapter for every port."""
        return cls(
            {
                "validate_address": functions.validate_address(services.address),
                "authorize_payment": functions.authorize_payment(services.payment),
                "complete_payment": functions.complete_payment(services.payment),
                "refund_payment": functions.refund_payment(services.payment),
                "pick_order": functions.pick_order(services.shipping),
                "ship_order": functions.ship_order(services.shipping),
                "track_shipment": functions.track_shipment(services.shipping),
                "verify_delivery": functions.verify_delivery(services.shipping),
            }
        )

    def register(self, port: str, adapter: AdapterFunction) -> None:
        """Register (or replace) the adapter of a port."""
        self._adapters[port] = adapter

    def get(self, port: str) -> AdapterFunction:
        """
        Raises:
            UnknownPortError: If no adapter is registered for the port
        """
        try:
            return self._adapters[port]
        except KeyError:
            raise UnknownPortError(port, sorted(self._adapters)) from None

    def __contains__(self, port: object) -> bool:
        return port in self._adapters

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)


class AdapterInvoker:
    """Runs adapter functions with timeouts and failure reporting."""

    def __init__(
        self,
        ports: PortRegistry,
        *,
        on_error: FailureCallback | None = None,
        on_timeout: FailureCallback | None = None,
        timeouts: Callable[[str], float | None] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            ports: Adapter functions by port name
            on_error: Awaited with the failure when an external call raises
            on_timeout: Awaited with the failure when an external call times out
            timeouts: Timeout in seconds for a port (None = wait forever)
            tracer: Optional custom Tracer instance
            enable_tracing: If True, emit traces (ignored if tracer is provided)
        """
        self._ports = ports
        self._on_error = on_error
        self._on_timeout = on_timeout
        self._timeouts = timeouts or (lambda port: None)
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def ports(self) -> PortRegistry:
        return self._ports

    async def invoke(
        self, port: str, ctx: OrderContext, continuation: Callable[..., Awaitable[T]]
    ) -> T | None:
        """
        Call the adapter of ``port`` and return the continuation's result.

        For a streaming port the continuation is resolved once per report
        until a result has ``done`` set or the stream ends; the last result
        is returned (None if the stream was empty). Each report gets the
        port's full timeout.

        Raises:
            UnknownPortError: If the port has no adapter
            AdapterTimeoutError: If the service did not answer in time
            ExternalServiceError: If the service failed
        """
        adapter = self._ports.get(port)
        timeout = self._timeouts(port)

        with self._tracer.span(
            "ordersaga.adapter.invoke",
            {
                ATTR_PORT: port,
                ATTR_ORDER_NO: str(ctx.order_no),
                ATTR_TIMEOUT: timeout if timeout is not None else -1,
            },
        ):
            logger.debug(
                "Invoking adapter %s for order %s",
                port,
                ctx.order_no,
                extra={"port": port, "order_no": str(ctx.order_no)},
            )
            call = adapter(ctx)
            if inspect.isawaitable(call):
                args = await self._answer(port, ctx, call, timeout)
                return await continuation(ctx, *args)
            return await self._follow(port, ctx, call, continuation, timeout)

    async def _follow(
        self,
        port: str,
        ctx: OrderContext,
        stream: AsyncIterator[ServiceResult],
        continuation: Callable[..., Awaitable[T]],
        timeout: float | None,
    ) -> T | None:
        result = None
        try:
            while True:
                args = await self._answer(port, ctx, anext(stream, _END), timeout)
                if args is _END:
                    break
                result = await continuation(ctx, *args)
                if getattr(result, "done", False):
                    break
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        return result

    async def _answer(
        self, port: str, ctx: OrderContext, call: Awaitable[Any], timeout: float | None
    ) -> Any:
        try:
            return await asyncio.wait_for(call, timeout)
        except OrderSagaError:
            raise
        except TimeoutError as e:
            logger.warning(
                "Adapter %s timed out after %ss for order %s",
                port,
                timeout,
                ctx.order_no,
                extra={"port": port, "order_no": str(ctx.order_no), "timeout": timeout},
            )
            if self._on_timeout is not None:
                await self._on_timeout(AdapterFailure(port, ctx.order_no, e, timed_out=True))
            raise AdapterTimeoutError(port, ctx.order_no, timeout or 0.0, e) from e
        except Exception as e:
            logger.error(
                "Adapter %s failed for order %s: %s",
                port,
                ctx.order_no,
                e,
                extra={"port": port, "order_no": str(ctx.order_no)},
            )
            if self._on_error is not None:
                await self._on_error(AdapterFailure(port, ctx.order_no, e))
            raise ExternalServiceError(port, ctx.order_no, e) from e



__all__ = [
    "AdapterFailure",
    "AdapterInvoker",
    "FailureCallback",
    "PortRegistry",
]
