"""
Unit tests for PortRegistry and AdapterInvoker.

Tests cover:
- Port lookup and registration
- Successful invocation returning the continuation's result
- Timeouts routed to the timeout callback
- External failures routed to the error callback with the cause preserved
- Continuation errors propagating without triggering callbacks
- The continuation running outside the service timeout
"""

import asyncio

import pytest

from ordersaga.adapters.fakes import ServiceUnavailableError, fake_services
from ordersaga.adapters.invocation import AdapterFailure, AdapterInvoker, PortRegistry
from ordersaga.context import OrderContext
from ordersaga.exceptions import (
    AdapterPayloadError,
    AdapterTimeoutError,
    ExternalServiceError,
    UnknownPortError,
)
from ordersaga.observability import ATTR_PORT, RecordingTracer
from ordersaga.saga import continuations


class FailureRecorder:
    def __init__(self) -> None:
        self.failures: list[AdapterFailure] = []

    async def __call__(self, failure: AdapterFailure) -> None:
        self.failures.append(failure)


@pytest.fixture
def services():
    return fake_services()


@pytest.fixture
def ctx(order_state) -> OrderContext:
    state = order_state()

    async def updater(order_no, changes):
        return state.model_copy(update=dict(changes))

    return OrderContext(order_no=state.order_no, order=state, updater=updater)


@pytest.fixture
def on_error() -> FailureRecorder:
    return FailureRecorder()


@pytest.fixture
def on_timeout() -> FailureRecorder:
    return FailureRecorder()


@pytest.fixture
def invoker(services, on_error, on_timeout) -> AdapterInvoker:
    return AdapterInvoker(
        PortRegistry.from_services(services),
        on_error=on_error,
        on_timeout=on_timeout,
        timeouts=lambda port: 0.05,
        enable_tracing=False,
    )


class TestPortRegistry:
    def test_standard_ports(self, services) -> None:
        ports = PortRegistry.from_services(services)

        assert set(ports) == {
            "validate_address",
            "authorize_payment",
            "complete_payment",
            "refund_payment",
            "pick_order",
            "ship_order",
            "track_shipment",
            "verify_delivery",
        }
        assert len(ports) == 8
        assert ports.get("pick_order").__name__ == "pick_order"

    def test_unknown_port(self) -> None:
        with pytest.raises(UnknownPortError) as exc_info:
            PortRegistry({}).get("teleport")
        assert exc_info.value.port == "teleport"
        assert "none" in str(exc_info.value)

    def test_register_replaces(self, services) -> None:
        ports = PortRegistry.from_services(services)

        async def custom(ctx):
            return ("custom",)

        ports.register("validate_address", custom)

        assert ports.get("validate_address") is custom
        assert "validate_address" in ports


class TestInvoke:
    @pytest.mark.asyncio
    async def test_result_passed_to_continuation(self, invoker, services, ctx) -> None:
        services.address.corrected_address = "1 Corrected Rd"

        state = await invoker.invoke("validate_address", ctx, continuations.address_validated)

        assert state.shipping_address == "1 Corrected Rd"
        assert services.address.called("validate_address") == [(ctx.order_no, ctx.order.shipping_address)]

    @pytest.mark.asyncio
    async def test_payment_uses_order_total_and_card(self, invoker, services, ctx) -> None:
        await invoker.invoke("authorize_payment", ctx, continuations.payment_authorized)

        assert services.payment.called("authorize_payment") == [
            (ctx.order_no, ctx.order.order_total, ctx.order.credit_card_number)
        ]

    @pytest.mark.asyncio
    async def test_timeout(self, invoker, services, ctx, on_error, on_timeout) -> None:
        services.payment.delay_on("authorize_payment", 1.0)

        with pytest.raises(AdapterTimeoutError) as exc_info:
            await invoker.invoke("authorize_payment", ctx, continuations.payment_authorized)

        assert exc_info.value.port == "authorize_payment"
        assert exc_info.value.timeout == 0.05
        assert isinstance(exc_info.value.__cause__, asyncio.TimeoutError)
        assert [f.port for f in on_timeout.failures] == ["authorize_payment"]
        assert on_timeout.failures[0].timed_out
        assert on_error.failures == []

    @pytest.mark.asyncio
    async def test_service_failure(self, invoker, services, ctx, on_error, on_timeout) -> None:
        cause = ServiceUnavailableError("card network down")
        services.payment.fail_on("authorize_payment", cause)

        with pytest.raises(ExternalServiceError) as exc_info:
            await invoker.invoke("authorize_payment", ctx, continuations.payment_authorized)

        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause
        assert not isinstance(exc_info.value, AdapterTimeoutError)
        assert on_error.failures == [AdapterFailure("authorize_payment", ctx.order_no, cause)]
        assert on_timeout.failures == []

    @pytest.mark.asyncio
    async def test_continuation_error_propagates_unreported(self, invoker, ctx, on_error, on_timeout) -> None:
        async def empty(ctx):
            return (None,)

        invoker.ports.register("ship_order", empty)

        with pytest.raises(AdapterPayloadError):
            await invoker.invoke("ship_order", ctx, continuations.order_shipped)

        assert on_error.failures == []
        assert on_timeout.failures == []

    @pytest.mark.asyncio
    async def test_unknown_port(self, invoker, ctx) -> None:
        with pytest.raises(UnknownPortError):
            await invoker.invoke("teleport", ctx, continuations.order_shipped)

    @pytest.mark.asyncio
    async def test_no_callbacks_configured(self, services, ctx) -> None:
        services.shipping.fail_on("pick_order")
        invoker = AdapterInvoker(PortRegistry.from_services(services), enable_tracing=False)

        with pytest.raises(ExternalServiceError):
            await invoker.invoke("pick_order", ctx, continuations.order_picked)

    @pytest.mark.asyncio
    async def test_traced(self, services, ctx) -> None:
        tracer = RecordingTracer()
        invoker = AdapterInvoker(PortRegistry.from_services(services), tracer=tracer)

        await invoker.invoke("pick_order", ctx, continuations.order_picked)

        name, attributes = tracer.spans[0]
        assert name == "ordersaga.adapter.invoke"
        assert attributes[ATTR_PORT] == "pick_order"


class TestTrackShipment:
    @pytest.mark.asyncio
    async def test_stops_at_delivery(self, invoker, services, ctx) -> None:
        services.shipping.tracking_statuses = ["inTransit", "orderDelivered", "returnedToSender"]

        update = await invoker.invoke("track_shipment", ctx, continuations.tracking_update)

        assert update.done
        assert update.order.tracking_status == "orderDelivered"

    @pytest.mark.asyncio
    async def test_no_reports(self, invoker, services, ctx) -> None:
        services.shipping.tracking_statuses = []

        assert await invoker.invoke("track_shipment", ctx, continuations.tracking_update) is None

    @pytest.mark.asyncio
    async def test_stream_closed_when_continuation_is_done(self, invoker, ctx) -> None:
        closed = []

        async def reports():
            try:
                yield "T-1", "inTransit"
                yield "T-1", "orderDelivered"
                yield "T-1", "returnedToSender"
            finally:
                closed.append(True)

        invoker.ports.register("track_shipment", lambda ctx: reports())

        update = await invoker.invoke("track_shipment", ctx, continuations.tracking_update)

        assert update.order.tracking_status == "orderDelivered"
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_each_report_gets_the_full_timeout(self, invoker, ctx, on_timeout) -> None:
        async def slow_carrier():
            for status in ("inTransit", "outForDelivery", "orderDelivered"):
                await asyncio.sleep(0.03)
                yield "T-1", status

        invoker.ports.register("track_shipment", lambda ctx: slow_carrier())

        update = await invoker.invoke("track_shipment", ctx, continuations.tracking_update)

        assert update.done
        assert on_timeout.failures == []

    @pytest.mark.asyncio
    async def test_silent_carrier_times_out(self, invoker, ctx, on_timeout) -> None:
        async def silent_carrier():
            yield "T-1", "inTransit"
            await asyncio.sleep(1)
            yield "T-1", "orderDelivered"

        invoker.ports.register("track_shipment", lambda ctx: silent_carrier())

        with pytest.raises(AdapterTimeoutError):
            await invoker.invoke("track_shipment", ctx, continuations.tracking_update)

        assert [f.port for f in on_timeout.failures] == ["track_shipment"]


class TestContinuationOutsideServiceCall:
    @pytest.mark.asyncio
    async def test_continuation_failure_is_not_a_service_failure(
        self, invoker, ctx, on_error, on_timeout
    ) -> None:
        async def broken(ctx, pickup_address):
            raise RuntimeError("hook exploded")

        with pytest.raises(RuntimeError, match="hook exploded"):
            await invoker.invoke("pick_order", ctx, broken)

        assert on_error.failures == []
        assert on_timeout.failures == []

    @pytest.mark.asyncio
    async def test_slow_continuation_does_not_time_out(self, invoker, ctx, on_timeout) -> None:
        async def waits_for_lock(ctx, pickup_address):
            await asyncio.sleep(0.1)
            return pickup_address

        assert await invoker.invoke("pick_order", ctx, waits_for_lock) == "Dock 7, Warehouse A"
        assert on_timeout.failures == []

    @pytest.mark.asyncio
    async def test_adapter_returns_continuation_arguments(self, services, ctx) -> None:
        adapter = PortRegistry.from_services(services).get("refund_payment")

        (receipt,) = await adapter(ctx)

        assert receipt.startswith("RCPT-")
