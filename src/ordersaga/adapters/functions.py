"""
Adapter functions.

An adapter function calls one external service for the order in its
context and returns the arguments the continuation should be resolved
with, as a tuple. A streaming port (tracking) returns an async iterator of
such tuples instead. The adapter never applies the result itself: the
invoker resolves the continuation once the service has answered.

The factories below bind an adapter function to a service port.

Example:
    >>> adapter = validate_address(address_service)
    >>> await adapter(ctx)
    ('1 Main St, Springfield',)
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from ordersaga.adapters.ports import AddressService, PaymentService, ShippingService
from ordersaga.context import OrderContext

Continuation = Callable[..., Awaitable[Any]]
ServiceResult = tuple[Any, ...]
AdapterFunction = Callable[
    [OrderContext], Awaitable[ServiceResult] | AsyncIterator[ServiceResult]
]


def validate_address(service: AddressService) -> AdapterFunction:
    async def adapter(ctx: OrderContext) -> ServiceResult:
        return (await service.validate_address(ctx.order_no, ctx.order.shipping_address),)

    adapter.__name__ = "validate_address"
    return adapter


def authorize_payment(service: PaymentService) -> AdapterFunction:
    async def adapter(ctx: OrderContext) -> ServiceResult:
        authorization = await service.authorize_payment(
            ctx.order_no, ctx.order.order_total, ctx.order.credit_card_number
        )
        return (authorization,)

    adapter.__name__ = "authorize_payment"
    return adapter


def complete_payment(service: PaymentService) -> AdapterFunction:
    async def adapter(ctx: OrderContext) -> ServiceResult:
        await service.complete_payment(ctx.order_no, ctx.order.payment_authorization)
        return ()

    adapter.__name__ = "complete_payment"
    return adapter


def refund_payment(service: PaymentService) -> AdapterFunction:
    async def adapter(ctx: OrderContext) -> ServiceResult:
        receipt = await service.refund_payment(
            ctx.order_no, ctx.order.payment_authorization, ctx.order.order_total
        )
        return (receipt,)

    adapter.__name__ = "refund_payment"
    return adapter


def pick_order(service: ShippingService) -> AdapterFunction:
    async def adapter(ctx: OrderContext) -> ServiceResult:
        return (await service.pick_order(ctx.order_no, ctx.order.order_items),)

    adapter.__name__ = "pick_order"
    return adapter


def ship_order(service: ShippingService) -> AdapterFunction:
    async def adapter(ctx: OrderContext) -> ServiceResult:
        shipment_id = await service.ship_order(
            ctx.order_no,
            ctx.order.shipping_address,
            ctx.order.pickup_address,
            ctx.order.signature_required,
        )
        return (shipment_id,)

    adapter.__name__ = "ship_order"
    return adapter


def track_shipment(service: ShippingService) -> AdapterFunction:
    """Stream of ``(tracking_id, tracking_status)`` reports from the carrier."""

    def adapter(ctx: OrderContext) -> AsyncIterator[ServiceResult]:
        return aiter(service.track_shipment(ctx.order_no, ctx.order.shipment_id))

    adapter.__name__ = "track_shipment"
    return adapter


def verify_delivery(service: ShippingService) -> AdapterFunction:
    async def adapter(ctx: OrderContext) -> ServiceResult:
        return (await service.verify_delivery(ctx.order_no, ctx.order.shipment_id),)

    adapter.__name__ = "verify_delivery"
    return adapter


__all__ = [
    "AdapterFunction",
    "Continuation",
    "ServiceResult",
    "authorize_payment",
    "complete_payment",
    "pick_order",
    "refund_payment",
    "ship_order",
    "track_shipment",
    "validate_address",
    "verify_delivery",
]
