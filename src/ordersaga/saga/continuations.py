"""
Continuations applied when an adapter resolves.

Each continuation takes the ``OrderContext`` and the adapter's result,
rejects a missing payload with ``AdapterPayloadError`` and performs one
guarded update. Re-applying a continuation with the same payload is a
no-op: unchanged fields are stripped before anything is recorded.
"""

from dataclasses import dataclass

from ordersaga.exceptions import AdapterPayloadError
from ordersaga.context import OrderContext
from ordersaga.state import OrderState
from ordersaga.types import OrderStatus

DELIVERED = "orderDelivered"


@dataclass(frozen=True)
class TrackingUpdate:
    """Result of one tracking report; ``done`` ends tracking."""

    done: bool
    order: OrderState


async def address_validated(ctx: OrderContext, shipping_address: str | None) -> OrderState:
    """The address service returned the verified shipping address."""
    if not shipping_address:
        raise AdapterPayloadError("address_validated", "shipping_address")
    return await ctx.update({"shipping_address": shipping_address})


async def payment_authorized(ctx: OrderContext, payment_authorization: str | None) -> OrderState:
    """The payment service authorized the order total."""
    if not payment_authorization:
        raise AdapterPayloadError("payment_authorized", "payment_authorization")
    return await ctx.update({"payment_authorization": payment_authorization})


async def payment_completed(ctx: OrderContext) -> OrderState:
    """Payment was captured; the order is complete."""
    return await ctx.update({"order_status": OrderStatus.COMPLETE})


async def payment_refunded(ctx: OrderContext, receipt: str | None) -> OrderState:
    """A refund was issued; record the receipt."""
    if not receipt:
        raise AdapterPayloadError("payment_refunded", "receipt")
    return await ctx.update({"receipt": receipt})


async def order_picked(ctx: OrderContext, pickup_address: str | None) -> OrderState:
    """The warehouse picked the order and reports where to collect it."""
    if not pickup_address:
        raise AdapterPayloadError("order_picked", "pickup_address")
    return await ctx.update({"pickup_address": pickup_address})


async def order_shipped(ctx: OrderContext, shipment_id: str | None) -> OrderState:
    """The carrier collected the order."""
    if not shipment_id:
        raise AdapterPayloadError("order_shipped", "shipment_id")
    return await ctx.update({"shipment_id": shipment_id, "order_status": OrderStatus.SHIPPING})


async def tracking_update(
    ctx: OrderContext, tracking_id: str | None, tracking_status: str | None
) -> TrackingUpdate:
    """
    Record a tracking report.

    ``done`` is set once the carrier reports delivery; moving the order to
    COMPLETE stays a separate step.
    """
    if not tracking_id or not tracking_status:
        raise AdapterPayloadError("tracking_update", "tracking_id", "tracking_status")
    order = await ctx.update({"tracking_id": tracking_id, "tracking_status": tracking_status})
    return TrackingUpdate(done=tracking_status == DELIVERED, order=order)


async def delivery_verified(ctx: OrderContext, proof_of_delivery: str | None) -> OrderState:
    """The carrier confirmed delivery."""
    if not proof_of_delivery:
        raise AdapterPayloadError("delivery_verified", "proof_of_delivery")
    return await ctx.update({"proof_of_delivery": proof_of_delivery})


__all__ = [
    "DELIVERED",
    "TrackingUpdate",
    "address_validated",
    "delivery_verified",
    "order_picked",
    "order_shipped",
    "payment_authorized",
    "payment_completed",
    "payment_refunded",
    "tracking_update",
]
