"""Fake external services - deterministic services for testing and development.

Every fake records its calls and can be configured to fail or to be slow,
globally or per method.

Example:
    >>> shipping = FakeShippingService()
    >>> shipping.fail_on("pick_order")
    >>> payment = FakePaymentService()
    >>> payment.configure(delay=0.5)
"""

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any
from uuid import UUID, uuid4

from ordersaga.adapters.ports import (
    AddressService,
    InventoryService,
    PaymentService,
    SagaServices,
    ShippingService,
)
from ordersaga.state import OrderItem


class ServiceUnavailableError(Exception):
    """Raised by a fake service configured to fail."""


class FakeService:
    """Call recording and failure/delay configuration shared by the fakes."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.should_succeed = True
        self.failure_reason = "Service unavailable"
        self.delay = 0.0
        self._failures: dict[str, BaseException] = {}
        self._delays: dict[str, float] = {}

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Service unavailable",
        delay: float = 0.0,
    ) -> None:
        """Configure the behavior of every method."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.delay = delay

    def fail_on(self, method: str, error: BaseException | None = None) -> None:
        """Make one method raise ``error`` (a ServiceUnavailableError by default)."""
        self._failures[method] = error or ServiceUnavailableError(f"{method}: {self.failure_reason}")

    def delay_on(self, method: str, seconds: float) -> None:
        """Make one method take ``seconds`` before answering."""
        self._delays[method] = seconds

    def reset(self) -> None:
        self.calls.clear()
        self._failures.clear()
        self._delays.clear()
        self.configure()

    def called(self, method: str) -> list[tuple[Any, ...]]:
        """Arguments of every call made to ``method``."""
        return [args for name, args in self.calls if name == method]

    async def _call(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        delay = self._delays.get(method, self.delay)
        if delay:
            await asyncio.sleep(delay)
        if method in self._failures:
            raise self._failures[method]
        if not self.should_succeed:
            raise ServiceUnavailableError(f"{method}: {self.failure_reason}")


class FakeAddressService(FakeService, AddressService):
    """Returns the address it was given, or a configured correction."""

    def __init__(self, corrected_address: str | None = None) -> None:
        super().__init__()
        self.corrected_address = corrected_address

    async def validate_address(self, order_no: UUID, address: str | None) -> str:
        await self._call("validate_address", order_no, address)
        return self.corrected_address or address or "1 Verified Way"


class FakePaymentService(FakeService, PaymentService):
    async def authorize_payment(
        self, order_no: UUID, amount: float, credit_card_number: str | None
    ) -> str:
        await self._call("authorize_payment", order_no, amount, credit_card_number)
        return f"AUTH-{uuid4().hex[:10].upper()}"

    async def complete_payment(self, order_no: UUID, payment_authorization: str | None) -> None:
        await self._call("complete_payment", order_no, payment_authorization)

    async def refund_payment(
        self, order_no: UUID, payment_authorization: str | None, amount: float
    ) -> str:
        await self._call("refund_payment", order_no, payment_authorization, amount)
        return f"RCPT-{uuid4().hex[:10].upper()}"

    async def cancel_payment(self, order_no: UUID, payment_authorization: str) -> str:
        await self._call("cancel_payment", order_no, payment_authorization)
        return f"VOID-{uuid4().hex[:10].upper()}"


class FakeShippingService(FakeService, ShippingService):
    """
    Warehouse and carrier.

    ``tracking_statuses`` are reported in order by ``track_shipment``; the
    default ends with delivery.
    """

    def __init__(
        self,
        pickup_address: str = "Dock 7, Warehouse A",
        tracking_statuses: Sequence[str] = ("inTransit", "outForDelivery", "orderDelivered"),
    ) -> None:
        super().__init__()
        self.pickup_address = pickup_address
        self.tracking_statuses = list(tracking_statuses)

    async def pick_order(self, order_no: UUID, items: Sequence[OrderItem]) -> str:
        await self._call("pick_order", order_no, tuple(items))
        return self.pickup_address

    async def ship_order(
        self,
        order_no: UUID,
        shipping_address: str | None,
        pickup_address: str | None,
        signature_required: bool,
    ) -> str:
        await self._call("ship_order", order_no, shipping_address, pickup_address, signature_required)
        return f"ship-{uuid4().hex[:8]}"

    async def track_shipment(
        self, order_no: UUID, shipment_id: str | None
    ) -> AsyncIterator[tuple[str, str]]:
        await self._call("track_shipment", order_no, shipment_id)
        tracking_id = f"FAKE-{uuid4().hex[:12].upper()}"
        for status in self.tracking_statuses:
            await asyncio.sleep(0)
            yield tracking_id, status

    async def verify_delivery(self, order_no: UUID, shipment_id: str | None) -> str:
        await self._call("verify_delivery", order_no, shipment_id)
        return f"POD-{uuid4().hex[:10].upper()}"

    async def return_shipment(self, order_no: UUID, shipment_id: str) -> None:
        await self._call("return_shipment", order_no, shipment_id)

    async def cancel_delivery(self, order_no: UUID, shipment_id: str) -> None:
        await self._call("cancel_delivery", order_no, shipment_id)


class FakeInventoryService(FakeService, InventoryService):
    async def return_inventory(self, order_no: UUID, items: Sequence[OrderItem]) -> None:
        await self._call("return_inventory", order_no, tuple(items))


def fake_services() -> SagaServices:
    """A fresh set of fake services."""
    return SagaServices(
        address=FakeAddressService(),
        payment=FakePaymentService(),
        shipping=FakeShippingService(),
        inventory=FakeInventoryService(),
    )


__all__ = [
    "FakeAddressService",
    "FakeInventoryService",
    "FakePaymentService",
    "FakeService",
    "FakeShippingService",
    "ServiceUnavailableError",
    "fake_services",
]
