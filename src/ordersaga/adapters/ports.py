"""
Ports: abstract interfaces of the external services an order depends on.

The saga programs against these interfaces; concrete integrations (or the
fakes in ``ordersaga.adapters.fakes``) are supplied to the coordinator
through ``SagaServices``. Every method is a coroutine and may take an
arbitrary amount of time to resolve.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from uuid import UUID

from ordersaga.state import OrderItem


class AddressService(ABC):
    """Address verification."""

    @abstractmethod
    async def validate_address(self, order_no: UUID, address: str | None) -> str:
        """Return the verified (possibly corrected) shipping address."""
        ...


class PaymentService(ABC):
    """Payment provider."""

    @abstractmethod
    async def authorize_payment(
        self, order_no: UUID, amount: float, credit_card_number: str | None
    ) -> str:
        """Authorize ``amount``; returns the authorization reference."""
        ...

    @abstractmethod
    async def complete_payment(self, order_no: UUID, payment_authorization: str | None) -> None:
        """Capture a previously authorized payment."""
        ...

    @abstractmethod
    async def refund_payment(
        self, order_no: UUID, payment_authorization: str | None, amount: float
    ) -> str:
        """Refund ``amount``; returns the receipt."""
        ...

    @abstractmethod
    async def cancel_payment(self, order_no: UUID, payment_authorization: str) -> str:
        """Void an authorization (or refund a capture); returns the receipt."""
        ...


class ShippingService(ABC):
    """Warehouse and carrier."""

    @abstractmethod
    async def pick_order(self, order_no: UUID, items: Sequence[OrderItem]) -> str:
        """Pick and pack the items; returns the pickup address."""
        ...

    @abstractmethod
    async def ship_order(
        self,
        order_no: UUID,
        shipping_address: str | None,
        pickup_address: str | None,
        signature_required: bool,
    ) -> str:
        """Hand the order to the carrier; returns the shipment id."""
        ...

    @abstractmethod
    def track_shipment(self, order_no: UUID, shipment_id: str | None) -> AsyncIterator[tuple[str, str]]:
        """Yield ``(tracking_id, tracking_status)`` reports until delivery."""
        ...

    @abstractmethod
    async def verify_delivery(self, order_no: UUID, shipment_id: str | None) -> str:
        """Returns the proof of delivery."""
        ...

    @abstractmethod
    async def return_shipment(self, order_no: UUID, shipment_id: str) -> None:
        """Send a shipment back to its origin."""
        ...

    @abstractmethod
    async def cancel_delivery(self, order_no: UUID, shipment_id: str) -> None:
        """Cancel the delivery request."""
        ...


class InventoryService(ABC):
    """Stock reservations."""

    @abstractmethod
    async def return_inventory(self, order_no: UUID, items: Sequence[OrderItem]) -> None:
        """Release the reservation of the picked items."""
        ...


@dataclass(frozen=True)
class SagaServices:
    """The external services wired into a coordinator."""

    address: AddressService
    payment: PaymentService
    shipping: ShippingService
    inventory: InventoryService


__all__ = [
    "AddressService",
    "InventoryService",
    "PaymentService",
    "SagaServices",
    "ShippingService",
]
