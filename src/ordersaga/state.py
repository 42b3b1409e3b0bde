"""
Immutable order state and the pure calculations it depends on.

``OrderState`` is a frozen pydantic model: it is built once by the factory
and every later change produces a new value. Field names are snake_case;
``to_dict()`` renders the camelCase keys used on the wire.
"""

import math
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ordersaga.exceptions import CreditCardFormatError, ItemsInvalidError
from ordersaga.types import OrderStatus

_CARD_SEPARATORS = re.compile(r"[ -]")
_CARD_DIGITS = re.compile(r"^\d{13,19}$")


class OrderItem(BaseModel):
    """A single line of an order."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    item_id: str
    price: float
    qty: int | None = None

    @property
    def line_total(self) -> float:
        quantity = self.qty if self.qty is not None else 1
        return self.price * quantity


class OrderState(BaseModel):
    """
    State of an order at one point of its lifecycle.

    Attributes:
        order_no: Immutable order number assigned by the factory
        customer_info: Opaque customer details supplied at creation
        order_items: Ordered line items
        order_total: Always the sum of the line totals
        billing_address: Billing address (frozen after approval)
        shipping_address: Shipping address, replaced by the verified address
        credit_card_number: Format-checked at creation
        payment_authorization: Set by the payment adapter
        receipt: Refund evidence
        pickup_address: Where the carrier collects the order
        shipment_id: Carrier shipment identifier
        tracking_id: Tracking identifier
        tracking_status: Last reported tracking status
        proof_of_delivery: Delivery evidence, required to complete
        signature_required: Delivery signature policy flag (monotonic)
        order_status: Lifecycle status
        created_at: When the factory created the order
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    order_no: UUID
    customer_info: Any = None
    order_items: tuple[OrderItem, ...]
    order_total: float

    billing_address: str | None = None
    shipping_address: str | None = None

    credit_card_number: str | None = None
    payment_authorization: str | None = None
    receipt: str | None = None

    pickup_address: str | None = None
    shipment_id: str | None = None
    tracking_id: str | None = None
    tracking_status: str | None = None
    proof_of_delivery: str | None = None

    signature_required: bool = False
    order_status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dictionary keyed by the camelCase field aliases."""
        return self.model_dump(mode="json", by_alias=True)

    @property
    def is_terminal(self) -> bool:
        return self.order_status.is_terminal


ORDER_FIELDS = frozenset(OrderState.model_fields)


def check_items(order_items: Any) -> tuple[OrderItem, ...]:
    """
    Validate raw order items and convert them to ``OrderItem`` values.

    A single item is accepted in place of a list. Each item needs an
    ``item_id`` (or ``itemId``) and a numeric ``price``.

    Raises:
        ItemsInvalidError: If items are absent, empty or malformed
    """
    if not order_items:
        raise ItemsInvalidError("order contains no items")
    if isinstance(order_items, (Mapping, OrderItem)):
        order_items = [order_items]

    items: list[OrderItem] = []
    for raw in order_items:
        if isinstance(raw, OrderItem):
            items.append(raw)
            continue
        if not isinstance(raw, Mapping):
            raise ItemsInvalidError()
        item_id = raw.get("item_id", raw.get("itemId"))
        price = raw.get("price")
        qty = raw.get("qty")
        if not item_id or not _is_number(price):
            raise ItemsInvalidError()
        if qty is not None and (not _is_number(qty) or qty < 0):
            raise ItemsInvalidError()
        items.append(OrderItem(item_id=str(item_id), price=price, qty=qty))
    return tuple(items)


def calc_total(order_items: Any) -> float:
    """
    Calculate the order total: the sum of price x qty, qty defaulting to 1.

    Raises:
        ItemsInvalidError: If items are absent, empty or malformed
    """
    return sum(item.line_total for item in check_items(order_items))


def totals_match(expected: float, actual: Any) -> bool:
    """Compare a caller-supplied total with a computed one."""
    return _is_number(actual) and math.isclose(expected, actual, rel_tol=1e-9, abs_tol=1e-9)


def check_credit_card(number: str | None) -> None:
    """
    Check the format of a credit card number.

    Spaces and dashes are ignored; 13-19 digits passing the Luhn checksum
    are accepted. ``None`` means no card was supplied and passes.

    Raises:
        CreditCardFormatError: If the number is malformed
    """
    if number is None:
        return
    digits = _CARD_SEPARATORS.sub("", str(number))
    if not _CARD_DIGITS.match(digits) or not _luhn_valid(digits):
        raise CreditCardFormatError()


def changed_fields(previous: OrderState, change: Mapping[str, Any]) -> set[str]:
    """Names of the fields in ``change`` whose value differs from ``previous``."""
    return {name for name, value in change.items() if getattr(previous, name) != value}


def _luhn_valid(digits: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(digits)):
        value = int(char)
        if index % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return total % 10 == 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


__all__ = [
    "ORDER_FIELDS",
    "OrderItem",
    "OrderState",
    "calc_total",
    "changed_fields",
    "check_credit_card",
    "check_items",
    "totals_match",
]
