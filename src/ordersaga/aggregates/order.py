"""
The order aggregate and its factory.

``OrderAggregate`` holds the current ``OrderState`` and the snapshot taken
immediately before the last accepted update (``previous``). Every accepted
update goes through the guard pipeline, produces a new state value and is
recorded as an ``OrderUpdated`` event carrying only the changed fields.
Events recorded since the last save stay pending until the repository
commits them.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from uuid import UUID, uuid4

from pydantic import ValidationError

from ordersaga.events import OrderCreated, OrderDeleted, OrderEvent, OrderUpdated
from ordersaga.exceptions import EventVersionError, OrderNotFoundError, OrderValidationError
from ordersaga.guards import DEFAULT_SIGNATURE_THRESHOLD, GuardPipeline, default_guards, ready_to_delete
from ordersaga.state import OrderState, calc_total, check_credit_card, check_items
from ordersaga.types import OrderStatus

logger = logging.getLogger(__name__)


class OrderAggregate:
    """
    Event-sourced order.

    Example:
        >>> order = create_order(customer_info={"name": "Ada"}, order_items=[item])
        >>> order.update({"shipping_address": "1 Main St"})
        >>> order.previous.shipping_address is None
        True
    """

    def __init__(self, order_no: UUID, guards: GuardPipeline | None = None) -> None:
        self._order_no = order_no
        self._guards = guards if guards is not None else default_guards()
        self._state: OrderState | None = None
        self._previous: OrderState | None = None
        self._deleted = False
        self._version = 0
        self._pending: list[OrderEvent] = []

    @property
    def order_no(self) -> UUID:
        return self._order_no

    @property
    def state(self) -> OrderState | None:
        return self._state

    @property
    def previous(self) -> OrderState | None:
        """State immediately before the last accepted update."""
        return self._previous

    @property
    def version(self) -> int:
        """Version of the last event applied, pending ones included."""
        return self._version

    @property
    def committed_version(self) -> int:
        return self._version - len(self._pending)

    @property
    def deleted(self) -> bool:
        return self._deleted

    @property
    def guards(self) -> GuardPipeline:
        return self._guards

    @property
    def pending_events(self) -> list[OrderEvent]:
        return list(self._pending)

    def mark_committed(self) -> None:
        self._pending.clear()

    def replay(self, events: Iterable[OrderEvent]) -> None:
        """
        Rebuild the order from its stored stream.

        Raises:
            EventVersionError: If the stream has a gap or belongs to
                another order
        """
        for event in events:
            self._check(event)
            self._apply(event)

    def create(self, state: OrderState) -> OrderCreated:
        """Record the initial state produced by the factory."""
        if self._version > 0:
            raise OrderValidationError(f"order {self._order_no} already created")
        return self._record(OrderCreated, order=state.model_dump(mode="json"))

    def update(self, changes: Mapping[str, Any]) -> OrderUpdated | None:
        """
        Apply a guarded update.

        Args:
            changes: Proposed field values keyed by field name

        Returns:
            The recorded event, or None when nothing changed

        Raises:
            OrderValidationError: If a guard rejects the update; the order
                is left unchanged
        """
        current = self._require_state()
        change = self._guards.apply(current, changes)
        if not change:
            return None

        try:
            candidate = OrderState.model_validate({**current.model_dump(), **change})
        except ValidationError as e:
            raise OrderValidationError(f"invalid order update: {e}") from e

        before = current.model_dump(mode="json")
        after = candidate.model_dump(mode="json")
        diff = {name: after[name] for name in change if after[name] != before[name]}
        if not diff:
            return None
        return self._record(OrderUpdated, changes=diff, previous_status=current.order_status.value)

    def delete(self, reason: str | None = None) -> OrderDeleted:
        """
        Delete a complete or canceled order.

        Raises:
            DeleteNotAllowedError: If the order is not in a terminal status
        """
        ready_to_delete(self._require_state())
        return self._record(OrderDeleted, reason=reason)

    def _record(self, event_cls: type[OrderEvent], **payload: Any) -> Any:
        event = event_cls(order_no=self._order_no, version=self._version + 1, **payload)
        self._apply(event)
        self._pending.append(event)
        return event

    def _check(self, event: OrderEvent) -> None:
        if event.order_no != self._order_no or event.version != self._version + 1:
            raise EventVersionError(self._order_no, self._version + 1, event)

    def _require_state(self) -> OrderState:
        if self._state is None or self._deleted:
            raise OrderNotFoundError(self._order_no)
        return self._state

    def _apply(self, event: OrderEvent) -> None:
        if isinstance(event, OrderCreated):
            self._state = OrderState.model_validate(event.order)
        elif isinstance(event, OrderUpdated):
            current = self._require_state()
            self._previous = current
            self._state = OrderState.model_validate({**current.model_dump(), **event.changes})
        elif isinstance(event, OrderDeleted):
            self._deleted = True
        else:
            logger.warning("Ignoring %s on order %s", event.event_type, self._order_no)
        self._version = event.version

    def __repr__(self) -> str:
        status = self._state.order_status.value if self._state else None
        return f"OrderAggregate({self._order_no}, v{self._version}, status={status})"


def create_order(
    *,
    customer_info: Any,
    order_items: Any,
    billing_address: str | None = None,
    shipping_address: str | None = None,
    credit_card_number: str | None = None,
    require_signature: bool | None = None,
    signature_threshold: float = DEFAULT_SIGNATURE_THRESHOLD,
    id_factory: Callable[[], UUID] = uuid4,
    guards: GuardPipeline | None = None,
) -> OrderAggregate:
    """
    Build a new PENDING order.

    Validates the items, computes the total, checks the credit card format
    and decides whether a delivery signature is required. The returned
    aggregate carries one pending ``OrderCreated`` event.

    Raises:
        ItemsInvalidError: If the items are missing or malformed
        CreditCardFormatError: If the card number is malformed
    """
    items = check_items(order_items)
    check_credit_card(credit_card_number)
    total = calc_total(items)

    state = OrderState(
        order_no=id_factory(),
        customer_info=customer_info,
        order_items=items,
        order_total=total,
        billing_address=billing_address,
        shipping_address=shipping_address,
        credit_card_number=credit_card_number,
        signature_required=bool(require_signature) or total > signature_threshold,
        order_status=OrderStatus.PENDING,
    )
    aggregate = OrderAggregate(state.order_no, guards=guards)
    aggregate.create(state)
    return aggregate


__all__ = ["OrderAggregate", "create_order"]
