"""
Unit tests for OrderAggregate and the create_order factory.

Tests cover:
- Factory validation, totals and signature policy
- Guarded updates producing OrderUpdated events with only changed fields
- previous snapshot bookkeeping
- Deletion rules
- Replaying history
"""

from uuid import UUID

import pytest

from ordersaga.aggregates.order import OrderAggregate, create_order
from ordersaga.events import OrderCreated, OrderDeleted, OrderUpdated
from ordersaga.exceptions import (
    CreditCardFormatError,
    DeleteNotAllowedError,
    EventVersionError,
    FrozenFieldError,
    ItemsInvalidError,
    OrderNotFoundError,
    OrderValidationError,
    StatusTransitionError,
)
from ordersaga.types import OrderStatus

FIXED_ORDER_NO = UUID("00000000-0000-4000-8000-000000000001")


@pytest.fixture
def order(order_items) -> OrderAggregate:
    return create_order(
        customer_info={"name": "Ada"},
        order_items=order_items,
        shipping_address="12 Analytical Row",
        credit_card_number="4111111111111111",
    )


class TestCreateOrder:
    """Tests for the order factory."""

    def test_new_order_is_pending(self, order) -> None:
        assert order.state.order_status == OrderStatus.PENDING
        assert order.version == 1

    def test_total_is_computed(self, order) -> None:
        assert order.state.order_total == 35.0

    def test_one_pending_created_event(self, order) -> None:
        events = order.pending_events

        assert len(events) == 1
        assert isinstance(events[0], OrderCreated)
        assert events[0].order_no == order.order_no
        assert events[0].version == 1
        assert events[0].order["order_status"] == "PENDING"

    def test_id_factory_used(self, order_items) -> None:
        order = create_order(
            customer_info=None, order_items=order_items, id_factory=lambda: FIXED_ORDER_NO
        )
        assert order.order_no == FIXED_ORDER_NO
        assert order.state.order_no == FIXED_ORDER_NO

    def test_missing_items_rejected(self) -> None:
        with pytest.raises(ItemsInvalidError):
            create_order(customer_info={}, order_items=[])

    def test_bad_card_rejected(self, order_items) -> None:
        with pytest.raises(CreditCardFormatError):
            create_order(customer_info={}, order_items=order_items, credit_card_number="1234")

    def test_signature_required_above_threshold(self, expensive_items) -> None:
        order = create_order(customer_info={}, order_items=expensive_items)
        assert order.state.signature_required is True

    def test_signature_not_required_at_threshold(self) -> None:
        order = create_order(
            customer_info={},
            order_items=[{"item_id": "a", "price": 999.99}],
        )
        assert order.state.signature_required is False

    def test_signature_requested_explicitly(self, order_items) -> None:
        order = create_order(customer_info={}, order_items=order_items, require_signature=True)
        assert order.state.signature_required is True

    def test_custom_threshold(self, order_items) -> None:
        order = create_order(customer_info={}, order_items=order_items, signature_threshold=10.0)
        assert order.state.signature_required is True


class TestUpdate:
    """Tests for guarded updates."""

    def test_update_records_changed_fields_only(self, order) -> None:
        order.mark_committed()
        event = order.update(
            {"shipping_address": "12 Analytical Row", "billing_address": "1 Bill St"}
        )

        assert isinstance(event, OrderUpdated)
        assert event.changes == {"billing_address": "1 Bill St"}
        assert event.previous_status == "PENDING"
        assert not event.status_changed
        assert order.state.billing_address == "1 Bill St"

    def test_no_op_update_returns_none(self, order) -> None:
        order.mark_committed()

        assert order.update({"shipping_address": "12 Analytical Row"}) is None
        assert order.pending_events == []
        assert order.version == 1

    def test_previous_snapshot_kept(self, order) -> None:
        before = order.state
        order.update({"billing_address": "1 Bill St"})

        assert order.previous == before
        assert order.previous.billing_address is None

    def test_status_change_event(self, order) -> None:
        event = order.update({"order_status": "APPROVED"})

        assert event.status_changed
        assert event.changes["order_status"] == "APPROVED"
        assert order.state.order_status == OrderStatus.APPROVED

    def test_rejected_update_leaves_order_unchanged(self, order) -> None:
        order.update({"order_status": OrderStatus.APPROVED})
        state, version = order.state, order.version

        with pytest.raises(FrozenFieldError):
            order.update({"shipping_address": "elsewhere", "tracking_id": "T-1"})

        assert order.state == state
        assert order.version == version

    def test_invalid_status_change_rejected(self, order) -> None:
        with pytest.raises(StatusTransitionError):
            order.update({"order_status": OrderStatus.COMPLETE})

    def test_item_change_recalculates_total(self, order) -> None:
        event = order.update({"order_items": [{"item_id": "a", "price": 2.5, "qty": 4}]})

        assert order.state.order_total == 10.0
        assert event.changes["order_total"] == 10.0
        assert event.changes["order_items"] == [{"item_id": "a", "price": 2.5, "qty": 4}]

    def test_invalid_field_type_wrapped(self, order) -> None:
        with pytest.raises(OrderValidationError):
            order.update({"tracking_status": ["not", "a", "string"]})

    def test_update_before_create_raises(self, order_no) -> None:
        with pytest.raises(OrderNotFoundError):
            OrderAggregate(order_no).update({"billing_address": "x"})


class TestDelete:
    def test_active_order_cannot_be_deleted(self, order) -> None:
        with pytest.raises(DeleteNotAllowedError):
            order.delete()

    def test_canceled_order_deleted(self, order) -> None:
        order.update({"order_status": OrderStatus.CANCELED})
        event = order.delete(reason="customer request")

        assert isinstance(event, OrderDeleted)
        assert event.reason == "customer request"
        assert order.deleted

    def test_deleted_order_rejects_updates(self, order) -> None:
        order.update({"order_status": OrderStatus.CANCELED})
        order.delete()

        with pytest.raises(OrderNotFoundError):
            order.update({"tracking_status": "x"})


class TestReplay:
    def test_replay_rebuilds_state(self, order) -> None:
        order.update({"billing_address": "1 Bill St"})
        order.update({"order_status": OrderStatus.APPROVED})
        history = list(order.pending_events)

        replayed = OrderAggregate(order.order_no)
        replayed.replay(history)

        assert replayed.state == order.state
        assert replayed.previous == order.previous
        assert replayed.version == 3
        assert replayed.pending_events == []
        assert replayed.committed_version == 3

    def test_version_gap_rejected(self, order) -> None:
        order.update({"billing_address": "1 Bill St"})
        created, updated = order.pending_events

        replayed = OrderAggregate(order.order_no)
        with pytest.raises(EventVersionError) as exc_info:
            replayed.replay([created, updated.model_copy(update={"version": 5})])

        assert exc_info.value.expected_version == 2
        assert replayed.version == 1

    def test_foreign_event_rejected(self, order, order_no) -> None:
        with pytest.raises(EventVersionError):
            OrderAggregate(order_no).replay(order.pending_events)

    def test_committed_version_trails_pending_events(self, order) -> None:
        order.mark_committed()
        order.update({"billing_address": "1 Bill St"})

        assert order.version == 2
        assert order.committed_version == 1
