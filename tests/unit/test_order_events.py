"""
Unit tests for the events recorded on order streams.

Tests cover:
- event_type derivation and immutability
- OrderUpdated helpers
- payload() and decode_event()
"""

from datetime import UTC, datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from ordersaga.events import EVENT_TYPES, OrderCreated, OrderDeleted, OrderUpdated, decode_event
from ordersaga.exceptions import SerializationError


class TestOrderEvents:
    def test_event_type_from_class_name(self) -> None:
        event = OrderDeleted(order_no=uuid4(), version=4, reason="test")

        assert event.event_type == "OrderDeleted"
        assert OrderUpdated.event_type == "OrderUpdated"

    def test_events_are_frozen(self) -> None:
        event = OrderDeleted(order_no=uuid4(), version=2)
        with pytest.raises(ValidationError):
            event.reason = "changed"

    def test_version_starts_at_one(self) -> None:
        with pytest.raises(ValidationError):
            OrderCreated(order_no=uuid4(), version=0, order={})

    def test_changed_fields(self) -> None:
        event = OrderUpdated(
            order_no=uuid4(),
            version=2,
            changes={"order_status": "APPROVED", "signature_required": True},
            previous_status="PENDING",
        )

        assert event.changed_fields == frozenset({"order_status", "signature_required"})
        assert event.status_changed

    def test_tracking_report_is_not_a_status_change(self) -> None:
        event = OrderUpdated(
            order_no=uuid4(),
            version=5,
            changes={"tracking_status": "inTransit"},
            previous_status="SHIPPING",
        )
        assert not event.status_changed

    def test_str(self) -> None:
        order_no = uuid4()
        assert str(OrderCreated(order_no=order_no, version=1, order={})) == (
            f"OrderCreated(order={order_no}, v1)"
        )


class TestDecodeEvent:
    def test_payload_excludes_stream_position(self) -> None:
        event = OrderUpdated(
            order_no=uuid4(),
            version=3,
            changes={"tracking_status": "inTransit"},
            previous_status="SHIPPING",
        )

        assert event.payload() == {
            "changes": {"tracking_status": "inTransit"},
            "previous_status": "SHIPPING",
        }

    def test_decode_rebuilds_the_event(self) -> None:
        event = OrderDeleted(order_no=uuid4(), version=7, reason="customer request")

        decoded = decode_event(
            "OrderDeleted",
            event_id=event.event_id,
            order_no=event.order_no,
            version=event.version,
            recorded_at=event.recorded_at,
            payload=event.payload(),
        )

        assert decoded == event

    def test_every_order_event_is_known(self) -> None:
        assert set(EVENT_TYPES) == {"OrderCreated", "OrderUpdated", "OrderDeleted"}

    def test_unknown_type(self) -> None:
        with pytest.raises(SerializationError) as exc_info:
            decode_event(
                "OrderLost",
                event_id=uuid4(),
                order_no=uuid4(),
                version=1,
                recorded_at=datetime.now(UTC),
                payload={},
            )
        assert exc_info.value.event_type == "OrderLost"

    def test_invalid_payload(self) -> None:
        with pytest.raises(SerializationError):
            decode_event(
                "OrderUpdated",
                event_id=uuid4(),
                order_no=uuid4(),
                version=2,
                recorded_at=datetime.now(UTC),
                payload={"changes": "not a mapping"},
            )
