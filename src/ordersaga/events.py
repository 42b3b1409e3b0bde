"""
Events recorded on an order stream.

Each order owns one stream numbered from 1. ``OrderCreated`` opens it with
the complete initial state, every accepted update appends an
``OrderUpdated`` carrying only the changed fields, and ``OrderDeleted``
closes it.
"""

from datetime import UTC, datetime
from typing import Any, ClassVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ordersaga.exceptions import SerializationError

_ENVELOPE = frozenset({"event_id", "order_no", "version", "recorded_at"})


class OrderEvent(BaseModel):
    """Base class of everything stored on an order stream."""

    model_config = ConfigDict(frozen=True)

    event_type: ClassVar[str]

    event_id: UUID = Field(default_factory=uuid4)
    order_no: UUID
    version: int = Field(ge=1)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        cls.event_type = cls.__name__

    def payload(self) -> dict[str, Any]:
        """Fields specific to the event type, in JSON form."""
        return self.model_dump(mode="json", exclude=_ENVELOPE)

    def __str__(self) -> str:
        return f"{self.event_type}(order={self.order_no}, v{self.version})"


class OrderCreated(OrderEvent):
    """The factory produced a new order."""

    order: dict[str, Any]


class OrderUpdated(OrderEvent):
    """
    A guarded update was committed.

    ``changes`` holds only the fields whose value changed after the guards
    ran, in JSON form.
    """

    changes: dict[str, Any]
    previous_status: str

    @property
    def changed_fields(self) -> frozenset[str]:
        return frozenset(self.changes)

    @property
    def status_changed(self) -> bool:
        return "order_status" in self.changes


class OrderDeleted(OrderEvent):
    """A terminal order was removed."""

    reason: str | None = None


EVENT_TYPES: dict[str, type[OrderEvent]] = {
    cls.event_type: cls for cls in (OrderCreated, OrderUpdated, OrderDeleted)
}


def decode_event(
    event_type: str,
    *,
    event_id: UUID,
    order_no: UUID,
    version: int,
    recorded_at: datetime,
    payload: dict[str, Any],
    event_types: dict[str, type[OrderEvent]] | None = None,
) -> OrderEvent:
    """
    Rebuild a stored event.

    Raises:
        SerializationError: If the event type is unknown or the payload
            does not validate
    """
    types = EVENT_TYPES if event_types is None else event_types
    cls = types.get(event_type)
    if cls is None:
        raise SerializationError(event_type, "unknown event type")
    try:
        return cls(
            event_id=event_id,
            order_no=order_no,
            version=version,
            recorded_at=recorded_at,
            **payload,
        )
    except ValidationError as e:
        raise SerializationError(event_type, str(e)) from e


__all__ = [
    "EVENT_TYPES",
    "OrderCreated",
    "OrderDeleted",
    "OrderEvent",
    "OrderUpdated",
    "decode_event",
]
