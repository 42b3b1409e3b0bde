"""Library exceptions for the ordersaga package."""

from collections.abc import Iterable
from typing import Any
from uuid import UUID


class OrderSagaError(Exception):
    """Base exception for ordersaga library."""

    pass


# =============================================================================
# Guard rejections
# =============================================================================


class OrderValidationError(OrderSagaError):
    """
    Raised when a guard rejects a proposed update.

    Surfaced synchronously to the caller of the update; the order is left
    unchanged.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class StatusTransitionError(OrderValidationError):
    """Raised when an order status change is not an allowed edge."""

    def __init__(self, from_status: Any, to_status: Any) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"invalid status change: {_value(from_status)} -> {_value(to_status)}",
            field="order_status",
        )


class FrozenFieldError(OrderValidationError):
    """Raised when an update touches fields frozen at the current lifecycle point."""

    def __init__(self, fields: Iterable[str], status: Any) -> None:
        self.fields = sorted(fields)
        self.status = status
        super().__init__(
            f"fields {', '.join(self.fields)} cannot change in status {_value(status)}",
            field=self.fields[0] if self.fields else None,
        )


class RequiredFieldError(OrderValidationError):
    """Raised when a field required for the target status is missing."""

    def __init__(self, field: str, status: Any) -> None:
        self.status = status
        super().__init__(f"{field} is required for status {_value(status)}", field=field)


class OrderTotalError(OrderValidationError):
    """Raised when a caller-supplied total differs from the recomputed total."""

    def __init__(self, expected: float, actual: Any) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"order total {actual!r} does not match item total {expected!r}",
            field="order_total",
        )


class ItemsInvalidError(OrderValidationError):
    """Raised when order items are missing or malformed."""

    def __init__(self, message: str = "order items invalid") -> None:
        super().__init__(message, field="order_items")


class CreditCardFormatError(OrderValidationError):
    """Raised when a credit card number fails the format check."""

    def __init__(self) -> None:
        super().__init__("credit card number format invalid", field="credit_card_number")


class UnknownFieldError(OrderValidationError):
    """Raised when an update names fields the order does not have."""

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = sorted(fields)
        super().__init__(f"unknown order fields: {', '.join(self.fields)}")


class DeleteNotAllowedError(OrderValidationError):
    """Raised when deleting an order that is neither complete nor canceled."""

    def __init__(self, order_no: UUID, status: Any) -> None:
        self.order_no = order_no
        self.status = status
        super().__init__(f"order status incomplete: {_value(status)}", field="order_status")


# =============================================================================
# Adapter errors
# =============================================================================


class AdapterPayloadError(OrderSagaError):
    """
    Raised when a continuation receives a missing or empty required argument.

    Does not trigger compensation by itself.
    """

    def __init__(self, continuation: str, *fields: str) -> None:
        self.continuation = continuation
        self.fields = list(fields)
        super().__init__(f"{' or '.join(fields)} missing ({continuation})")


class ExternalServiceError(OrderSagaError):
    """
    Raised when an external service call made through an adapter fails.

    The original exception is kept as ``cause`` (and ``__cause__``).
    """

    def __init__(
        self,
        port: str,
        order_no: UUID,
        cause: BaseException,
        message: str | None = None,
    ) -> None:
        self.port = port
        self.order_no = order_no
        self.cause = cause
        super().__init__(message or f"adapter {port} failed for order {order_no}: {cause}")


class AdapterTimeoutError(ExternalServiceError):
    """Raised when an adapter call does not resolve within its timeout."""

    def __init__(self, port: str, order_no: UUID, timeout: float, cause: BaseException) -> None:
        self.timeout = timeout
        super().__init__(
            port,
            order_no,
            cause,
            f"adapter {port} timed out after {timeout}s for order {order_no}",
        )


class UnknownPortError(OrderSagaError):
    """Raised when invoking a port that has no registered adapter."""

    def __init__(self, port: str, available: list[str]) -> None:
        self.port = port
        self.available = available
        super().__init__(
            f"No adapter registered for port '{port}'. "
            f"Available ports: {', '.join(available) if available else 'none'}"
        )


# =============================================================================
# Infrastructure errors
# =============================================================================


class OrderNotFoundError(OrderSagaError):
    """Raised when an order cannot be found."""

    def __init__(self, order_no: UUID) -> None:
        self.order_no = order_no
        super().__init__(f"Order not found: {order_no}")


class OptimisticLockError(OrderSagaError):
    """Raised when another writer appended to the order stream first."""

    def __init__(self, order_no: UUID, expected_version: int, actual_version: int) -> None:
        self.order_no = order_no
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"order {order_no} is at version {actual_version}, expected {expected_version}"
        )


class EventVersionError(OrderSagaError):
    """Raised when replaying a stream whose events are out of sequence."""

    def __init__(self, order_no: UUID, expected_version: int, event: Any) -> None:
        self.order_no = order_no
        self.expected_version = expected_version
        self.event = event
        super().__init__(
            f"cannot apply {event} to order {order_no}: expected version {expected_version}"
        )


class EventStoreError(OrderSagaError):
    """Raised when the event store cannot be used."""


class SerializationError(OrderSagaError):
    """Raised when a stored event cannot be decoded."""

    def __init__(self, event_type: str, message: str) -> None:
        self.event_type = event_type
        super().__init__(f"cannot decode {event_type}: {message}")


class MissingStatusActionError(OrderSagaError):
    """
    Raised at class definition time when a status action table is not exhaustive.

    Attributes:
        handler_class: Name of the incomplete action class
        missing: Names of the statuses that have no action
    """

    def __init__(self, handler_class: str, missing: list[str]) -> None:
        self.handler_class = handler_class
        self.missing = missing
        super().__init__(
            f"{handler_class} has no action for status(es): {', '.join(missing)}. "
            f"Add an @on_status(...) method for each."
        )


def _value(status: Any) -> Any:
    return getattr(status, "value", status)
