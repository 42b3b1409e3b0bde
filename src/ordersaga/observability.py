"""
Tracing for saga components.

Components take an optional ``Tracer`` and otherwise build one with
``create_tracer``: spans go to the OpenTelemetry API when tracing is
enabled (a no-op until an SDK is configured) and nowhere otherwise.
"""

from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager, nullcontext
from typing import Any, Protocol, runtime_checkable

from opentelemetry import trace

ATTR_ORDER_NO = "ordersaga.order_no"
ATTR_ORDER_STATUS = "ordersaga.order_status"
ATTR_CHANGED_FIELDS = "ordersaga.changed_fields"
ATTR_VERSION = "ordersaga.version"
ATTR_EVENT_TYPE = "ordersaga.event_type"
ATTR_EVENT_COUNT = "ordersaga.event_count"
ATTR_PORT = "ordersaga.port"
ATTR_TIMEOUT = "ordersaga.timeout"
ATTR_COMPENSATION_STEP = "ordersaga.compensation_step"


@runtime_checkable
class Tracer(Protocol):
    """Opens spans. The context manager yields the span, or None."""

    def span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> AbstractContextManager[Any]: ...


class NullTracer:
    def span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> AbstractContextManager[Any]:
        return nullcontext()


class OpenTelemetryTracer:
    """Spans through ``opentelemetry.trace`` under an instrumentation name."""

    def __init__(self, instrumentation_name: str) -> None:
        self._tracer = trace.get_tracer(instrumentation_name)

    def span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> AbstractContextManager[Any]:
        return self._tracer.start_as_current_span(name, attributes=dict(attributes or {}))


class RecordingTracer:
    """Keeps the name and attributes of every span opened, for assertions."""

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any]]] = []

    @contextmanager
    def span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[None]:
        self.spans.append((name, dict(attributes or {})))
        yield None

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def attributes(self, name: str) -> dict[str, Any]:
        """Attributes of the first span called ``name``."""
        for span_name, attributes in self.spans:
            if span_name == name:
                return attributes
        raise KeyError(name)


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    if enable_tracing:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "ATTR_CHANGED_FIELDS",
    "ATTR_COMPENSATION_STEP",
    "ATTR_EVENT_COUNT",
    "ATTR_EVENT_TYPE",
    "ATTR_ORDER_NO",
    "ATTR_ORDER_STATUS",
    "ATTR_PORT",
    "ATTR_TIMEOUT",
    "ATTR_VERSION",
    "NullTracer",
    "OpenTelemetryTracer",
    "RecordingTracer",
    "Tracer",
    "create_tracer",
]
