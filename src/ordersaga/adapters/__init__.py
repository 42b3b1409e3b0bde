"""Ports, adapter functions and the adapter invocation protocol."""

from ordersaga.adapters.fakes import (
    FakeAddressService,
    FakeInventoryService,
    FakePaymentService,
    FakeShippingService,
    ServiceUnavailableError,
    fake_services,
)
from ordersaga.adapters.functions import AdapterFunction, Continuation
from ordersaga.adapters.invocation import (
    AdapterFailure,
    AdapterInvoker,
    FailureCallback,
    PortRegistry,
)
from ordersaga.adapters.ports import (
    AddressService,
    InventoryService,
    PaymentService,
    SagaServices,
    ShippingService,
)

__all__ = [
    "AdapterFailure",
    "AdapterFunction",
    "AdapterInvoker",
    "AddressService",
    "Continuation",
    "FailureCallback",
    "FakeAddressService",
    "FakeInventoryService",
    "FakePaymentService",
    "FakeShippingService",
    "InventoryService",
    "PaymentService",
    "PortRegistry",
    "SagaServices",
    "ServiceUnavailableError",
    "ShippingService",
    "fake_services",
]
