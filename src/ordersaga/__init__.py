"""
ordersaga - Order saga coordinator built on event sourcing.

This library provides:
- A guarded order state machine (PENDING -> APPROVED -> SHIPPING -> COMPLETE, or CANCELED)
- Field-level guards applied to every update
- Status actions issuing asynchronous external calls through adapters
- A best-effort compensation chain for canceled orders
- Event-sourced persistence with in-memory and SQLite order stores
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ordersaga")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Adapters and external services
from ordersaga.adapters import (
    AdapterFailure,
    AdapterInvoker,
    AddressService,
    FakeAddressService,
    FakeInventoryService,
    FakePaymentService,
    FakeShippingService,
    InventoryService,
    PaymentService,
    PortRegistry,
    SagaServices,
    ShippingService,
    fake_services,
)

# Aggregates
from ordersaga.aggregates import OrderAggregate, OrderRepository, create_order

# Configuration
from ordersaga.config import SagaConfig
from ordersaga.context import OrderContext

# Events
from ordersaga.events import OrderCreated, OrderDeleted, OrderEvent, OrderUpdated
from ordersaga.exceptions import (
    AdapterPayloadError,
    AdapterTimeoutError,
    CreditCardFormatError,
    DeleteNotAllowedError,
    EventStoreError,
    EventVersionError,
    ExternalServiceError,
    FrozenFieldError,
    ItemsInvalidError,
    MissingStatusActionError,
    OptimisticLockError,
    OrderNotFoundError,
    OrderSagaError,
    OrderTotalError,
    OrderValidationError,
    RequiredFieldError,
    SerializationError,
    StatusTransitionError,
    UnknownFieldError,
    UnknownPortError,
)

# Guards
from ordersaga.guards import Guard, GuardPipeline, default_guards

# Saga
from ordersaga.saga import (
    CompensationChain,
    CompensationReport,
    CompensationStep,
    OrderEventDispatcher,
    OrderSagaCoordinator,
    OrderStatusActions,
    SagaTasks,
    StatusActions,
    on_status,
)
from ordersaga.state import OrderItem, OrderState, calc_total

# Order stores
from ordersaga.stores import InMemoryOrderStore, OrderEventStore, SQLiteOrderStore
from ordersaga.types import ALLOWED_TRANSITIONS, OrderStatus

__all__ = [
    "__version__",
    # Adapters
    "AdapterFailure",
    "AdapterInvoker",
    "AddressService",
    "FakeAddressService",
    "FakeInventoryService",
    "FakePaymentService",
    "FakeShippingService",
    "InventoryService",
    "PaymentService",
    "PortRegistry",
    "SagaServices",
    "ShippingService",
    "fake_services",
    # Aggregates
    "OrderAggregate",
    "OrderRepository",
    "create_order",
    # Config
    "SagaConfig",
    "OrderContext",
    # Events
    "OrderCreated",
    "OrderDeleted",
    "OrderEvent",
    "OrderUpdated",
    # Exceptions
    "AdapterPayloadError",
    "AdapterTimeoutError",
    "CreditCardFormatError",
    "DeleteNotAllowedError",
    "EventStoreError",
    "EventVersionError",
    "ExternalServiceError",
    "FrozenFieldError",
    "ItemsInvalidError",
    "MissingStatusActionError",
    "OptimisticLockError",
    "OrderNotFoundError",
    "OrderSagaError",
    "OrderTotalError",
    "OrderValidationError",
    "RequiredFieldError",
    "SerializationError",
    "StatusTransitionError",
    "UnknownFieldError",
    "UnknownPortError",
    # Guards
    "Guard",
    "GuardPipeline",
    "default_guards",
    # Saga
    "CompensationChain",
    "CompensationReport",
    "CompensationStep",
    "OrderEventDispatcher",
    "OrderSagaCoordinator",
    "OrderStatusActions",
    "SagaTasks",
    "StatusActions",
    "on_status",
    # State
    "OrderItem",
    "OrderState",
    "calc_total",
    "ALLOWED_TRANSITIONS",
    "OrderStatus",
    # Stores
    "InMemoryOrderStore",
    "OrderEventStore",
    "SQLiteOrderStore",
]
