"""The order saga: status actions, dispatcher, continuations, compensation."""

from ordersaga.saga.compensation import (
    CompensationChain,
    CompensationReport,
    CompensationStep,
    StepOutcome,
    StepStatus,
)
from ordersaga.saga.continuations import (
    TrackingUpdate,
    address_validated,
    delivery_verified,
    order_picked,
    order_shipped,
    payment_authorized,
    payment_completed,
    payment_refunded,
    tracking_update,
)
from ordersaga.saga.coordinator import OrderSagaCoordinator
from ordersaga.saga.dispatcher import OrderEventDispatcher, triggers_action
from ordersaga.saga.tasks import SagaTasks
from ordersaga.saga.transitions import (
    CompletionHook,
    OrderStatusActions,
    StatusActions,
    on_status,
)

__all__ = [
    "CompensationChain",
    "CompensationReport",
    "CompensationStep",
    "CompletionHook",
    "OrderEventDispatcher",
    "OrderSagaCoordinator",
    "OrderStatusActions",
    "SagaTasks",
    "StatusActions",
    "StepOutcome",
    "StepStatus",
    "TrackingUpdate",
    "address_validated",
    "delivery_verified",
    "on_status",
    "order_picked",
    "order_shipped",
    "payment_authorized",
    "payment_completed",
    "payment_refunded",
    "tracking_update",
    "triggers_action",
]
