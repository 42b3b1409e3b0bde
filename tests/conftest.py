"""
Shared pytest fixtures for the ordersaga tests.

This module provides:
- Sample order data (order_items, expensive_items, order_no)
- Infrastructure fixtures (in_memory_store, repository)
- Saga fixtures (harness, fast_harness, coordinator)
- An order_state factory for building OrderState values directly
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from uuid import UUID, uuid4

import pytest

from ordersaga.aggregates.repository import OrderRepository
from ordersaga.config import SagaConfig
from ordersaga.saga.coordinator import OrderSagaCoordinator
from ordersaga.state import OrderState, check_items
from ordersaga.stores.memory import InMemoryOrderStore
from ordersaga.testing import SagaTestHarness
from ordersaga.types import OrderStatus

# A card number passing the Luhn check
VALID_CARD = "4111 1111 1111 1111"


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def order_no() -> UUID:
    """A random order number."""
    return uuid4()


@pytest.fixture
def order_items() -> list[dict[str, Any]]:
    """Two items totalling 35.0."""
    return [
        {"item_id": "widget", "price": 10.0, "qty": 2},
        {"itemId": "gadget", "price": 15.0},
    ]


@pytest.fixture
def expensive_items() -> list[dict[str, Any]]:
    """Items whose total (1200.0) exceeds the default signature threshold."""
    return [{"item_id": "television", "price": 1200.0}]


@pytest.fixture
def order_state() -> Callable[..., OrderState]:
    """
    Factory for OrderState values with sensible defaults.

    Example:
        def test_something(order_state):
            state = order_state(order_status=OrderStatus.APPROVED)
    """

    def _create(**overrides: Any) -> OrderState:
        items = check_items(overrides.pop("order_items", [{"item_id": "widget", "price": 10.0}]))
        values: dict[str, Any] = {
            "order_no": uuid4(),
            "customer_info": {"name": "Ada Lovelace"},
            "order_items": items,
            "order_total": sum(item.line_total for item in items),
            "shipping_address": "12 Analytical Row",
            "credit_card_number": VALID_CARD,
            "order_status": OrderStatus.PENDING,
        }
        values.update(overrides)
        return OrderState(**values)

    return _create


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture
def in_memory_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def repository(in_memory_store: InMemoryOrderStore) -> OrderRepository:
    """An OrderRepository over the in-memory store, tracing disabled."""
    return OrderRepository(in_memory_store, enable_tracing=False)


# =============================================================================
# Saga Fixtures
# =============================================================================


@pytest.fixture
def harness() -> SagaTestHarness:
    """A fully wired in-memory saga with fake services."""
    return SagaTestHarness()


@pytest.fixture
def fast_harness() -> SagaTestHarness:
    """A harness whose adapter calls time out after 50ms."""
    return SagaTestHarness(
        SagaConfig(
            adapter_timeout=0.05,
            tracking_timeout=0.05,
            compensation_step_timeout=0.05,
            enable_tracing=False,
        )
    )


@pytest.fixture
def coordinator(harness: SagaTestHarness) -> OrderSagaCoordinator:
    return harness.coordinator
