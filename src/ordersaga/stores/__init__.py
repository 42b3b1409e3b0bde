"""Order event stores."""

from ordersaga.stores.base import OrderEventStore
from ordersaga.stores.memory import InMemoryOrderStore
from ordersaga.stores.sqlite import SCHEMA, SQLiteOrderStore

__all__ = ["SCHEMA", "InMemoryOrderStore", "OrderEventStore", "SQLiteOrderStore"]
