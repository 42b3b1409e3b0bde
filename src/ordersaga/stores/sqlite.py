"""
SQLite order event store.

File-backed store built on aiosqlite, so orders survive a process restart
(see ``OrderSagaCoordinator.resume_tracking``). Each row is one event;
the primary key on ``(order_no, version)`` rejects a second writer that
raced past the version check.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

import aiosqlite

from ordersaga.events import OrderEvent, decode_event
from ordersaga.exceptions import EventStoreError, OptimisticLockError
from ordersaga.stores.base import OrderEventStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS order_events (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    order_no TEXT NOT NULL,
    version INTEGER NOT NULL,
    event_id TEXT NOT NULL UNIQUE,
    event_type TEXT NOT NULL,
    recorded_at TEXT NOT NULL,
    payload TEXT NOT NULL,
    UNIQUE (order_no, version)
);
"""


class SQLiteOrderStore(OrderEventStore):
    """
    Order streams in one SQLite table.

    Example:
        >>> async with SQLiteOrderStore("orders.db") as store:
        ...     repo = OrderRepository(store)
    """

    def __init__(
        self,
        database: str,
        *,
        event_types: dict[str, type[OrderEvent]] | None = None,
        wal_mode: bool = True,
        busy_timeout: int = 5000,
    ) -> None:
        """
        Args:
            database: Path to the database file, or ':memory:'
            event_types: Event classes by type name used when decoding
                (defaults to the order events)
            wal_mode: Enable write-ahead logging
            busy_timeout: Milliseconds to wait on a locked database
        """
        self._database = database
        self._event_types = event_types
        self._wal_mode = wal_mode
        self._busy_timeout = busy_timeout
        self._connection: aiosqlite.Connection | None = None

    async def __aenter__(self) -> SQLiteOrderStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def database(self) -> str:
        return self._database

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def initialize(self) -> None:
        """Open the connection and create the table. Idempotent."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(self._database)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute(f"PRAGMA busy_timeout = {self._busy_timeout}")
            if self._wal_mode:
                await self._connection.execute("PRAGMA journal_mode = WAL")
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()
        logger.info("Opened order store %s", self._database)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed order store %s", self._database)

    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise EventStoreError(f"order store {self._database} is not open")
        return self._connection

    async def append(
        self,
        order_no: UUID,
        events: Sequence[OrderEvent],
        expected_version: int | None,
    ) -> int:
        conn = self._conn()
        current = await self.version(order_no)
        if expected_version is not None and current != expected_version:
            raise OptimisticLockError(order_no, expected_version, current)
        if not events:
            return current

        rows = [
            (
                str(order_no),
                event.version,
                str(event.event_id),
                event.event_type,
                event.recorded_at.isoformat(),
                json.dumps(event.payload()),
            )
            for event in events
        ]
        try:
            await conn.executemany(
                "INSERT INTO order_events"
                " (order_no, version, event_id, event_type, recorded_at, payload)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                rows,
            )
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            raise OptimisticLockError(
                order_no,
                current if expected_version is None else expected_version,
                await self.version(order_no),
            ) from e

        logger.debug("Appended %d event(s) to order %s", len(rows), order_no)
        return events[-1].version

    async def read(self, order_no: UUID, after_version: int = 0) -> list[OrderEvent]:
        cursor = await self._conn().execute(
            "SELECT version, event_id, event_type, recorded_at, payload FROM order_events"
            " WHERE order_no = ? AND version > ? ORDER BY version",
            (str(order_no), after_version),
        )
        return [
            decode_event(
                row["event_type"],
                event_id=UUID(row["event_id"]),
                order_no=order_no,
                version=row["version"],
                recorded_at=datetime.fromisoformat(row["recorded_at"]),
                payload=json.loads(row["payload"]),
                event_types=self._event_types,
            )
            for row in await cursor.fetchall()
        ]

    async def version(self, order_no: UUID) -> int:
        cursor = await self._conn().execute(
            "SELECT COALESCE(MAX(version), 0) FROM order_events WHERE order_no = ?",
            (str(order_no),),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def order_numbers(self) -> list[UUID]:
        cursor = await self._conn().execute(
            "SELECT order_no FROM order_events GROUP BY order_no ORDER BY MIN(seq)"
        )
        return [UUID(row["order_no"]) for row in await cursor.fetchall()]


__all__ = ["SCHEMA", "SQLiteOrderStore"]
