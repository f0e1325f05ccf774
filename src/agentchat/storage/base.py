"""Backend ABC — table access by equality predicates plus a realtime feed."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import Table

from agentchat.errors import StorageError
from agentchat.schemas.records import utcnow
from agentchat.storage.realtime import InsertCallback, RealtimeHub, Unsubscribe
from agentchat.storage.tables import TOUCH_ON_INSERT, get_table

Row = dict[str, Any]

_SERVER_TIMESTAMPS = ("created_at", "updated_at")


class BaseBackend(ABC):
    """Abstract persistence backend.

    Subclasses implement the four table operations. Every failure they
    report must be a ``StorageError``. The base class assigns server-side
    values (``id``, timestamps, column defaults), validates column names and
    publishes successful inserts to the realtime hub.
    """

    def __init__(self, hub: RealtimeHub | None = None) -> None:
        self.realtime = hub or RealtimeHub()
        self._last_stamp: datetime | None = None

    async def initialize(self) -> None:
        """Create whatever the backend needs before first use."""

    async def close(self) -> None:
        """Release connections."""

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching every ``eq`` predicate, optionally ordered."""
        t = self._table(table)
        self._check_columns(t, eq or {})
        if order_by is not None:
            self._check_columns(t, {order_by: None})
        return await self._select(
            t, eq or {}, order_by=order_by, descending=descending, limit=limit
        )

    async def insert(self, table: str, values: dict[str, Any]) -> Row:
        """Insert one row and return it as stored (with server-assigned fields)."""
        t = self._table(table)
        row = self._with_server_defaults(t, values)
        stored = await self._insert(t, row, touch=self._touch_target(t, row))
        self.realtime.publish(t.name, stored)
        return stored

    async def update(
        self, table: str, values: dict[str, Any], *, eq: dict[str, Any]
    ) -> list[Row]:
        """Update matching rows; returns the rows after the update."""
        t = self._table(table)
        if not eq:
            raise StorageError(f"Refusing to update every row of {table}")
        self._check_columns(t, values)
        self._check_columns(t, eq)
        values = dict(values)
        values.pop("id", None)
        if "updated_at" in t.c and "updated_at" not in values:
            values["updated_at"] = utcnow()
        return await self._update(t, values, eq)

    async def delete(self, table: str, *, eq: dict[str, Any]) -> int:
        """Delete matching rows (cascading to dependants); returns the count."""
        t = self._table(table)
        if not eq:
            raise StorageError(f"Refusing to delete every row of {table}")
        self._check_columns(t, eq)
        return await self._delete(t, eq)

    def subscribe(
        self, table: str, eq: dict[str, Any], callback: InsertCallback
    ) -> Unsubscribe:
        """Receive ``{"new": row}`` for each future insert matching ``eq``."""
        t = self._table(table)
        self._check_columns(t, eq)
        return self.realtime.subscribe(t.name, eq, callback)

    # ------------------------------------------------------------------
    # Implementation hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _select(
        self,
        table: Table,
        eq: dict[str, Any],
        *,
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Row]: ...

    @abstractmethod
    async def _insert(self, table: Table, row: Row, *, touch: tuple[str, str] | None) -> Row:
        """Write ``row``; when ``touch`` is ``(parent_table, parent_id)`` bump its ``updated_at``."""

    @abstractmethod
    async def _update(self, table: Table, values: dict[str, Any], eq: dict[str, Any]) -> list[Row]: ...

    @abstractmethod
    async def _delete(self, table: Table, eq: dict[str, Any]) -> int: ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return get_table(name)
        except KeyError as exc:
            raise StorageError(str(exc)) from exc

    @staticmethod
    def _check_columns(table: Table, values: dict[str, Any]) -> None:
        unknown = sorted(set(values) - set(table.c.keys()))
        if unknown:
            raise StorageError(f"Unknown column(s) for {table.name}: {', '.join(unknown)}")

    def _with_server_defaults(self, table: Table, values: dict[str, Any]) -> Row:
        self._check_columns(table, values)
        now = self._next_stamp()
        row: Row = {}
        for column in table.c:
            if values.get(column.name) is not None:
                row[column.name] = values[column.name]
            elif column.name == "id":
                row["id"] = str(uuid.uuid4())
            elif column.name in _SERVER_TIMESTAMPS:
                row[column.name] = now
            elif column.default is not None and column.default.is_scalar:
                row[column.name] = column.default.arg
            else:
                row[column.name] = None
            if row[column.name] is None and not column.nullable:
                raise StorageError(f"{table.name}.{column.name} is required")
        return row

    def _next_stamp(self) -> datetime:
        """Strictly increasing server timestamps, so ``created_at`` order is insertion order."""
        now = utcnow()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    @staticmethod
    def _touch_target(table: Table, row: Row) -> tuple[str, str] | None:
        target = TOUCH_ON_INSERT.get(table.name)
        if target is None:
            return None
        parent, fk_column = target
        return parent, row[fk_column]
