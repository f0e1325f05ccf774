"""Process-local backend, selected with ``database_url: memory``."""

from __future__ import annotations

import copy
import logging
from typing import Any

from sqlalchemy import Table

from agentchat.errors import StorageError
from agentchat.schemas.records import utcnow
from agentchat.storage.base import BaseBackend, Row
from agentchat.storage.realtime import RealtimeHub
from agentchat.storage.tables import cascade_children, metadata

logger = logging.getLogger(__name__)


def _matches(row: Row, eq: dict[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in eq.items())


class MemoryBackend(BaseBackend):
    """Keeps every table as a list of dicts in insertion order.

    Enforces foreign keys and ON DELETE CASCADE from the shared table
    metadata so it behaves like the SQL backend.
    """

    def __init__(self, hub: RealtimeHub | None = None) -> None:
        super().__init__(hub)
        self._rows: dict[str, list[Row]] = {name: [] for name in metadata.tables}

    async def _select(
        self,
        table: Table,
        eq: dict[str, Any],
        *,
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Row]:
        rows = [copy.deepcopy(r) for r in self._rows[table.name] if _matches(r, eq)]
        if order_by is not None:
            # list.sort is stable, so ties keep insertion order.
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def _insert(self, table: Table, row: Row, *, touch: tuple[str, str] | None) -> Row:
        existing = self._rows[table.name]
        if any(r["id"] == row["id"] for r in existing):
            raise StorageError(f"Duplicate id {row['id']} in {table.name}")
        for fk in table.foreign_keys:
            value = row.get(fk.parent.name)
            parent_rows = self._rows[fk.column.table.name]
            if value is not None and not any(r[fk.column.name] == value for r in parent_rows):
                raise StorageError(
                    f"{table.name}.{fk.parent.name} references missing "
                    f"{fk.column.table.name} row {value}"
                )

        existing.append(copy.deepcopy(row))
        if touch is not None:
            parent, parent_id = touch
            for r in self._rows[parent]:
                if r["id"] == parent_id:
                    r["updated_at"] = row.get("created_at") or utcnow()
        return copy.deepcopy(row)

    async def _update(self, table: Table, values: dict[str, Any], eq: dict[str, Any]) -> list[Row]:
        updated: list[Row] = []
        for r in self._rows[table.name]:
            if _matches(r, eq):
                r.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(r))
        return updated

    async def _delete(self, table: Table, eq: dict[str, Any]) -> int:
        doomed = [r for r in self._rows[table.name] if _matches(r, eq)]
        for row in doomed:
            for child, fk_column in cascade_children(table.name):
                await self._delete(metadata.tables[child], {fk_column: row["id"]})
        self._rows[table.name] = [r for r in self._rows[table.name] if not _matches(r, eq)]
        if doomed:
            logger.debug("Deleted %d row(s) from %s", len(doomed), table.name)
        return len(doomed)
