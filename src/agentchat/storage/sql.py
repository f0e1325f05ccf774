"""SQLAlchemy async backend (SQLite via aiosqlite by default, Postgres via asyncpg)."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Table, delete, event, insert, literal_column, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from agentchat.errors import StorageError
from agentchat.storage.base import BaseBackend, Row
from agentchat.storage.realtime import RealtimeHub
from agentchat.storage.tables import metadata

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless this is set per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SqlBackend(BaseBackend):
    """Relational backend over a SQLAlchemy async engine.

    The realtime feed is in-process: inserts made through this backend are
    published to its hub once the transaction commits.
    """

    def __init__(self, uri: str, *, hub: RealtimeHub | None = None, echo: bool = False) -> None:
        super().__init__(hub)
        self.engine = create_async_engine(uri, echo=echo)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        logger.info("SQL backend using %s", self.engine.url.render_as_string(hide_password=True))

    async def initialize(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not initialize database: {exc}") from exc

    async def close(self) -> None:
        await self.engine.dispose()

    async def _select(
        self,
        table: Table,
        eq: dict[str, Any],
        *,
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Row]:
        stmt = select(table).where(*(table.c[k] == v for k, v in eq.items()))
        if order_by is not None:
            column = table.c[order_by]
            stmt = stmt.order_by(
                column.desc() if descending else column.asc(), self._insertion_order(table)
            )
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(r._mapping) for r in result]
        except SQLAlchemyError as exc:
            raise StorageError(f"Select from {table.name} failed: {exc}") from exc

    def _insertion_order(self, table: Table) -> Any:
        # SQLite ties fall back to rowid (insertion order); other dialects to the key.
        if self.engine.dialect.name == "sqlite":
            return literal_column(f"{table.name}.rowid").asc()
        return table.c.id.asc()

    async def _insert(self, table: Table, row: Row, *, touch: tuple[str, str] | None) -> Row:
        try:
            async with self.engine.begin() as conn:
                await conn.execute(insert(table).values(**row))
                if touch is not None:
                    parent_name, parent_id = touch
                    parent = metadata.tables[parent_name]
                    await conn.execute(
                        update(parent)
                        .where(parent.c.id == parent_id)
                        .values(updated_at=row["created_at"])
                    )
        except SQLAlchemyError as exc:
            raise StorageError(f"Insert into {table.name} failed: {exc}") from exc
        return dict(row)

    async def _update(self, table: Table, values: dict[str, Any], eq: dict[str, Any]) -> list[Row]:
        where = [table.c[k] == v for k, v in eq.items()]
        try:
            async with self.engine.begin() as conn:
                await conn.execute(update(table).where(*where).values(**values))
                result = await conn.execute(select(table).where(*where))
                return [dict(r._mapping) for r in result]
        except SQLAlchemyError as exc:
            raise StorageError(f"Update of {table.name} failed: {exc}") from exc

    async def _delete(self, table: Table, eq: dict[str, Any]) -> int:
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(
                    delete(table).where(*(table.c[k] == v for k, v in eq.items()))
                )
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise StorageError(f"Delete from {table.name} failed: {exc}") from exc
