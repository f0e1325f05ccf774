"""Table definitions shared by every backend.

The SQL backend creates these tables; the in-memory backend uses the same
metadata for column checks and ON DELETE CASCADE.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

agents = Table(
    "agents",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=True),
    Column("is_public", Boolean, nullable=False, default=False),
    Column("user_id", String, nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

blocks = Table(
    "blocks",
    metadata,
    Column("id", String, primary_key=True),
    Column("agent_id", String, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False),
    Column("type", String, nullable=False),
    Column("config", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("idx_blocks_agent_id", "agent_id"),
)

conversations = Table(
    "conversations",
    metadata,
    Column("id", String, primary_key=True),
    Column("agent_id", String, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String, nullable=False),
    Column("title", String, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("idx_conversations_agent_user", "agent_id", "user_id"),
)

messages = Table(
    "messages",
    metadata,
    Column("id", String, primary_key=True),
    Column(
        "conversation_id",
        String,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("sender_type", String, nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("idx_messages_conversation_created", "conversation_id", "created_at"),
)

# Inserting into the key table bumps ``updated_at`` on the parent row,
# the way a database trigger would.
TOUCH_ON_INSERT: dict[str, tuple[str, str]] = {
    "messages": ("conversations", "conversation_id"),
}


def get_table(name: str) -> Table:
    """Look up a table by name; unknown names are a caller bug."""
    try:
        return metadata.tables[name]
    except KeyError:
        raise KeyError(f"Unknown table: {name}") from None


def cascade_children(name: str) -> list[tuple[str, str]]:
    """Return ``(child_table, fk_column)`` pairs deleted along with ``name`` rows."""
    children: list[tuple[str, str]] = []
    for table in metadata.sorted_tables:
        for fk in table.foreign_keys:
            if fk.column.table.name == name and fk.ondelete == "CASCADE":
                children.append((table.name, fk.parent.name))
    return children
