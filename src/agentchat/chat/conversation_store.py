"""Conversation store — durable messages and conversations over a backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from agentchat.errors import StorageError
from agentchat.schemas.records import (
    Agent,
    Conversation,
    ConversationSummary,
    Message,
    SenderType,
)
from agentchat.storage.base import BaseBackend
from agentchat.storage.realtime import InsertEvent, Unsubscribe

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Message], None]


class ConversationStore:
    """Sole writer of conversations and messages.

    ``resolve_conversation`` is best-effort one-conversation-per-pair: calls
    through the same store are serialised per (agent, user), but nothing in
    the backend enforces uniqueness across processes.
    """

    def __init__(self, backend: BaseBackend) -> None:
        self.backend = backend
        self._resolve_locks: dict[tuple[str, str], asyncio.Lock] = {}

    async def resolve_conversation(self, agent_id: str, user_id: str) -> Conversation:
        """Return the newest conversation for the pair, creating one if none exists."""
        lock = self._resolve_locks.setdefault((agent_id, user_id), asyncio.Lock())
        async with lock:
            rows = await self.backend.select(
                "conversations",
                eq={"agent_id": agent_id, "user_id": user_id},
                order_by="created_at",
                descending=True,
                limit=1,
            )
            if rows:
                return Conversation.model_validate(rows[0])

            agent_rows = await self.backend.select("agents", eq={"id": agent_id})
            if not agent_rows:
                raise StorageError(f"Agent {agent_id} not found")
            agent = Agent.model_validate(agent_rows[0])

            row = await self.backend.insert(
                "conversations",
                {"agent_id": agent_id, "user_id": user_id, "title": agent.name},
            )
            conversation = Conversation.model_validate(row)
            logger.info(
                "Created conversation %s for agent=%s user=%s",
                conversation.id,
                agent_id,
                user_id,
            )
            return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        rows = await self.backend.select("conversations", eq={"id": conversation_id})
        if not rows:
            raise StorageError(f"Conversation {conversation_id} not found")
        return Conversation.model_validate(rows[0])

    async def list_messages(self, conversation_id: str) -> list[Message]:
        """All messages of the conversation, oldest first."""
        rows = await self.backend.select(
            "messages", eq={"conversation_id": conversation_id}, order_by="created_at"
        )
        return [Message.model_validate(r) for r in rows]

    async def append_message(
        self, conversation_id: str, sender_type: SenderType, content: str
    ) -> Message:
        """Persist a message and return the canonical row."""
        row = await self.backend.insert(
            "messages",
            {
                "conversation_id": conversation_id,
                "sender_type": SenderType(sender_type).value,
                "content": content,
            },
        )
        message = Message.model_validate(row)
        logger.debug(
            "Stored %s message %s in conversation %s",
            message.sender_type.value,
            message.id,
            conversation_id,
        )
        return message

    def subscribe_inserts(
        self, conversation_id: str, on_insert: MessageCallback
    ) -> Unsubscribe:
        """Call ``on_insert`` for every message inserted into the conversation.

        Delivery is at-least-once and unordered relative to
        ``append_message`` returning. The returned callable tears the
        channel down.
        """

        def _on_event(event: InsertEvent) -> None:
            on_insert(Message.model_validate(event["new"]))

        return self.backend.subscribe(
            "messages", {"conversation_id": conversation_id}, _on_event
        )

    # ------------------------------------------------------------------
    # History view
    # ------------------------------------------------------------------

    async def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        """The user's conversations, most recently active first."""
        rows = await self.backend.select(
            "conversations", eq={"user_id": user_id}, order_by="updated_at", descending=True
        )
        agent_names: dict[str, str] = {}
        summaries: list[ConversationSummary] = []
        for row in rows:
            conversation = Conversation.model_validate(row)
            if conversation.agent_id not in agent_names:
                agents = await self.backend.select("agents", eq={"id": conversation.agent_id})
                agent_names[conversation.agent_id] = agents[0]["name"] if agents else ""
            messages = await self.list_messages(conversation.id)
            summaries.append(
                ConversationSummary(
                    conversation=conversation,
                    agent_name=agent_names[conversation.agent_id],
                    message_count=len(messages),
                    last_message=messages[-1] if messages else None,
                )
            )
        return summaries

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete the conversation and, by cascade, its messages."""
        deleted = await self.backend.delete("conversations", eq={"id": conversation_id})
        if not deleted:
            raise StorageError(f"Conversation {conversation_id} not found")
        logger.info("Deleted conversation %s", conversation_id)
