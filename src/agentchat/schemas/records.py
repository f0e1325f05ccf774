"""Row models for agents, conversations and messages."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Synthetic id prefixes. Canonical ids are UUID4 strings, so these never collide.
DRAFT_PREFIX = "draft-"
PLACEHOLDER_PREFIX = "typing-"
PLACEHOLDER_CONTENT = "..."


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SenderType(str, Enum):
    USER = "user"
    AGENT = "agent"


class Message(BaseModel):
    """A chat message, either a canonical row or a synthetic projection entry."""

    id: str
    conversation_id: str
    sender_type: SenderType
    content: str
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def is_synthetic(self) -> bool:
        """True for drafts and placeholders, which the backend has never seen."""
        return self.id.startswith((DRAFT_PREFIX, PLACEHOLDER_PREFIX))

    @property
    def is_placeholder(self) -> bool:
        return self.id.startswith(PLACEHOLDER_PREFIX)

    @classmethod
    def draft(cls, conversation_id: str, content: str) -> "Message":
        """Optimistic user message carrying a correlation id."""
        return cls(
            id=f"{DRAFT_PREFIX}{uuid.uuid4()}",
            conversation_id=conversation_id,
            sender_type=SenderType.USER,
            content=content,
        )

    @classmethod
    def placeholder(cls, conversation_id: str) -> "Message":
        """The "agent is typing" entry shown while a reply is generated."""
        return cls(
            id=f"{PLACEHOLDER_PREFIX}{uuid.uuid4()}",
            conversation_id=conversation_id,
            sender_type=SenderType.AGENT,
            content=PLACEHOLDER_CONTENT,
        )


class Conversation(BaseModel):
    """One chat thread between a user and an agent."""

    id: str
    agent_id: str
    user_id: str
    title: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)


class ConversationSummary(BaseModel):
    """A row in the conversation history view."""

    conversation: Conversation
    agent_name: str = ""
    message_count: int = 0
    last_message: Message | None = None


class Agent(BaseModel):
    """A chatbot persona owned by a user."""

    id: str
    name: str
    description: str | None = None
    is_public: bool = False
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)
