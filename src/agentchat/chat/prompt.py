"""Prompt assembly — turns blocks and history into the text sent for generation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from agentchat.errors import ConfigurationError
from agentchat.schemas.blocks import (
    AgentProfile,
    AnyBlock,
    MemoryBlock,
    ModelSelectorBlock,
    PromptBlock,
)
from agentchat.schemas.records import Message, SenderType

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
DEFAULT_MEMORY_WINDOW = 10
HISTORY_HEADER = "Conversation history:"


def _role(message: Message) -> str:
    return "User" if message.sender_type == SenderType.USER else "Assistant"


def render_history(history: Sequence[Message], memory_window: int) -> str:
    """Render the last ``memory_window`` messages, one ``Role: content`` line each."""
    if memory_window <= 0:
        return ""
    recent = list(history)[-memory_window:]
    return "\n".join(f"{_role(m)}: {m.content}" for m in recent)


def build_prompt(
    system_prompt: str,
    history: Sequence[Message],
    memory_window: int,
    user_utterance: str,
) -> str:
    """Build the complete instruction text for one turn.

    The layout is fixed: system prompt, blank line, history header, history
    lines, blank line, the new user line, blank line, ``Assistant:`` cue.
    """
    return (
        f"{system_prompt}\n\n"
        f"{HISTORY_HEADER}\n"
        f"{render_history(history, memory_window)}\n\n"
        f"User: {user_utterance}\n\n"
        "Assistant:"
    )


def _latest_by_kind(blocks: Iterable[AnyBlock]) -> dict[str, AnyBlock]:
    """Pick one block per kind; among duplicates the most recently created wins."""
    chosen: dict[str, AnyBlock] = {}
    duplicates: set[str] = set()
    for block in blocks:
        current = chosen.get(block.type)
        if current is not None:
            duplicates.add(block.type)
        if current is None or block.created_at >= current.created_at:
            chosen[block.type] = block
    for kind in sorted(duplicates):
        logger.warning(
            "Agent has several %r blocks; using the most recent (%s)",
            kind,
            chosen[kind].id,
        )
    return chosen


def resolve_profile(
    blocks: Iterable[AnyBlock],
    *,
    default_model: str,
    default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    default_memory_window: int = DEFAULT_MEMORY_WINDOW,
) -> AgentProfile:
    """Interpret an agent's blocks into the values a chat turn needs."""
    system_prompt = default_system_prompt
    memory_window = default_memory_window
    model = default_model

    for block in _latest_by_kind(blocks).values():
        if isinstance(block, PromptBlock):
            if block.config.prompt.strip():
                system_prompt = block.config.prompt
        elif isinstance(block, MemoryBlock):
            if block.config.max_messages > 0:
                memory_window = block.config.max_messages
            else:
                logger.warning(
                    "Memory block %s has non-positive window %d; using %d",
                    block.id,
                    block.config.max_messages,
                    default_memory_window,
                )
        elif isinstance(block, ModelSelectorBlock):
            if block.config.model:
                model = block.config.model
        else:
            raise ConfigurationError(f"Unhandled block kind: {type(block).__name__}")

    return AgentProfile(system_prompt=system_prompt, memory_window=memory_window, model=model)
