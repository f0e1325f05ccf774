"""Reconciliation engine — optimistic chat projection merged with realtime inserts."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from agentchat.chat.conversation_store import ConversationStore
from agentchat.chat.prompt import build_prompt
from agentchat.errors import ConfigurationError, GenerationError, StorageError
from agentchat.schemas.blocks import AgentProfile
from agentchat.schemas.records import PLACEHOLDER_CONTENT, Message, SenderType
from agentchat.shared.generation_client import DryRunClient, GenerationClient

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I encountered an error while processing your request. Please try again later."

ChangeCallback = Callable[[tuple[Message, ...]], None]
"""Called with the whole projection after every visible change."""

NotifyCallback = Callable[[str], None]
"""Called with a user-facing error message."""


class TurnState(str, Enum):
    IDLE = "idle"
    DRAFTED = "drafted"
    PERSISTED = "persisted"
    GENERATING = "generating"
    SETTLED = "settled"


class ReconciliationEngine:
    """Owns the in-memory message projection for one conversation view.

    Every insertion path (bulk load, own writes, realtime events) goes
    through the same dedup-by-id rule. Drafts and placeholders carry
    synthetic ids and are removed by those ids only. One turn runs at a
    time; submissions made while a turn is in flight are ignored.

    After ``close()`` the projection is frozen: a turn still in flight keeps
    going and persists its reply, but nothing is added to or removed from
    the projection any more.
    """

    def __init__(
        self,
        store: ConversationStore,
        generator: GenerationClient | DryRunClient,
        conversation_id: str,
        profile: AgentProfile,
        *,
        on_change: ChangeCallback | None = None,
        on_notify: NotifyCallback | None = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.conversation_id = conversation_id
        self.profile = profile
        self.state = TurnState.IDLE
        self._on_change = on_change
        self._on_notify = on_notify
        self._projection: list[Message] = []
        self._deferred: list[Message] = []
        self._closed = False
        self._pending: asyncio.Task[Message | None] | None = None

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._projection)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_turn(self) -> asyncio.Task[Message | None] | None:
        """The fire-and-forget turn started by ``start_turn``, while it runs."""
        if self._pending is not None and not self._pending.done():
            return self._pending
        return None

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def load(self, messages: list[Message]) -> None:
        """Seed the projection with canonical history."""
        added = [self._add(m) for m in messages]
        if any(added):
            self._changed()

    def handle_insert(self, message: Message) -> None:
        """Realtime callback for rows inserted into this conversation."""
        if message.conversation_id != self.conversation_id:
            return
        if self.state is TurnState.DRAFTED:
            # Held until the draft resolves so it is never shown beside its own row.
            self._deferred.append(message)
            return
        if self._add(message):
            logger.debug("Realtime insert %s merged", message.id)
            self._changed()

    async def submit(self, text: str) -> Message | None:
        """Run one full turn and return the stored agent reply.

        Returns ``None`` when the submission is ignored (empty text, closed
        view, turn already in flight) or when a storage error aborted the
        turn. Generation failures never escape: the fallback reply is stored.
        """
        content = self._accept(text)
        if content is None:
            return None
        return await self._turn(content)

    def start_turn(self, text: str) -> asyncio.Task[Message | None] | None:
        """Like ``submit`` but runs the turn in the background."""
        content = self._accept(text)
        if content is None:
            return None
        self._pending = asyncio.get_running_loop().create_task(self._turn(content))
        return self._pending

    def close(self) -> None:
        """Tear down the projection; an in-flight turn still persists its reply."""
        if not self._closed:
            self._closed = True
            logger.debug("Engine for conversation %s closed", self.conversation_id)

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    def _accept(self, text: str) -> str | None:
        content = text.strip()
        if not content:
            return None
        if self._closed:
            logger.debug("Ignoring submission on closed view %s", self.conversation_id)
            return None
        if self.state is not TurnState.IDLE:
            logger.info("Ignoring submission while a turn is %s", self.state.value)
            return None
        self.state = TurnState.DRAFTED
        return content

    async def _turn(self, content: str) -> Message | None:
        try:
            return await self._run_turn(content)
        finally:
            self.state = TurnState.IDLE
            self._flush_deferred()

    async def _run_turn(self, content: str) -> Message | None:
        draft = Message.draft(self.conversation_id, content)
        if self._add(draft):
            self._changed()

        try:
            stored_user = await self.store.append_message(
                self.conversation_id, SenderType.USER, content
            )
        except StorageError as exc:
            self._remove(draft.id)
            self._notify(f"Failed to send message: {exc}")
            return None

        self._replace(draft.id, stored_user)
        self.state = TurnState.PERSISTED
        self._flush_deferred()

        history = [
            m for m in self._projection if not m.is_synthetic and m.id != stored_user.id
        ]
        placeholder = Message.placeholder(self.conversation_id)
        self._add(placeholder)
        self.state = TurnState.GENERATING
        self._changed()

        prompt = build_prompt(
            self.profile.system_prompt, history, self.profile.memory_window, content
        )
        reply = await self._generate(prompt)

        self.state = TurnState.SETTLED
        self._remove(placeholder.id)
        try:
            stored_reply = await self.store.append_message(
                self.conversation_id, SenderType.AGENT, reply
            )
        except StorageError as exc:
            self._notify(f"Failed to store the agent's reply: {exc}")
            return None

        if self._add(stored_reply):
            self._changed()
        return stored_reply

    async def _generate(self, prompt: str) -> str:
        try:
            reply = await self.generator.generate(prompt, self.profile.model)
            if not reply or not reply.strip() or reply == PLACEHOLDER_CONTENT:
                raise GenerationError("Generation returned no usable text")
            return reply
        except (GenerationError, ConfigurationError) as exc:
            logger.warning(
                "Generation failed for conversation %s, using fallback reply: %s",
                self.conversation_id,
                exc,
            )
            return FALLBACK_REPLY
        except Exception as exc:
            # Any generator failure ends the turn with the fallback reply.
            logger.warning(
                "Unexpected generation error for conversation %s, using fallback reply: %r",
                self.conversation_id,
                exc,
                exc_info=True,
            )
            return FALLBACK_REPLY

    # ------------------------------------------------------------------
    # Projection mutations (all keyed by id)
    # ------------------------------------------------------------------

    def _index_of(self, message_id: str) -> int | None:
        for i, m in enumerate(self._projection):
            if m.id == message_id:
                return i
        return None

    def _add(self, message: Message) -> bool:
        """Insert in ``created_at`` order (ties after existing entries); no-op on known ids."""
        if self._closed or self._index_of(message.id) is not None:
            return False
        idx = len(self._projection)
        while idx > 0 and self._projection[idx - 1].created_at > message.created_at:
            idx -= 1
        self._projection.insert(idx, message)
        return True

    def _remove(self, message_id: str) -> None:
        if self._closed:
            return
        idx = self._index_of(message_id)
        if idx is not None:
            del self._projection[idx]
            self._changed()

    def _replace(self, synthetic_id: str, canonical: Message) -> None:
        """Swap a draft for its canonical row, placed by the row's ``created_at``."""
        if self._closed:
            return
        idx = self._index_of(synthetic_id)
        if idx is not None:
            del self._projection[idx]
        # A no-op when the realtime echo already delivered the row.
        self._add(canonical)
        self._changed()

    def _flush_deferred(self) -> None:
        held, self._deferred = self._deferred, []
        added = [self._add(m) for m in held]
        if any(added):
            self._changed()

    def _changed(self) -> None:
        if self._on_change is not None and not self._closed:
            self._on_change(self.messages)

    def _notify(self, text: str) -> None:
        logger.error(text)
        if self._on_notify is not None:
            self._on_notify(text)
