"""Chat view — scopes one engine and one realtime subscription to a conversation."""

from __future__ import annotations

import logging
from types import TracebackType

from agentchat.agents.service import AgentService
from agentchat.chat.conversation_store import ConversationStore
from agentchat.chat.engine import ChangeCallback, NotifyCallback, ReconciliationEngine
from agentchat.chat.prompt import resolve_profile
from agentchat.schemas.config import ChatDefaults
from agentchat.schemas.records import Agent, Conversation
from agentchat.shared.generation_client import DryRunClient, GenerationClient
from agentchat.storage.realtime import Unsubscribe

logger = logging.getLogger(__name__)


class ChatView:
    """Async context manager for one open chat between a user and an agent.

    Entering loads the agent, interprets its blocks, resolves the active
    conversation, subscribes to its inserts and loads the history. Leaving
    unsubscribes and closes the engine.
    """

    def __init__(
        self,
        store: ConversationStore,
        agents: AgentService,
        generator: GenerationClient | DryRunClient,
        *,
        agent_id: str,
        user_id: str,
        default_model: str,
        defaults: ChatDefaults | None = None,
        on_change: ChangeCallback | None = None,
        on_notify: NotifyCallback | None = None,
    ) -> None:
        self.store = store
        self.agents = agents
        self.generator = generator
        self.agent_id = agent_id
        self.user_id = user_id
        self.default_model = default_model
        self.defaults = defaults or ChatDefaults()
        self._on_change = on_change
        self._on_notify = on_notify
        self._unsubscribe: Unsubscribe | None = None
        self.agent: Agent | None = None
        self.conversation: Conversation | None = None
        self.engine: ReconciliationEngine | None = None

    async def __aenter__(self) -> "ChatView":
        self.agent = await self.agents.get_agent(self.agent_id)
        blocks = await self.agents.list_blocks(self.agent_id)
        profile = resolve_profile(
            blocks,
            default_model=self.default_model,
            default_system_prompt=self.defaults.system_prompt,
            default_memory_window=self.defaults.memory_window,
        )
        self.conversation = await self.store.resolve_conversation(self.agent_id, self.user_id)
        self.engine = ReconciliationEngine(
            self.store,
            self.generator,
            self.conversation.id,
            profile,
            on_change=self._on_change,
            on_notify=self._on_notify,
        )
        # Subscribe before loading so nothing inserted in between is missed;
        # anything seen twice is dropped by the engine.
        self._unsubscribe = self.store.subscribe_inserts(
            self.conversation.id, self.engine.handle_insert
        )
        self.engine.load(await self.store.list_messages(self.conversation.id))
        logger.info(
            "Opened chat with %s (conversation %s, model %s, window %d)",
            self.agent.name,
            self.conversation.id,
            profile.model,
            profile.memory_window,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.engine is not None:
            self.engine.close()
