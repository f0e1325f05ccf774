"""Process-wide handles, built once and passed explicitly to whatever needs them."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from agentchat.agents.service import AgentService
from agentchat.chat.conversation_store import ConversationStore
from agentchat.chat.engine import ChangeCallback, NotifyCallback
from agentchat.chat.view import ChatView
from agentchat.schemas.config import AppConfig
from agentchat.shared.generation_client import DryRunClient, GenerationClient
from agentchat.shared.secrets import SecretStore
from agentchat.storage.base import BaseBackend
from agentchat.storage.memory import MemoryBackend
from agentchat.storage.sql import SqlBackend

logger = logging.getLogger(__name__)

MEMORY_URL = "memory"


def build_backend(database_url: str) -> BaseBackend:
    if database_url == MEMORY_URL:
        return MemoryBackend()
    return SqlBackend(database_url)


def build_generator(config: AppConfig, *, dry_run: bool = False) -> GenerationClient | DryRunClient:
    if dry_run:
        return DryRunClient()
    settings = config.generation
    return GenerationClient(
        SecretStore(settings.allowed_keys),
        key_name=settings.api_key_name,
        base_url=settings.base_url,
        max_tokens=settings.max_tokens,
    )


@dataclass
class AppServices:
    config: AppConfig
    backend: BaseBackend
    store: ConversationStore
    agents: AgentService
    generator: GenerationClient | DryRunClient

    @classmethod
    async def create(
        cls,
        config: AppConfig,
        *,
        dry_run: bool = False,
        backend: BaseBackend | None = None,
    ) -> "AppServices":
        """Build and initialise every handle from ``config``."""
        backend = backend or build_backend(config.database_url)
        await backend.initialize()
        return cls(
            config=config,
            backend=backend,
            store=ConversationStore(backend),
            agents=AgentService(backend, default_model=config.generation.default_model),
            generator=build_generator(config, dry_run=dry_run),
        )

    def open_chat(
        self,
        agent_id: str,
        user_id: str,
        *,
        on_change: ChangeCallback | None = None,
        on_notify: NotifyCallback | None = None,
    ) -> ChatView:
        return ChatView(
            self.store,
            self.agents,
            self.generator,
            agent_id=agent_id,
            user_id=user_id,
            default_model=self.config.generation.default_model,
            defaults=self.config.defaults,
            on_change=on_change,
            on_notify=on_notify,
        )

    async def close(self) -> None:
        await self.backend.close()
