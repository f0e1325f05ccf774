"""Tests for ChatView and the AppServices wiring."""

from __future__ import annotations

import asyncio

import pytest

from agentchat.chat.view import ChatView
from agentchat.errors import StorageError
from agentchat.schemas.config import AppConfig
from agentchat.schemas.records import SenderType
from agentchat.services import AppServices, build_backend
from agentchat.shared.generation_client import DryRunClient
from agentchat.storage.memory import MemoryBackend
from agentchat.storage.sql import SqlBackend


def _view(store, agent_service, generator, agent_id: str, **kwargs) -> ChatView:
    return ChatView(
        store,
        agent_service,
        generator,
        agent_id=agent_id,
        user_id="user-1",
        default_model="test-model",
        **kwargs,
    )


class TestChatView:
    @pytest.mark.asyncio
    async def test_enter_loads_history(self, store, agent_service, generator, agent, conversation) -> None:
        earlier = await store.append_message(conversation.id, SenderType.USER, "Earlier")

        async with _view(store, agent_service, generator, agent.id) as view:
            assert view.conversation.id == conversation.id
            assert view.agent.name == "Helper"
            assert view.engine.messages == (earlier,)

    @pytest.mark.asyncio
    async def test_blocks_shape_the_prompt(self, store, agent_service, generator, agent) -> None:
        await agent_service.add_block(agent.id, "prompt", {"prompt": "Speak like a pirate."})
        await agent_service.add_block(agent.id, "model-selector", {"model": "pirate-model"})

        async with _view(store, agent_service, generator, agent.id) as view:
            await view.engine.submit("Hello")

        prompt, model = generator.generate.await_args.args
        assert prompt.startswith("Speak like a pirate.\n\n")
        assert model == "pirate-model"

    @pytest.mark.asyncio
    async def test_inserts_from_elsewhere_are_merged(
        self, store, agent_service, generator, agent, conversation
    ) -> None:
        async with _view(store, agent_service, generator, agent.id) as view:
            other_device = await store.append_message(conversation.id, SenderType.USER, "From phone")
            await asyncio.sleep(0)
            assert view.engine.messages == (other_device,)

    @pytest.mark.asyncio
    async def test_exit_tears_down_subscription(self, store, agent_service, generator, agent, backend) -> None:
        async with _view(store, agent_service, generator, agent.id) as view:
            assert backend.realtime.channel_count == 1
        assert backend.realtime.channel_count == 0
        assert view.engine.closed

    @pytest.mark.asyncio
    async def test_unknown_agent(self, store, agent_service, generator) -> None:
        with pytest.raises(StorageError):
            async with _view(store, agent_service, generator, "missing"):
                pass


class TestAppServices:
    def test_build_backend(self, tmp_path) -> None:
        assert isinstance(build_backend("memory"), MemoryBackend)
        assert isinstance(build_backend(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}"), SqlBackend)

    @pytest.mark.asyncio
    async def test_dry_run_keeps_the_configured_backend(self, tmp_path) -> None:
        config = AppConfig(database_url=f"sqlite+aiosqlite:///{tmp_path / 'dry.db'}")
        services = await AppServices.create(config, dry_run=True)
        try:
            assert isinstance(services.backend, SqlBackend)
            assert isinstance(services.generator, DryRunClient)
        finally:
            await services.close()

    @pytest.mark.asyncio
    async def test_dry_run_turn_end_to_end(self) -> None:
        services = await AppServices.create(AppConfig(database_url="memory"), dry_run=True)
        try:
            assert isinstance(services.generator, DryRunClient)
            agent = await services.agents.create_agent("user-1", "Echo")
            async with services.open_chat(agent.id, "user-1") as view:
                reply = await view.engine.submit("ping")
            assert reply is not None
            assert reply.content == "(dry-run reply from gpt-4o) You said: ping"
            stored = await services.store.list_messages(view.conversation.id)
            assert [m.content for m in stored] == ["ping", reply.content]
        finally:
            await services.close()
