"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from agentchat.agents.service import AgentService
from agentchat.chat.conversation_store import ConversationStore
from agentchat.schemas.blocks import AgentProfile
from agentchat.shared.generation_client import GenerationClient
from agentchat.shared.secrets import SecretStore
from agentchat.storage.memory import MemoryBackend


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML (SQLite in tmp_path) and return its path."""
    cfg = tmp_path / "agentchat.yml"
    cfg.write_text(
        """\
database_url: "sqlite+aiosqlite:///{db}"
generation:
  default_model: "test-model"
""".format(db=str(tmp_path / "agentchat.db"))
    )
    return cfg


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> ConversationStore:
    return ConversationStore(backend)


@pytest.fixture
def agent_service(backend: MemoryBackend) -> AgentService:
    return AgentService(backend, default_model="test-model")


@pytest_asyncio.fixture
async def agent(agent_service: AgentService):
    """An agent named "Helper" owned by user-1, with no blocks."""
    return await agent_service.create_agent("user-1", "Helper", description="Helps out")


@pytest_asyncio.fixture
async def conversation(store: ConversationStore, agent):
    return await store.resolve_conversation(agent.id, "user-1")


@pytest.fixture
def profile() -> AgentProfile:
    return AgentProfile(system_prompt="You are terse.", memory_window=10, model="test-model")


@pytest.fixture
def generator() -> AsyncMock:
    """Stands in for GenerationClient: ``generate`` returns a fixed reply."""
    gen = AsyncMock()
    gen.generate = AsyncMock(return_value="Hello from the agent")
    return gen


@pytest.fixture
def mock_generation_client() -> GenerationClient:
    """Return a GenerationClient with a mocked OpenAI SDK underneath."""
    client = GenerationClient(SecretStore(["OPENAI_API_KEY"], environ={"OPENAI_API_KEY": "sk-test"}))
    client._client = AsyncMock()
    return client
