"""Agent and block management."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from agentchat.errors import ConfigurationError, StorageError
from agentchat.schemas.blocks import (
    AnyBlock,
    BlockType,
    parse_block,
    validate_config,
)
from agentchat.schemas.records import Agent
from agentchat.storage.base import BaseBackend

logger = logging.getLogger(__name__)


class AgentService:
    """CRUD for agents and their configuration blocks.

    Each agent holds at most one block per kind; adding a second one is
    rejected. Deleting an agent removes its blocks and conversations.
    """

    def __init__(self, backend: BaseBackend, *, default_model: str = "gpt-4o") -> None:
        self.backend = backend
        self.default_model = default_model

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def create_agent(
        self,
        user_id: str,
        name: str,
        *,
        description: str = "",
        is_public: bool = False,
    ) -> Agent:
        if not name.strip():
            raise ConfigurationError("Agent name is required")
        row = await self.backend.insert(
            "agents",
            {
                "user_id": user_id,
                "name": name.strip(),
                "description": description,
                "is_public": is_public,
            },
        )
        agent = Agent.model_validate(row)
        logger.info("Created agent %s (%s) for user %s", agent.id, agent.name, user_id)
        return agent

    async def get_agent(self, agent_id: str) -> Agent:
        rows = await self.backend.select("agents", eq={"id": agent_id})
        if not rows:
            raise StorageError(f"Agent {agent_id} not found")
        return Agent.model_validate(rows[0])

    async def list_agents(self, user_id: str, *, include_public: bool = False) -> list[Agent]:
        """The user's own agents, optionally followed by other users' public ones."""
        rows = await self.backend.select("agents", eq={"user_id": user_id}, order_by="created_at")
        agents = [Agent.model_validate(r) for r in rows]
        if include_public:
            public = await self.backend.select("agents", eq={"is_public": True}, order_by="created_at")
            agents.extend(Agent.model_validate(r) for r in public if r["user_id"] != user_id)
        return agents

    async def update_agent(
        self,
        agent_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        is_public: bool | None = None,
    ) -> Agent:
        values: dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise ConfigurationError("Agent name is required")
            values["name"] = name.strip()
        if description is not None:
            values["description"] = description
        if is_public is not None:
            values["is_public"] = is_public
        if not values:
            return await self.get_agent(agent_id)

        rows = await self.backend.update("agents", values, eq={"id": agent_id})
        if not rows:
            raise StorageError(f"Agent {agent_id} not found")
        return Agent.model_validate(rows[0])

    async def delete_agent(self, agent_id: str) -> None:
        if not await self.backend.delete("agents", eq={"id": agent_id}):
            raise StorageError(f"Agent {agent_id} not found")
        logger.info("Deleted agent %s", agent_id)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    async def list_blocks(self, agent_id: str) -> list[AnyBlock]:
        rows = await self.backend.select("blocks", eq={"agent_id": agent_id}, order_by="created_at")
        return [parse_block(r) for r in rows]

    async def add_block(
        self,
        agent_id: str,
        block_type: BlockType | str,
        config: dict[str, Any] | None = None,
    ) -> AnyBlock:
        """Attach a block, filling the kind's default config."""
        kind = self._kind(block_type)
        await self.get_agent(agent_id)
        existing = await self.backend.select("blocks", eq={"agent_id": agent_id, "type": kind.value})
        if existing:
            raise ConfigurationError(f"Agent {agent_id} already has a {kind.value!r} block")

        row = await self.backend.insert(
            "blocks",
            {"agent_id": agent_id, "type": kind.value, "config": self._config(kind, config)},
        )
        logger.info("Added %s block to agent %s", kind.value, agent_id)
        return parse_block(row)

    async def update_block_config(self, block_id: str, config: dict[str, Any]) -> AnyBlock:
        rows = await self.backend.select("blocks", eq={"id": block_id})
        if not rows:
            raise StorageError(f"Block {block_id} not found")
        kind = self._kind(rows[0]["type"])
        updated = await self.backend.update(
            "blocks", {"config": self._config(kind, config)}, eq={"id": block_id}
        )
        return parse_block(updated[0])

    async def remove_block(self, block_id: str) -> None:
        if not await self.backend.delete("blocks", eq={"id": block_id}):
            raise StorageError(f"Block {block_id} not found")

    @staticmethod
    def _kind(block_type: BlockType | str) -> BlockType:
        try:
            return BlockType(block_type)
        except ValueError:
            known = ", ".join(k.value for k in BlockType)
            raise ConfigurationError(
                f"Unknown block type {block_type!r} (expected one of: {known})"
            ) from None

    def _config(self, kind: BlockType, config: dict[str, Any] | None) -> dict[str, Any]:
        try:
            return validate_config(kind, config, default_model=self.default_model)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid {kind.value} config: {exc}") from exc
