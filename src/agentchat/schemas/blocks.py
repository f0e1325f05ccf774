"""Agent configuration blocks — a tagged union keyed by block type."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from agentchat.schemas.records import as_utc, utcnow


class BlockType(str, Enum):
    PROMPT = "prompt"
    MEMORY = "memory"
    MODEL_SELECTOR = "model-selector"


class PromptConfig(BaseModel):
    prompt: str = "You are a helpful assistant."


class MemoryConfig(BaseModel):
    """How many recent messages are replayed into the prompt."""

    model_config = ConfigDict(populate_by_name=True)

    # Stored as ``maxMessages`` for compatibility with existing rows.
    max_messages: int = Field(10, alias="maxMessages")


class ModelSelectorConfig(BaseModel):
    model: str = ""


class _BlockBase(BaseModel):
    id: str
    agent_id: str
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("config", mode="before", check_fields=False)
    @classmethod
    def _null_config_is_empty(cls, v: object) -> object:
        return {} if v is None else v

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class PromptBlock(_BlockBase):
    type: Literal["prompt"] = "prompt"
    config: PromptConfig = PromptConfig()


class MemoryBlock(_BlockBase):
    type: Literal["memory"] = "memory"
    config: MemoryConfig = MemoryConfig()


class ModelSelectorBlock(_BlockBase):
    type: Literal["model-selector"] = "model-selector"
    config: ModelSelectorConfig = ModelSelectorConfig()


AnyBlock = PromptBlock | MemoryBlock | ModelSelectorBlock

Block = Annotated[
    Union[PromptBlock, MemoryBlock, ModelSelectorBlock],
    Field(discriminator="type"),
]

_BLOCK_ADAPTER: TypeAdapter[Any] = TypeAdapter(Block)

CONFIG_MODELS: dict[BlockType, type[BaseModel]] = {
    BlockType.PROMPT: PromptConfig,
    BlockType.MEMORY: MemoryConfig,
    BlockType.MODEL_SELECTOR: ModelSelectorConfig,
}


def parse_block(row: dict[str, Any]) -> AnyBlock:
    """Validate a ``blocks`` row into its typed variant.

    Raises ``pydantic.ValidationError`` for unknown block types.
    """
    return _BLOCK_ADAPTER.validate_python(row)


def validate_config(
    block_type: BlockType, config: dict[str, Any] | None, *, default_model: str = ""
) -> dict[str, Any]:
    """Fill defaults for ``block_type`` and return the config as it is stored."""
    model_cls = CONFIG_MODELS[block_type]
    raw = dict(config or {})
    if block_type is BlockType.MODEL_SELECTOR and not raw.get("model"):
        raw["model"] = default_model
    return model_cls.model_validate(raw).model_dump(by_alias=True)


class AgentProfile(BaseModel):
    """An agent's blocks interpreted into the values a chat turn needs."""

    system_prompt: str
    memory_window: int
    model: str
