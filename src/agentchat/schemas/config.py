"""Configuration schema — validates agentchat.yml."""

from pydantic import BaseModel, model_validator


class GenerationSettings(BaseModel):
    """Where generation requests go and which credential they use."""

    # Any OpenAI-compatible endpoint; None means api.openai.com.
    base_url: str | None = None
    api_key_name: str = "OPENAI_API_KEY"
    # Names the secret store is willing to resolve. Anything else is refused.
    allowed_keys: list[str] = ["OPENAI_API_KEY"]
    default_model: str = "gpt-4o"
    max_tokens: int = 1024

    @model_validator(mode="after")
    def check_key_is_allowed(self) -> "GenerationSettings":
        if self.api_key_name not in self.allowed_keys:
            raise ValueError(
                f"api_key_name {self.api_key_name!r} is not listed in allowed_keys"
            )
        return self


class ChatDefaults(BaseModel):
    """Values used when an agent has no block of the corresponding kind."""

    system_prompt: str = "You are a helpful AI assistant."
    memory_window: int = 10

    @model_validator(mode="after")
    def check_memory_window(self) -> "ChatDefaults":
        if self.memory_window < 1:
            raise ValueError("memory_window must be at least 1")
        return self


class AppConfig(BaseModel):
    """Top-level configuration loaded from agentchat.yml.

    ``database_url`` is either ``"memory"`` (process-local, nothing persisted)
    or a SQLAlchemy async URL such as ``sqlite+aiosqlite:///agentchat.db``.
    """

    database_url: str = "sqlite+aiosqlite:///agentchat.db"
    generation: GenerationSettings = GenerationSettings()
    defaults: ChatDefaults = ChatDefaults()

    @model_validator(mode="after")
    def check_database_url(self) -> "AppConfig":
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        return self
