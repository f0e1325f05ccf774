"""Error taxonomy shared by storage, generation and the chat engine."""


class AgentChatError(Exception):
    """Base class for every error raised by agentchat."""


class StorageError(AgentChatError):
    """The backend rejected a read or write (or the row does not exist)."""


class GenerationError(AgentChatError):
    """The text-generation call failed or returned no text."""


class ConfigurationError(AgentChatError):
    """Missing credential or invalid agent/block configuration."""
