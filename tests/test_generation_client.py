"""Tests for the generation client, the dry-run client and secret lookup."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from openai import OpenAIError

from agentchat.errors import ConfigurationError, GenerationError
from agentchat.shared.generation_client import DryRunClient, GenerationClient
from agentchat.shared.secrets import SecretStore


def _make_text_response(text: str | None):
    """Create a mock OpenAI chat completion carrying ``text``."""
    message = SimpleNamespace(content=text)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class TestGenerationClient:
    @pytest.mark.asyncio
    async def test_returns_reply_text(self, mock_generation_client: GenerationClient) -> None:
        create = mock_generation_client._client.chat.completions.create
        create.return_value = _make_text_response("Hello there")

        text = await mock_generation_client.generate("User: Hi\n\nAssistant:", "gpt-4o-mini")

        assert text == "Hello there"
        create.assert_awaited_once()
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "User: Hi\n\nAssistant:"}]
        assert kwargs["max_tokens"] == 1024

    @pytest.mark.asyncio
    async def test_empty_prompt_rejected(self, mock_generation_client: GenerationClient) -> None:
        with pytest.raises(GenerationError, match="Prompt is required"):
            await mock_generation_client.generate("", "gpt-4o")

    @pytest.mark.asyncio
    async def test_empty_reply_is_an_error(self, mock_generation_client: GenerationClient) -> None:
        create = mock_generation_client._client.chat.completions.create
        create.return_value = _make_text_response(None)
        with pytest.raises(GenerationError, match="No response"):
            await mock_generation_client.generate("prompt", "gpt-4o")

    @pytest.mark.asyncio
    async def test_no_choices_is_an_error(self, mock_generation_client: GenerationClient) -> None:
        mock_generation_client._client.chat.completions.create.return_value = SimpleNamespace(
            choices=[]
        )
        with pytest.raises(GenerationError):
            await mock_generation_client.generate("prompt", "gpt-4o")

    @pytest.mark.asyncio
    async def test_sdk_error_is_wrapped(self, mock_generation_client: GenerationClient) -> None:
        mock_generation_client._client.chat.completions.create.side_effect = OpenAIError("boom")
        with pytest.raises(GenerationError, match="boom"):
            await mock_generation_client.generate("prompt", "gpt-4o")

    @pytest.mark.asyncio
    async def test_missing_key_raises_configuration_error(self) -> None:
        client = GenerationClient(SecretStore(["OPENAI_API_KEY"], environ={}))
        with pytest.raises(ConfigurationError, match='API key "OPENAI_API_KEY" not found'):
            await client.generate("prompt", "gpt-4o")

    def test_sdk_client_is_built_lazily(self) -> None:
        client = GenerationClient(
            SecretStore(["OPENAI_API_KEY"], environ={"OPENAI_API_KEY": "sk-test"}),
            base_url="http://localhost:9999/v1",
        )
        assert client._client is None
        sdk = client._openai()
        assert sdk is client._openai()
        assert str(sdk.base_url).startswith("http://localhost:9999/v1")


class TestSecretStore:
    def test_resolves_allowed_key(self) -> None:
        secrets = SecretStore(["OPENAI_API_KEY"], environ={"OPENAI_API_KEY": "sk-1"})
        assert secrets.get_api_key("OPENAI_API_KEY") == "sk-1"

    def test_disallowed_key_looks_missing(self) -> None:
        secrets = SecretStore(["OPENAI_API_KEY"], environ={"HOME": "/root"})
        with pytest.raises(ConfigurationError, match='API key "HOME" not found'):
            secrets.get_api_key("HOME")

    def test_empty_value_is_missing(self) -> None:
        secrets = SecretStore(["OPENAI_API_KEY"], environ={"OPENAI_API_KEY": ""})
        with pytest.raises(ConfigurationError):
            secrets.get_api_key("OPENAI_API_KEY")

    def test_reads_process_environment_by_default(self, monkeypatch) -> None:
        monkeypatch.setenv("AGENTCHAT_TEST_KEY", "from-env")
        assert SecretStore(["AGENTCHAT_TEST_KEY"]).get_api_key("AGENTCHAT_TEST_KEY") == "from-env"


class TestDryRunClient:
    @pytest.mark.asyncio
    async def test_echoes_last_user_line(self) -> None:
        prompt = "Sys\n\nConversation history:\nUser: old\n\nUser: newest\n\nAssistant:"
        assert await DryRunClient().generate(prompt, "m") == "(dry-run reply from m) You said: newest"
