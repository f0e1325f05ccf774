"""Async OpenAI API wrapper for single-shot text generation.

The credential is resolved inside this module, so the chat engine only
ever sees ``generate(prompt, model) -> text``.
"""

from __future__ import annotations

import logging

from openai import AsyncOpenAI, OpenAIError

from agentchat.errors import GenerationError
from agentchat.shared.secrets import SecretStore

logger = logging.getLogger(__name__)

MAX_TOKENS = 1024


class GenerationClient:
    """Thin async wrapper around the OpenAI SDK.

    One request per call and no retries: a failed call surfaces as
    ``GenerationError`` and the caller decides what to show instead.
    ``base_url`` may point at any OpenAI-compatible endpoint.
    """

    def __init__(
        self,
        secrets: SecretStore,
        *,
        key_name: str = "OPENAI_API_KEY",
        base_url: str | None = None,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        self._secrets = secrets
        self._key_name = key_name
        self._base_url = base_url
        self._max_tokens = max_tokens
        self._client: AsyncOpenAI | None = None

    def _openai(self) -> AsyncOpenAI:
        """Build the SDK client on first use; raises ``ConfigurationError`` without a key."""
        if self._client is None:
            api_key = self._secrets.get_api_key(self._key_name)
            self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url)
        return self._client

    async def generate(self, prompt: str, model: str) -> str:
        """Send ``prompt`` as a single user message and return the reply text."""
        if not prompt:
            raise GenerationError("Prompt is required")

        client = self._openai()
        logger.info("Generating with model %s (%d prompt chars)", model, len(prompt))
        try:
            response = await client.chat.completions.create(
                model=model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except OpenAIError as exc:
            logger.error("Generation request failed: %s", exc)
            raise GenerationError(str(exc)) from exc

        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise GenerationError("No response from generation service")
        logger.debug("Response preview: %s", text[:50])
        return text


# ======================================================================
# Dry-run client (no API calls)
# ======================================================================


class DryRunClient:
    """Drop-in replacement for GenerationClient that makes zero API calls.

    Replies with a canned line that quotes the user's last utterance, which
    is enough to exercise the full chat turn offline.
    """

    async def generate(self, prompt: str, model: str) -> str:
        utterance = ""
        for line in reversed(prompt.splitlines()):
            if line.startswith("User: "):
                utterance = line[len("User: "):]
                break
        logger.info("[dry-run] Generation for model %s", model)
        return f"(dry-run reply from {model}) You said: {utterance}"
