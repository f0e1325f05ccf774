"""Tests for prompt assembly and block interpretation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from agentchat.chat.prompt import (
    DEFAULT_SYSTEM_PROMPT,
    build_prompt,
    render_history,
    resolve_profile,
)
from agentchat.schemas.blocks import (
    MemoryBlock,
    MemoryConfig,
    ModelSelectorBlock,
    ModelSelectorConfig,
    PromptBlock,
    PromptConfig,
)
from agentchat.schemas.records import Message

_T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _msg(sender: str, content: str, i: int = 0) -> Message:
    return Message(
        id=f"m{i}",
        conversation_id="c",
        sender_type=sender,
        content=content,
        created_at=_T0 + timedelta(seconds=i),
    )


def _history(n: int) -> list[Message]:
    return [_msg("user" if i % 2 == 0 else "agent", f"line {i}", i) for i in range(n)]


class TestBuildPrompt:
    def test_exact_layout(self) -> None:
        history = [_msg("user", "Hi", 0), _msg("agent", "Hello", 1)]
        prompt = build_prompt("You are terse.", history, 10, "Bye")
        assert prompt == (
            "You are terse.\n\n"
            "Conversation history:\n"
            "User: Hi\n"
            "Assistant: Hello\n\n"
            "User: Bye\n\n"
            "Assistant:"
        )

    def test_window_of_one_keeps_last_entry(self) -> None:
        history = [_msg("user", "Hi", 0), _msg("agent", "Hello", 1)]
        prompt = build_prompt("You are terse.", history, 1, "Bye")
        block = prompt.split("Conversation history:\n", 1)[1].split("\n\nUser: Bye", 1)[0]
        assert block == "Assistant: Hello"

    def test_is_deterministic(self) -> None:
        history = _history(5)
        assert build_prompt("S", history, 3, "u") == build_prompt("S", history, 3, "u")

    def test_empty_history(self) -> None:
        prompt = build_prompt("S", [], 10, "Hello?")
        assert prompt == "S\n\nConversation history:\n\n\nUser: Hello?\n\nAssistant:"

    def test_does_not_mutate_history(self) -> None:
        history = _history(4)
        before = list(history)
        build_prompt("S", history, 2, "x")
        assert history == before


class TestRenderHistory:
    def test_truncates_to_most_recent_in_order(self) -> None:
        history = _history(7)
        for k in (1, 3, 7, 12):
            lines = render_history(history, k).split("\n")
            expected = [
                f"{'User' if m.sender_type == 'user' else 'Assistant'}: {m.content}"
                for m in history[-min(k, 7):]
            ]
            assert lines == expected

    def test_non_positive_window_renders_nothing(self) -> None:
        assert render_history(_history(3), 0) == ""
        assert render_history(_history(3), -2) == ""

    def test_agent_messages_render_as_assistant(self) -> None:
        assert render_history([_msg("agent", "ok")], 5) == "Assistant: ok"


class TestResolveProfile:
    def test_defaults_without_blocks(self) -> None:
        profile = resolve_profile([], default_model="gpt-4o")
        assert profile.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert profile.memory_window == 10
        assert profile.model == "gpt-4o"

    def test_blocks_override_defaults(self) -> None:
        blocks = [
            PromptBlock(id="b1", agent_id="a", config=PromptConfig(prompt="Be kind.")),
            MemoryBlock(id="b2", agent_id="a", config=MemoryConfig(max_messages=3)),
            ModelSelectorBlock(id="b3", agent_id="a", config=ModelSelectorConfig(model="m-1")),
        ]
        profile = resolve_profile(blocks, default_model="gpt-4o")
        assert profile.system_prompt == "Be kind."
        assert profile.memory_window == 3
        assert profile.model == "m-1"

    def test_blank_prompt_falls_back(self) -> None:
        blocks = [PromptBlock(id="b1", agent_id="a", config=PromptConfig(prompt="   "))]
        assert resolve_profile(blocks, default_model="x").system_prompt == DEFAULT_SYSTEM_PROMPT

    def test_non_positive_window_falls_back(self, caplog) -> None:
        blocks = [MemoryBlock(id="b1", agent_id="a", config=MemoryConfig(max_messages=0))]
        profile = resolve_profile(blocks, default_model="x")
        assert profile.memory_window == 10
        assert "non-positive window" in caplog.text

    def test_most_recent_duplicate_wins(self, caplog) -> None:
        older = PromptBlock(
            id="old", agent_id="a", created_at=_T0, config=PromptConfig(prompt="Old prompt")
        )
        newer = PromptBlock(
            id="new",
            agent_id="a",
            created_at=_T0 + timedelta(minutes=5),
            config=PromptConfig(prompt="New prompt"),
        )
        # Order of the list must not matter.
        assert resolve_profile([newer, older], default_model="x").system_prompt == "New prompt"
        assert resolve_profile([older, newer], default_model="x").system_prompt == "New prompt"
        assert "several 'prompt' blocks" in caplog.text

    def test_custom_defaults(self) -> None:
        profile = resolve_profile(
            [], default_model="x", default_system_prompt="Custom.", default_memory_window=4
        )
        assert profile.system_prompt == "Custom."
        assert profile.memory_window == 4
