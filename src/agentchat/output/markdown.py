"""Markdown transcript builder — renders a conversation to a Markdown document."""

from __future__ import annotations

from agentchat.schemas.records import Conversation, Message, SenderType


def render_markdown_transcript(
    conversation: Conversation,
    messages: list[Message],
    *,
    agent_name: str = "",
) -> str:
    """Render a conversation and its messages into a Markdown string."""
    sections: list[str] = []

    title = conversation.title or agent_name or "Conversation"
    sections.append(f"# {title}\n")
    if agent_name:
        sections.append(f"- **Agent:** {agent_name}")
    sections.append(f"- **Conversation:** `{conversation.id}`")
    sections.append(f"- **Started:** {conversation.created_at.isoformat()}")
    sections.append(f"- **Last activity:** {conversation.updated_at.isoformat()}")
    sections.append(f"- **Messages:** {len(messages)}")
    sections.append("")

    if not messages:
        sections.append("*No messages yet.*\n")
        return "\n".join(sections)

    for message in messages:
        speaker = "User" if message.sender_type == SenderType.USER else (agent_name or "Assistant")
        timestamp = message.created_at.strftime("%Y-%m-%d %H:%M:%S")
        sections.append(f"### {speaker} · {timestamp}\n")
        sections.append(message.content.rstrip() + "\n")

    return "\n".join(sections)
