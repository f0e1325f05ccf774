"""Rich rendering for the terminal chat view and history listings."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from agentchat.schemas.records import ConversationSummary, Message, SenderType

_PREVIEW_CHARS = 60


def format_message(message: Message, agent_name: str) -> Text:
    """One transcript line: ``You: …`` or ``<agent>: …``."""
    if message.sender_type == SenderType.USER:
        speaker, style = "You", "bold cyan"
    else:
        speaker, style = agent_name or "Agent", "bold green"
    line = Text()
    line.append(f"{speaker}: ", style=style)
    line.append(message.content)
    return line


class TranscriptPrinter:
    """Change callback that prints each canonical message exactly once.

    Drafts are not printed (the user just typed them); a placeholder prints
    a single "typing" line.
    """

    def __init__(self, console: Console, agent_name: str) -> None:
        self.console = console
        self.agent_name = agent_name
        self._printed: set[str] = set()

    def __call__(self, messages: tuple[Message, ...]) -> None:
        for message in messages:
            if message.id in self._printed:
                continue
            if message.is_placeholder:
                self._printed.add(message.id)
                self.console.print(f"[dim]{self.agent_name or 'Agent'} is typing…[/]")
            elif not message.is_synthetic:
                self._printed.add(message.id)
                self.console.print(format_message(message, self.agent_name))


def _preview(text: str) -> str:
    text = " ".join(text.split())
    return text if len(text) <= _PREVIEW_CHARS else text[: _PREVIEW_CHARS - 1] + "…"


def conversations_table(summaries: list[ConversationSummary]) -> Table:
    """History view: one row per conversation, most recently active first."""
    table = Table(title="Conversations", show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Agent", style="bold")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Last message")
    table.add_column("Updated", no_wrap=True)
    for s in summaries:
        table.add_row(
            s.conversation.id,
            s.agent_name or "(deleted agent)",
            s.conversation.title,
            str(s.message_count),
            _preview(s.last_message.content) if s.last_message else "",
            s.conversation.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table
