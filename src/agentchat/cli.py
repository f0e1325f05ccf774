"""Typer CLI — ``agentchat chat``, agent/block management and conversation history."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.prompt import Prompt

from agentchat.config import load_config
from agentchat.errors import AgentChatError
from agentchat.schemas.config import AppConfig

if TYPE_CHECKING:
    from agentchat.services import AppServices

# Load .env file from project root (if it exists)
load_dotenv()

T = TypeVar("T")

app = typer.Typer(
    name="agentchat",
    help="Agent Chat — build block-configured chat agents and talk to them.",
    no_args_is_help=True,
)
agent_app = typer.Typer(help="Create, inspect and delete agents.", no_args_is_help=True)
block_app = typer.Typer(help="Attach and configure agent blocks.", no_args_is_help=True)
history_app = typer.Typer(help="Browse, export and delete conversations.", no_args_is_help=True)
app.add_typer(agent_app, name="agent")
app.add_typer(block_app, name="block")
app.add_typer(history_app, name="history")

console = Console()

QUIT_COMMANDS = {"/quit", "/exit"}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(None, "--config", "-c", help="Path to agentchat.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Load configuration shared by every command."""
    _setup_logging(verbose)
    try:
        cfg = load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)
    ctx.obj = {"config": cfg, "config_path": config}


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj["config"]


def _run(
    ctx: typer.Context,
    fn: Callable[[AppServices], Awaitable[T]],
    *,
    dry_run: bool = False,
) -> T:
    """Build the services, run ``fn`` against them and turn errors into exit code 1."""
    from agentchat.services import AppServices

    async def _main() -> T:
        services = await AppServices.create(_config(ctx), dry_run=dry_run)
        try:
            return await fn(services)
        finally:
            await services.close()

    try:
        return asyncio.run(_main())
    except AgentChatError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1)


def _parse_settings(pairs: list[str]) -> dict[str, Any]:
    """Turn ``key=value`` options into a dict, YAML-typing each value."""
    settings: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        settings[key.strip()] = yaml.safe_load(value) if value else ""
    return settings


@app.command()
def validate(ctx: typer.Context) -> None:
    """Validate the configuration file without doing anything else."""
    cfg = _config(ctx)
    console.print("[green]Config is valid![/]\n")
    console.print(f"  Config file:    {ctx.obj['config_path'] or '(defaults)'}")
    console.print(f"  Database:       {cfg.database_url}")
    console.print(f"  Base URL:       {cfg.generation.base_url or '(OpenAI)'}")
    console.print(f"  API key name:   {cfg.generation.api_key_name}")
    console.print(f"  Default model:  {cfg.generation.default_model}")
    console.print(f"  Memory window:  {cfg.defaults.memory_window}")


# ----------------------------------------------------------------------
# Chat
# ----------------------------------------------------------------------


@app.command()
def chat(
    ctx: typer.Context,
    agent: str = typer.Option(..., "--agent", "-a", help="Agent id to chat with."),
    user: str = typer.Option(..., "--user", "-u", help="Your user id."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use canned replies (no API calls)."),
) -> None:
    """Open the agent's active conversation and chat interactively."""
    if dry_run:
        console.print("[yellow]DRY-RUN mode — no API calls will be made.[/]\n")

    async def _chat(services: AppServices) -> None:
        from agentchat.output.transcript import TranscriptPrinter

        agent_row = await services.agents.get_agent(agent)
        printer = TranscriptPrinter(console, agent_row.name)
        view = services.open_chat(
            agent,
            user,
            on_change=printer,
            on_notify=lambda m: console.print(f"[red]{m}[/]"),
        )
        async with view:
            console.print(
                f"[bold]Chatting with {agent_row.name}[/] — type [bold]/quit[/] to leave.\n"
            )
            loop = asyncio.get_running_loop()
            while True:
                try:
                    text = await loop.run_in_executor(
                        None, lambda: Prompt.ask("[bold cyan]You[/]", console=console)
                    )
                except (EOFError, KeyboardInterrupt):
                    break
                if text.strip().lower() in QUIT_COMMANDS:
                    break
                await view.engine.submit(text)

    _run(ctx, _chat, dry_run=dry_run)


# ----------------------------------------------------------------------
# Agents
# ----------------------------------------------------------------------


@agent_app.command("create")
def agent_create(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u"),
    name: str = typer.Option(..., "--name", "-n"),
    description: str = typer.Option("", "--description", "-d"),
    public: bool = typer.Option(False, "--public/--private"),
    with_defaults: bool = typer.Option(
        True, "--with-defaults/--bare", help="Attach prompt, memory and model blocks."
    ),
) -> None:
    """Create an agent."""

    async def _create(services: AppServices) -> None:
        created = await services.agents.create_agent(
            user, name, description=description, is_public=public
        )
        if with_defaults:
            for kind in ("prompt", "memory", "model-selector"):
                await services.agents.add_block(created.id, kind)
        console.print(f"[green]Agent created:[/] {created.id} ({created.name})")

    _run(ctx, _create)


@agent_app.command("list")
def agent_list(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u"),
    include_public: bool = typer.Option(False, "--all", help="Include other users' public agents."),
) -> None:
    """List agents."""

    async def _list(services: AppServices) -> None:
        agents = await services.agents.list_agents(user, include_public=include_public)
        if not agents:
            console.print("No agents yet. Create one with [bold]agentchat agent create[/].")
            return
        for a in agents:
            visibility = "public" if a.is_public else "private"
            console.print(f"[bold]{a.name}[/] [dim]{a.id}[/] ({visibility})")
            if a.description:
                console.print(f"    {a.description}")

    _run(ctx, _list)


@agent_app.command("show")
def agent_show(ctx: typer.Context, agent_id: str = typer.Argument(...)) -> None:
    """Show an agent with its blocks."""

    async def _show(services: AppServices) -> None:
        a = await services.agents.get_agent(agent_id)
        console.print(f"[bold]{a.name}[/] [dim]{a.id}[/]")
        console.print(f"  Owner:       {a.user_id}")
        console.print(f"  Public:      {'yes' if a.is_public else 'no'}")
        console.print(f"  Description: {a.description or '(none)'}")
        blocks = await services.agents.list_blocks(agent_id)
        console.print(f"  Blocks:      {len(blocks)}")
        for b in blocks:
            config = b.config.model_dump(by_alias=True)
            console.print(f"    - {b.type} [dim]{b.id}[/] {config}")

    _run(ctx, _show)


@agent_app.command("update")
def agent_update(
    ctx: typer.Context,
    agent_id: str = typer.Argument(...),
    name: str = typer.Option(None, "--name", "-n"),
    description: str = typer.Option(None, "--description", "-d"),
    public: bool = typer.Option(None, "--public/--private", show_default=False),
) -> None:
    """Update an agent's name, description or visibility."""

    async def _update(services: AppServices) -> None:
        a = await services.agents.update_agent(
            agent_id, name=name, description=description, is_public=public
        )
        console.print(f"[green]Agent updated:[/] {a.id} ({a.name})")

    _run(ctx, _update)


@agent_app.command("delete")
def agent_delete(ctx: typer.Context, agent_id: str = typer.Argument(...)) -> None:
    """Delete an agent with its blocks and conversations."""

    async def _delete(services: AppServices) -> None:
        await services.agents.delete_agent(agent_id)
        console.print(f"[green]Agent deleted:[/] {agent_id}")

    _run(ctx, _delete)


# ----------------------------------------------------------------------
# Blocks
# ----------------------------------------------------------------------


@block_app.command("add")
def block_add(
    ctx: typer.Context,
    agent_id: str = typer.Argument(...),
    block_type: str = typer.Argument(..., help="prompt, memory or model-selector"),
    setting: list[str] = typer.Option([], "--set", "-s", help="Config entry as key=value (repeatable)."),
) -> None:
    """Attach a block to an agent.

    Examples:

        agentchat block add AGENT prompt --set "prompt=You are terse."

        agentchat block add AGENT memory --set maxMessages=5
    """
    config = _parse_settings(setting)

    async def _add(services: AppServices) -> None:
        b = await services.agents.add_block(agent_id, block_type, config or None)
        console.print(f"[green]Added {b.type} block:[/] {b.id} {b.config.model_dump(by_alias=True)}")

    _run(ctx, _add)


@block_app.command("set")
def block_set(
    ctx: typer.Context,
    block_id: str = typer.Argument(...),
    setting: list[str] = typer.Option(..., "--set", "-s", help="Config entry as key=value (repeatable)."),
) -> None:
    """Replace a block's configuration."""
    config = _parse_settings(setting)

    async def _set(services: AppServices) -> None:
        b = await services.agents.update_block_config(block_id, config)
        console.print(f"[green]Block updated:[/] {b.id} {b.config.model_dump(by_alias=True)}")

    _run(ctx, _set)


@block_app.command("remove")
def block_remove(ctx: typer.Context, block_id: str = typer.Argument(...)) -> None:
    """Remove a block."""

    async def _remove(services: AppServices) -> None:
        await services.agents.remove_block(block_id)
        console.print(f"[green]Block removed:[/] {block_id}")

    _run(ctx, _remove)


# ----------------------------------------------------------------------
# History
# ----------------------------------------------------------------------


@history_app.command("list")
def history_list(ctx: typer.Context, user: str = typer.Option(..., "--user", "-u")) -> None:
    """List your conversations, most recently active first."""

    async def _list(services: AppServices) -> None:
        from agentchat.output.transcript import conversations_table

        summaries = await services.store.list_conversations(user)
        if not summaries:
            console.print("No conversations yet.")
            return
        console.print(conversations_table(summaries))

    _run(ctx, _list)


@history_app.command("show")
def history_show(ctx: typer.Context, conversation_id: str = typer.Argument(...)) -> None:
    """Print a conversation's transcript."""

    async def _show(services: AppServices) -> None:
        from agentchat.output.transcript import format_message

        conversation = await services.store.get_conversation(conversation_id)
        messages = await services.store.list_messages(conversation_id)
        console.print(f"[bold]{conversation.title}[/] [dim]{conversation.id}[/]\n")
        for m in messages:
            console.print(format_message(m, conversation.title))

    _run(ctx, _show)


@history_app.command("export")
def history_export(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(...),
    output: Path = typer.Option(..., "--output", "-o", help="Markdown file to write."),
) -> None:
    """Export a conversation transcript to Markdown."""

    async def _export(services: AppServices) -> None:
        from agentchat.output.markdown import render_markdown_transcript

        conversation = await services.store.get_conversation(conversation_id)
        messages = await services.store.list_messages(conversation_id)
        agents = await services.backend.select("agents", eq={"id": conversation.agent_id})
        agent_name = agents[0]["name"] if agents else ""
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(
            render_markdown_transcript(conversation, messages, agent_name=agent_name)
        )
        console.print(f"[green]Transcript written to:[/] {output}")

    _run(ctx, _export)


@history_app.command("delete")
def history_delete(ctx: typer.Context, conversation_id: str = typer.Argument(...)) -> None:
    """Delete a conversation and all of its messages."""

    async def _delete(services: AppServices) -> None:
        await services.store.delete_conversation(conversation_id)
        console.print(f"[green]Conversation deleted:[/] {conversation_id}")

    _run(ctx, _delete)
