"""Interactive chat REPL, one-shot RAG questions and tool listing."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from agentkit.errors import AgentKitError
from agentkit.knowledge.rag import apply_rag
from agentkit.platform import Platform, build_platform

if TYPE_CHECKING:
    from agentkit.agent.loop import Agent
    from agentkit.config.schema import PlatformConfig

console = Console()
logger = logging.getLogger(__name__)


def _create_agent(
    platform: Platform,
    provider: str | None,
    model: str | None,
    template: str | None = None,
) -> Agent:
    """Create the CLI agent from a template or from the ``agent`` config section."""
    config = platform.config.agent
    provider = provider or config.default_provider
    model = model or config.default_model

    if template:
        return platform.agents.create_agent(template, name=template, model=model, provider=provider)

    tool_names = [name for name in platform.config.tools.builtin if name in platform.tools]
    return platform.agents.create_custom_agent(
        name="agentkit-cli",
        model=model,
        provider=provider,
        system_prompt=config.system_prompt,
        tool_names=tool_names,
        settings={"temperature": config.temperature, "max_tokens": config.max_tokens},
    )


def chat_command(
    config: PlatformConfig,
    provider: str | None = None,
    model: str | None = None,
    template: str | None = None,
    stream: bool = True,
) -> None:
    """Start interactive chat session."""
    platform = build_platform(config)
    try:
        agent = _create_agent(platform, provider, model, template)
    except (AgentKitError, KeyError) as e:
        console.print(f"[red]Cannot create agent: {e}[/red]")
        return

    console.print(
        Panel.fit(
            f"[bold blue]agentkit chat[/bold blue]\n"
            f"Model: {agent.provider}/{agent.model}\n"
            f"Type /help for commands, /exit to quit",
            border_style="blue",
        )
    )
    asyncio.run(_async_chat(agent, stream))


async def _async_chat(agent: Agent, stream: bool) -> None:
    while True:
        try:
            user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")

            if not user_input.strip():
                continue

            if user_input.startswith("/"):
                if _handle_slash_command(user_input, agent):
                    break
                continue

            console.print("\n[bold green]agent[/bold green]")
            if stream:
                reply = await agent.chat_stream(user_input)
                async for chunk in reply:
                    console.print(chunk, end="", markup=False, highlight=False)
                console.print()
            else:
                with console.status("[bold green]Thinking...[/bold green]", spinner="dots"):
                    response = await agent.chat(user_input)
                console.print(Markdown(response))

        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            break
        except EOFError:
            break
        except AgentKitError as e:
            console.print(f"\n[red]Error: {e}[/red]")

    console.print("\n[cyan]Goodbye![/cyan]")


def _handle_slash_command(command: str, agent: Agent) -> bool:
    """Handle slash commands.

    Returns:
        True if should exit chat loop
    """
    cmd = command.lower().strip()

    if cmd in ("/exit", "/quit", "/q"):
        return True

    elif cmd == "/help":
        console.print("\n[bold]Available commands:[/bold]")
        console.print("  /help      - Show this help")
        console.print("  /exit      - Exit chat")
        console.print("  /reset     - Forget the conversation so far")
        console.print("  /model     - Show current model")
        console.print("  /tools     - List the agent's tools")

    elif cmd == "/reset":
        agent.clear_memory()
        console.print("[dim]Memory cleared[/dim]")

    elif cmd == "/model":
        console.print(f"\n[cyan]Provider:[/cyan] {agent.provider}")
        console.print(f"[cyan]Model:[/cyan] {agent.model}")
        console.print(f"[cyan]Temperature:[/cyan] {agent.settings.temperature}")

    elif cmd == "/tools":
        console.print("\n[bold]Agent tools:[/bold]")
        for tool in agent.tools:
            console.print(f"  • {tool.name} - {tool.description[:60]}")

    else:
        console.print(f"[red]Unknown command: {command}[/red]")
        console.print("Type /help for available commands")

    return False


def ask_command(
    config: PlatformConfig,
    question: str,
    files: list[Path],
    provider: str | None = None,
    model: str | None = None,
    top_k: int = 5,
) -> None:
    """Ingest ``files`` into a temporary knowledge base and answer ``question``."""
    platform = build_platform(config)
    try:
        agent = _create_agent(platform, provider, model)
        answer = asyncio.run(_async_ask(platform, agent, question, files, top_k))
    except AgentKitError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    console.print(Markdown(answer))


async def _async_ask(platform: Platform, agent: Agent, question: str, files: list[Path], top_k: int) -> str:
    async with platform:
        manager = platform.knowledge_bases
        kb = await manager.create_knowledge_base("cli", platform.embedding_model, description="agentkit ask")
        try:
            for path in files:
                document = await manager.add_document(kb.id, path.name, path.read_bytes())
                logger.info("Ingested %s", document.name)
            with console.status("[bold green]Thinking...[/bold green]", spinner="dots"):
                return await apply_rag(platform.retriever, kb.id, question, agent, top_k=top_k)
        finally:
            await manager.delete_knowledge_base(kb.id)


def tools_command(config: PlatformConfig, as_json: bool = False) -> None:
    """Print the specification of every registered tool."""
    platform = build_platform(config)

    if as_json:
        console.print_json(platform.tools.export_specifications())
        return

    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Parameters")
    table.add_column("Description")
    for tool in sorted(platform.tools.list_tools(), key=lambda t: t.name):
        parameters = ", ".join(tool.parameter_schema().get("properties", {}))
        table.add_row(tool.name, tool.category.value, parameters, tool.description)
    console.print(table)

