"""Main CLI application using Typer."""

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console

from agentkit import __version__
from agentkit.config.loader import ConfigError, load_config
from agentkit.config.schema import LoggingConfig, PlatformConfig

app = typer.Typer(
    name="agentkit",
    help="agentkit - agents with tools, streaming and knowledge-base retrieval",
    no_args_is_help=True,
)

console = Console()


def configure_logging(config: LoggingConfig) -> None:
    logging.basicConfig(level=config.level, format=config.format, force=True)


def _load(config_path: str | None) -> PlatformConfig:
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(code=1) from e
    configure_logging(config.logging)
    return config


@app.command()
def version():
    """Show agentkit version."""
    console.print(f"agentkit version {__version__}")


@app.command()
def chat(
    config_path: str = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (default: ~/.agentkit/agentkit.yaml)",
    ),
    provider: str = typer.Option(None, "--provider", "-p", help="Provider name (default from config)"),
    model: str = typer.Option(None, "--model", "-m", help="Model name (default from config)"),
    template: str = typer.Option(None, "--template", "-t", help="Agent template id"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the reply as it is generated"),
):
    """Start interactive chat session."""
    from agentkit.cli.chat import chat_command

    chat_command(_load(config_path), provider=provider, model=model, template=template, stream=stream)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer"),
    files: list[Path] = typer.Option(
        [],
        "--file",
        "-f",
        exists=True,
        dir_okay=False,
        help="Document to ingest before answering (repeatable)",
    ),
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
    provider: str = typer.Option(None, "--provider", "-p", help="Provider name (default from config)"),
    model: str = typer.Option(None, "--model", "-m", help="Model name (default from config)"),
    top_k: int = typer.Option(5, "--top-k", "-k", help="Knowledge fragments to include"),
):
    """Answer a question grounded in the given documents."""
    from agentkit.cli.chat import ask_command

    ask_command(_load(config_path), question, files, provider=provider, model=model, top_k=top_k)


@app.command()
def tools(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
    as_json: bool = typer.Option(False, "--json", help="Print the specifications as JSON"),
):
    """List the tools available to agents."""
    from agentkit.cli.chat import tools_command

    tools_command(_load(config_path), as_json=as_json)


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
