"""todochat CLI — Typer + Rich terminal interface.

Commands: chat, serve, config show.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from todochat import __version__
from todochat.chat.session import ChatSession
from todochat.cli_display import TurnView, print_turn_result
from todochat.config_loader import default_config_path, load_app_config
from todochat.errors import ChatBusyError
from todochat.keys import load_keys_env
from todochat.schemas.config import AppConfig, TaskStoreKind
from todochat.streaming.reader import StreamReader

# Load API keys from ~/.todochat/keys.env and .env on startup
load_keys_env()

console = Console()

EXIT_COMMANDS = {"/exit", "/quit"}
CLEAR_COMMAND = "/clear"

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="todochat",
    help="Streaming AI chat for the todochat task manager.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Show configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"todochat {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log debug output to the terminal.",
    ),
) -> None:
    """todochat — streaming AI chat and task API."""
    _setup_logging(verbose)


# ── Helpers ──────────────────────────────────────────────────────


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # LiteLLM and httpx are chatty at DEBUG
    for noisy in ("LiteLLM", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load_config(config_path: Path | None) -> AppConfig:
    """Load the app config, exit on error."""
    try:
        return load_app_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


async def _stream_turn(session: ChatSession, text: str, view: TurnView) -> None:
    """Submit ``text`` and keep the live view refreshed until the turn settles."""
    with Live(view, console=console, auto_refresh=False, transient=True) as live:

        def _refresh(event) -> None:
            live.refresh()

        session.emitter.add_listener(_refresh)
        try:
            session.submit(text)
            view.message_id = session.transcript.last.id if session.transcript.last else None
            live.refresh()
            await session.wait()
        except asyncio.CancelledError:
            session.cancel()
            raise
        finally:
            session.emitter.remove_listener(_refresh)


# ── Chat ─────────────────────────────────────────────────────────


@app.command()
def chat(
    endpoint: str = typer.Option(
        None, "--endpoint", "-e",
        help="SSE chat endpoint (default: [chat] endpoint from config)",
    ),
    config_path: Path = typer.Option(
        None, "--config", "-c",
        help="Path to a TOML config file",
    ),
) -> None:
    """Chat with the model; replies type out as they stream.

    Ctrl+C cancels a reply in progress. Type /clear to start over and
    /exit (or Ctrl+D) to quit.
    """
    config = _load_config(config_path)
    chat_config = config.chat
    if endpoint:
        chat_config = chat_config.model_copy(update={"endpoint": endpoint})

    console.print(Panel(
        f"[bold]Endpoint:[/bold] {chat_config.endpoint}\n"
        "[dim]Ctrl+C cancels a reply · /clear resets · /exit quits[/dim]",
        title=f"[bold green]todochat {__version__}[/bold green]",
        border_style="green",
    ))

    client = httpx.AsyncClient(timeout=chat_config.request_timeout)
    reader = StreamReader(client, chat_config.endpoint, timeout=chat_config.request_timeout)
    session = ChatSession(reader, config=chat_config)

    with asyncio.Runner() as runner:
        try:
            while True:
                try:
                    text = console.input("[bold #00ffbb]you ›[/bold #00ffbb] ").strip()
                except (EOFError, KeyboardInterrupt):
                    console.print()
                    break

                if not text:
                    continue
                if text in EXIT_COMMANDS:
                    break
                if text == CLEAR_COMMAND:
                    try:
                        session.clear()
                    except ChatBusyError as e:
                        console.print(f"[yellow]{e}[/yellow]")
                    else:
                        console.print("[dim]Conversation cleared.[/dim]\n")
                    continue

                view = TurnView(session)
                cancelled = False
                try:
                    runner.run(_stream_turn(session, text, view))
                except KeyboardInterrupt:
                    cancelled = True
                    # Let the cancelled turn task unwind
                    runner.run(session.wait())
                print_turn_result(console, session, view.message_id, cancelled=cancelled)
        finally:
            runner.run(client.aclose())


# ── Serve ────────────────────────────────────────────────────────


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default from config)"),
    store: TaskStoreKind = typer.Option(
        None, "--store", help="Task store backend: memory or supabase",
    ),
    config_path: Path = typer.Option(
        None, "--config", "-c",
        help="Path to a TOML config file",
    ),
) -> None:
    """Run the SSE chat backend and task API with uvicorn."""
    import uvicorn

    from todochat.providers.litellm_provider import LiteLLMProvider
    from todochat.server.app import create_app
    from todochat.tasks.store import create_task_store

    config = _load_config(config_path)
    server = config.server.model_copy(update={
        k: v for k, v in {"host": host, "port": port, "task_store": store}.items()
        if v is not None
    })
    config = config.model_copy(update={"server": server})

    provider = LiteLLMProvider(config.model, config.retry)
    if not provider.api_key:
        console.print(
            f"[yellow]Warning:[/yellow] {config.model.api_key_env} is not set; "
            "model routes will answer 500."
        )

    console.print(Panel(
        f"[bold]URL:[/bold] http://{server.host}:{server.port}\n"
        f"[bold]Model:[/bold] {provider.display_name} ({provider.model_id})\n"
        f"[bold]Task store:[/bold] {server.task_store}",
        title="[bold blue]todochat server[/bold blue]",
        border_style="blue",
    ))

    app_instance = create_app(provider, create_task_store(server.task_store), config)
    log_level = "debug" if logging.getLogger().isEnabledFor(logging.DEBUG) else "info"
    uvicorn.run(app_instance, host=server.host, port=server.port, log_level=log_level)


# ── Config ───────────────────────────────────────────────────────


@config_app.command("show")
def config_show(
    config_path: Path = typer.Option(
        None, "--config", "-c",
        help="Path to a TOML config file",
    ),
) -> None:
    """Show the resolved configuration."""
    config = _load_config(config_path)

    table = Table(
        title=f"Configuration ({config_path or default_config_path()})",
        show_header=False,
        show_lines=True,
    )
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    for section_name in ("chat", "model", "retry", "server"):
        section = getattr(config, section_name)
        for key, value in section.model_dump(mode="json").items():
            table.add_row(f"{section_name}.{key}", str(value))

    console.print(table)


# ── Entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    app()
