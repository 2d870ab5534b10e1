"""
chatbridge run - Start the bridge in the foreground.

Usage:
    chatbridge run
    chatbridge run --config ./bridge.yaml
    chatbridge run --log-level DEBUG
"""

import asyncio
import importlib
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from chatbridge.bridge.exceptions import StoreUnavailable
from chatbridge.bridge.service import BridgeService
from chatbridge.bridge.store import MappingStore
from chatbridge.cli.output import print_error, print_success, print_warning
from chatbridge.config import Config, ConfigurationError, load_config
from chatbridge.logging_setup import configure_logging
from chatbridge.platforms.adapters.slack import SlackAdapter
from chatbridge.platforms.protocol import ChatClient
from chatbridge.storage.paths import expand_path

app = typer.Typer(
    name="run",
    help="Start the bridge.",
    invoke_without_command=True,
)

console = Console()


def load_chat_client(config: Config) -> ChatClient:
    """Instantiate the chat client named by ``chat.client``.

    The value is an import path of the form ``package.module:ClassName``;
    ``chat.options`` are passed to the constructor as keyword arguments.

    Raises:
        ConfigurationError: If the path is missing or does not name a ChatClient
    """
    target = config.chat.client
    if not target:
        raise ConfigurationError(
            "chat.client is not configured (expected 'package.module:ClassName')"
        )

    module_name, _, class_name = target.partition(":")
    if not module_name or not class_name:
        raise ConfigurationError(
            f"Invalid chat.client '{target}' (expected 'package.module:ClassName')"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import chat client module '{module_name}': {e}") from e

    client_class = getattr(module, class_name, None)
    if not isinstance(client_class, type) or not issubclass(client_class, ChatClient):
        raise ConfigurationError(f"'{target}' is not a ChatClient implementation")

    return client_class(**config.chat.options)


def open_store(config: Config) -> MappingStore:
    """Open the mapping store at the configured (or default) location."""
    path = expand_path(config.storage.state_file) if config.storage.state_file else None
    return MappingStore(path, recent_limit=config.bridge.recent_limit)


def build_service(config: Config, chat: ChatClient, store: MappingStore) -> BridgeService:
    workspace = SlackAdapter(
        bot_token=config.slack.bot_token,
        app_token=config.slack.app_token,
        bot_id=config.slack.bot_id or None,
    )
    temp_dir = expand_path(config.storage.temp_dir) if config.storage.temp_dir else None
    return BridgeService(
        chat,
        workspace,
        store,
        settings=config.bridge,
        reviewer_group_id=config.slack.reviewer_group_id or None,
        main_channel=config.slack.main_channel or None,
        contact_id_suffix=config.chat.contact_id_suffix,
        temp_dir=temp_dir,
    )


@app.callback(invoke_without_command=True)
def run_bridge(
    config_file: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Configuration file (defaults to ~/.chatbridge/config.yaml).",
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            "-l",
            help="Override the configured log level (DEBUG, INFO, WARNING, ERROR).",
        ),
    ] = None,
) -> None:
    """Start relaying messages. Runs until stopped with Ctrl+C."""
    try:
        config = load_config(config_file)
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    configure_logging(
        level=(log_level or config.logging.level).upper(),
        log_file=config.logging.file,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count,
    )

    missing = config.missing_slack_tokens()
    if missing:
        print_error(f"Missing Slack settings: {', '.join(missing)}")
        console.print("[dim]Set them in the config file or via CHATBRIDGE_SLACK__BOT_TOKEN / CHATBRIDGE_SLACK__APP_TOKEN[/dim]")
        raise typer.Exit(1)

    try:
        chat = load_chat_client(config)
        store = open_store(config)
    except (ConfigurationError, StoreUnavailable) as e:
        print_error(str(e))
        raise typer.Exit(1)

    service = build_service(config, chat, store)

    console.print("[bold green]Starting bridge...[/bold green]")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        asyncio.run(service.run_forever())
    except KeyboardInterrupt:
        print_warning("Stopped by user")
        return
    except Exception as e:
        print_error(f"Bridge stopped with an error: {e}")
        raise typer.Exit(1)

    print_success("Bridge stopped")
