"""
chatbridge mappings - Inspect and edit conversation mappings offline.

Usage:
    chatbridge mappings list
    chatbridge mappings remove 12345@g.us
"""

import asyncio
from typing import Annotated

import typer

from chatbridge.bridge.exceptions import StoreUnavailable
from chatbridge.cli.commands.run import open_store
from chatbridge.cli.output import console, mappings_table, print_error, print_success, print_warning
from chatbridge.config import ConfigurationError, load_config

app = typer.Typer(
    name="mappings",
    help="Conversation to channel mappings.",
)


@app.command("list")
def list_mappings() -> None:
    """List all conversation mappings."""
    try:
        store = open_store(load_config())
        mappings = asyncio.run(store.list_all())
    except (ConfigurationError, StoreUnavailable) as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not mappings:
        print_warning("No mappings configured. Use /map or /createchannel in Slack.")
        return

    console.print(mappings_table(mappings))
    console.print(f"\n[dim]Store: {store.path}[/dim]")


@app.command("remove")
def remove_mapping(
    source_id: Annotated[
        str,
        typer.Argument(help="Chat conversation id (e.g. 12345@g.us)."),
    ],
) -> None:
    """Remove the mapping of a chat conversation."""
    try:
        store = open_store(load_config())
        removed = asyncio.run(store.remove(source_id))
    except (ConfigurationError, StoreUnavailable) as e:
        print_error(str(e))
        raise typer.Exit(1)

    if removed is None:
        print_error(f"No mapping found for {source_id}")
        raise typer.Exit(1)

    print_success(f"Removed mapping {removed}")
