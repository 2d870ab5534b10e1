"""
chatbridge contacts - Show contact labels.

Usage:
    chatbridge contacts list
"""

import asyncio

import typer

from chatbridge.bridge.exceptions import StoreUnavailable
from chatbridge.cli.commands.run import open_store
from chatbridge.cli.output import console, contacts_table, print_error, print_warning
from chatbridge.config import ConfigurationError, load_config

app = typer.Typer(
    name="contacts",
    help="Contact labels used for sender names.",
)


@app.command("list")
def list_contacts() -> None:
    """List saved contact labels."""
    try:
        store = open_store(load_config())
        contacts = asyncio.run(store.list_contacts())
    except (ConfigurationError, StoreUnavailable) as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not contacts:
        print_warning("No saved contacts. Use /contacts new in Slack to add one.")
        return

    console.print(contacts_table(contacts))
