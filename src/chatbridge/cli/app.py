"""
Main Typer application for the chatbridge CLI.

This module defines the root CLI application and registers all command groups.
"""

from typing import Annotated

import typer

from chatbridge import __version__
from chatbridge.cli.commands import config, contacts, mappings, run
from chatbridge.cli.output import print_info

# Create the main Typer app
app = typer.Typer(
    name="chatbridge",
    help="Relay messages and media between a chat client and a Slack workspace.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"chatbridge version [green]{__version__}[/green]")
        raise typer.Exit()


# noinspection PyUnusedLocal
@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold blue]chatbridge[/bold blue] - chat to Slack bridge

    Use [bold]chatbridge run[/bold] to start relaying,
    and [bold]chatbridge --help[/bold] to see all commands.
    """


# Register command groups
app.add_typer(run.app, name="run")
app.add_typer(mappings.app, name="mappings")
app.add_typer(contacts.app, name="contacts")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
