"""
chatbridge config - Configuration inspection.

Usage:
    chatbridge config show
    chatbridge config show slack
    chatbridge config show --json
"""

import json
from typing import Annotated, Any

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from chatbridge.config import ConfigurationError, load_config
from chatbridge.storage.paths import get_global_config_path

app = typer.Typer(
    name="config",
    help="Configuration inspection.",
)

console = Console()

SECRET_KEYS = frozenset({"bot_token", "app_token"})


def mask_secrets(value: Any) -> Any:
    """Replace token values with a short masked form."""
    if isinstance(value, dict):
        masked = {}
        for key, item in value.items():
            if key in SECRET_KEYS and isinstance(item, str) and item:
                masked[key] = f"{item[:5]}…" if len(item) > 8 else "***"
            else:
                masked[key] = mask_secrets(item)
        return masked
    if isinstance(value, list):
        return [mask_secrets(item) for item in value]
    return value


@app.command()
def show(
    section: Annotated[
        str | None,
        typer.Argument(
            help="Config section to show (e.g., 'slack', 'bridge').",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
    show_secrets: Annotated[
        bool,
        typer.Option(
            "--show-secrets",
            help="Print tokens unmasked.",
        ),
    ] = False,
) -> None:
    """Show the effective configuration."""
    try:
        config = load_config()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    config_dict = config.model_dump(mode="json")
    if not show_secrets:
        config_dict = mask_secrets(config_dict)

    if section:
        if section not in config_dict:
            console.print(f"[red]Section '{section}' not found in configuration.[/red]")
            raise typer.Exit(1)
        config_dict = config_dict[section]

    if json_output:
        console.print_json(json.dumps(config_dict, default=str))
        return

    output = yaml.dump(
        config_dict,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    if section:
        console.print(Panel(Syntax(output, "yaml", theme="monokai"), title=f"[cyan]{section}[/cyan]"))
    else:
        console.print(Syntax(output, "yaml", theme="monokai"))
        console.print(f"\n[dim]Configuration: {get_global_config_path()}[/dim]")
