"""
Console output helpers for the chatbridge CLI.

Status lines share one glyph/colour table; the table builders render the
store's mappings and contact labels.
"""

from rich.console import Console
from rich.table import Table

from chatbridge.bridge.models import ContactOverride, ConversationMapping

# Global console instance
console = Console()

_MARKS = {
    "success": ("green", "✓"),
    "error": ("red", "✗"),
    "warning": ("yellow", "!"),
    "info": ("blue", "i"),
}


def _status(kind: str, message: str) -> None:
    colour, mark = _MARKS[kind]
    console.print(f"[{colour}]{mark}[/{colour}] {message}")


def print_success(message: str) -> None:
    _status("success", message)


def print_error(message: str) -> None:
    _status("error", message)


def print_warning(message: str) -> None:
    _status("warning", message)


def print_info(message: str) -> None:
    _status("info", message)


def mappings_table(mappings: list[ConversationMapping]) -> Table:
    """Build a table of mappings, ordered by chat id."""
    table = Table(title="Mappings")
    table.add_column("Chat", style="cyan", no_wrap=True)
    table.add_column("Chat name")
    table.add_column("Channel", style="green", no_wrap=True)
    table.add_column("Channel name")

    for m in sorted(mappings, key=lambda m: m.source_conversation_id):
        table.add_row(
            m.source_conversation_id,
            m.source_conversation_name or "-",
            m.destination_channel_id,
            m.destination_channel_name or "-",
        )
    return table


def contacts_table(contacts: list[ContactOverride]) -> Table:
    table = Table(title="Contacts")
    table.add_column("Contact", style="cyan", no_wrap=True)
    table.add_column("Label")

    for contact in sorted(contacts, key=lambda c: c.conversation_id):
        table.add_row(contact.conversation_id, contact.display_label)
    return table
