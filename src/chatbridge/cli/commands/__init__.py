"""CLI command modules."""

from chatbridge.cli.commands import config, contacts, mappings, run

__all__ = ["config", "contacts", "mappings", "run"]
