"""Workspace adapter implementations."""

from chatbridge.platforms.adapters.slack import SlackAdapter

__all__ = ["SlackAdapter"]
