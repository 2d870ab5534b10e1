"""
chatbridge - Chat client to Slack message bridge

Relays text and media between conversations of a persistent-session chat
client and channels of a Slack workspace, keeping a durable mapping between
the two sides.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chatbridge")
except PackageNotFoundError:
    __version__ = "0.3.0"

__all__ = [
    "__version__",
]
