"""Platform seams: chat client and workspace adapter protocols."""

from chatbridge.platforms.models import (
    ChannelInfo,
    ChatEnvelope,
    ChatEvent,
    ConnectionUpdate,
    MediaContainer,
    OutgoingChatMessage,
    SlashCommand,
    WorkspaceEvent,
    WorkspaceFile,
)
from chatbridge.platforms.protocol import ChatClient, ConnectionListener, WorkspaceAdapter

__all__ = [
    "ChannelInfo",
    "ChatClient",
    "ChatEnvelope",
    "ChatEvent",
    "ConnectionListener",
    "ConnectionUpdate",
    "MediaContainer",
    "OutgoingChatMessage",
    "SlashCommand",
    "WorkspaceAdapter",
    "WorkspaceEvent",
    "WorkspaceFile",
]
