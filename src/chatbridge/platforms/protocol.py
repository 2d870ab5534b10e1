"""Platform protocol definitions.

The bridge talks to both sides only through these two abstract classes.
The workspace side ships a concrete Slack adapter; chat clients are
plugged in by import path from configuration.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Optional, Union

from chatbridge.platforms.models import (
    ChannelInfo,
    ChatEnvelope,
    ChatEvent,
    ConnectionUpdate,
    OutgoingChatMessage,
    SlashCommand,
    WorkspaceEvent,
)

ConnectionListener = Callable[[ConnectionUpdate], Awaitable[None]]


class ChatClient(ABC):
    """Abstract base class for chat-side clients.

    Implementations own the transport and session (pairing, crypto,
    reconnects). The bridge only consumes the ordered event stream and
    sends messages back.
    """

    def __init__(self) -> None:
        """Initialize the chat client."""
        self._running = False
        self._connection_listener: Optional[ConnectionListener] = None

    @property
    def is_running(self) -> bool:
        """Check if the client is currently running."""
        return self._running

    @abstractmethod
    async def start(self) -> None:
        """Connect and begin producing events."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect and release the session."""
        ...

    @abstractmethod
    async def receive_events(self) -> AsyncIterator[ChatEvent]:
        """Receive inbound chat messages, in delivery order.

        Yields:
            ChatEvent objects as they arrive.
        """
        ...

    @abstractmethod
    async def send_message(self, conversation_id: str, message: OutgoingChatMessage) -> None:
        """Send a text or media message to a conversation.

        Raises:
            Exception: If sending fails
        """
        ...

    @abstractmethod
    async def download_media(self, envelope: ChatEnvelope) -> bytes:
        """Fetch the bytes of the media carried by an envelope.

        Raises:
            Exception: If the download fails
        """
        ...

    def is_connected(self) -> bool:
        """Whether the underlying session is currently connected."""
        return self._running

    def set_connection_listener(self, listener: Optional[ConnectionListener]) -> None:
        """Register a coroutine called on every connection state change."""
        self._connection_listener = listener

    async def _notify_connection(self, update: ConnectionUpdate) -> None:
        if self._connection_listener is not None:
            await self._connection_listener(update)


class WorkspaceAdapter(ABC):
    """Abstract base class for the workspace side (Slack)."""

    def __init__(self) -> None:
        """Initialize the workspace adapter."""
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if the adapter is currently running."""
        return self._running

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def receive_events(self) -> AsyncIterator[Union[WorkspaceEvent, SlashCommand]]:
        """Receive channel messages and slash commands, in delivery order."""
        ...

    @abstractmethod
    async def post_message(self, channel_id: str, text: str) -> None:
        """Post a text message to a channel."""
        ...

    @abstractmethod
    async def upload_file(
        self,
        channel_id: str,
        buffer: bytes,
        filename: str,
        initial_comment: str = "",
    ) -> None:
        """Upload a file to a channel with an accompanying comment.

        Raises:
            MediaUploadFailed: If the upload is rejected
        """
        ...

    @abstractmethod
    async def download_file(self, url: str) -> bytes:
        """Download a private workspace file.

        Raises:
            MediaDownloadFailed: If the download fails
        """
        ...

    @abstractmethod
    async def respond(self, command: SlashCommand, text: str) -> None:
        """Answer a slash command."""
        ...

    @abstractmethod
    async def get_user_display_name(self, user_id: str) -> str:
        """Resolve a user id to a human readable name (falls back to the id)."""
        ...

    @abstractmethod
    async def create_channel(self, name: str) -> ChannelInfo:
        """Create a public channel.

        Raises:
            ChannelNameCollision: If the name is taken
            ChannelCreateFailed: For any other rejection
        """
        ...

    @abstractmethod
    async def join_channel(self, channel_id: str) -> None:
        """Join a channel as the bot user.

        Raises:
            SelfJoinFailed: If joining fails
        """
        ...

    @abstractmethod
    async def list_usergroup_members(self, group_id: str) -> list[str]:
        """List the user ids of a user group.

        Raises:
            InviteFailed: If the group cannot be read
        """
        ...

    @abstractmethod
    async def invite_to_channel(self, channel_id: str, user_ids: list[str]) -> None:
        """Invite users to a channel.

        Raises:
            InviteFailed: If the invite is rejected
        """
        ...

    async def health_check(self) -> bool:
        """Check if the workspace connection is healthy.

        Default implementation returns the running state.
        """
        return self._running
