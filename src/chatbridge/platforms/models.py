"""Data models exchanged with the chat client and the workspace adapter."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from chatbridge.bridge.models import MediaKind, utc_now


class MediaContainer(BaseModel):
    """One attachment slot of a chat envelope."""

    mimetype: Optional[str] = None
    caption: Optional[str] = None
    file_name: Optional[str] = None
    file_length: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChatEnvelope(BaseModel):
    """Payload of a chat message: text plus at most one populated media slot."""

    text: Optional[str] = None
    image: Optional[MediaContainer] = None
    video: Optional[MediaContainer] = None
    audio: Optional[MediaContainer] = None
    document: Optional[MediaContainer] = None
    sticker: Optional[MediaContainer] = None
    is_album: bool = False  # multi-item container, never relayed itself
    raw: Any = None  # client-specific message, handed back for downloads

    def has_media(self) -> bool:
        return any(
            slot is not None
            for slot in (self.image, self.video, self.audio, self.document, self.sticker)
        )


class ChatEvent(BaseModel):
    """An inbound message from the chat side."""

    conversation_id: str
    event_id: str
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    conversation_name: Optional[str] = None
    is_group: bool = False
    from_me: bool = False
    envelope: ChatEnvelope = Field(default_factory=ChatEnvelope)
    timestamp: datetime = Field(default_factory=utc_now)

    def __str__(self) -> str:
        """String representation for logging."""
        return f"[chat] {self.conversation_id}#{self.event_id}"


class OutgoingChatMessage(BaseModel):
    """A message to be delivered to a chat conversation.

    Either ``text`` is set, or ``media_kind`` together with ``buffer``.
    """

    text: Optional[str] = None
    media_kind: Optional[MediaKind] = None
    buffer: Optional[bytes] = None
    mime_type: Optional[str] = None
    filename: Optional[str] = None
    caption: Optional[str] = None

    @property
    def is_media(self) -> bool:
        return self.media_kind is not None


class WorkspaceFile(BaseModel):
    """A file attached to a workspace message."""

    url: str
    name: str = ""
    mime_type: str = ""
    size: Optional[int] = None


class WorkspaceEvent(BaseModel):
    """An inbound message from a workspace channel."""

    channel_id: str
    user_id: str
    text: Optional[str] = None
    files: list[WorkspaceFile] = Field(default_factory=list)
    event_id: str
    retry_num: Optional[int] = None
    retry_reason: Optional[str] = None

    def __str__(self) -> str:
        """String representation for logging."""
        return f"[workspace] {self.channel_id}#{self.event_id}"


class SlashCommand(BaseModel):
    """An operator slash command."""

    command: str
    text: str = ""
    trigger_id: str = ""
    channel_id: str = ""
    user_id: str = ""
    response_url: Optional[str] = None


class ConnectionUpdate(BaseModel):
    """Connection state change reported by the chat client."""

    connected: bool
    reason: Optional[str] = None


class ChannelInfo(BaseModel):
    """A workspace channel created or resolved by the adapter."""

    id: str
    name: str
