"""Data models for the bridge engine."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class MediaKind(str, Enum):
    """Platform-neutral attachment kinds."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    STICKER = "sticker"


class ConversationMapping(BaseModel):
    """Durable pairing of a chat conversation with a workspace channel."""

    source_conversation_id: str
    destination_channel_id: str
    destination_channel_name: str = ""
    source_conversation_name: str = ""

    def involves(self, conversation_id: str) -> bool:
        """Whether the id names either side of this pair."""
        return conversation_id in (self.source_conversation_id, self.destination_channel_id)

    def __str__(self) -> str:
        """String representation for logging."""
        return f"{self.source_conversation_id} <-> {self.destination_channel_id}"


class RecentConversation(BaseModel):
    """A chat conversation seen recently, offered for provisioning."""

    id: str
    display_name: str = ""
    last_seen_at: datetime = Field(default_factory=utc_now)

    @property
    def short_id(self) -> str:
        """The id without its server part (``12345@g.us`` -> ``12345``)."""
        return self.id.split("@", 1)[0]


class ContactOverride(BaseModel):
    """Operator-chosen label shown instead of the platform sender name."""

    conversation_id: str
    display_label: str


class StoreDocument(BaseModel):
    """The single persisted document owned by the mapping store."""

    mappings: dict[str, ConversationMapping] = Field(default_factory=dict)
    recent_conversations: list[RecentConversation] = Field(default_factory=list)
    contact_overrides: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedMedia:
    """An attachment after classification, ready to be relayed."""

    buffer: bytes
    media_kind: MediaKind
    filename: str
    mime_type: str
    caption: str = ""
    original_filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.buffer)
