"""Message bridge engine.

Architecture:
    ChatClient ─┐                        ┌─ WorkspaceAdapter
                └─> BridgeService tasks ─┘
                        │
        RelayPipeline ──┼── CommandHandler ── ChannelProvisioner
              │         │
        classify()   MappingStore / DedupGuard
"""

from chatbridge.bridge.exceptions import (
    BridgeError,
    ChannelCreateFailed,
    ChannelNameCollision,
    InviteFailed,
    MappingNotFound,
    MediaDownloadFailed,
    MediaUploadFailed,
    ProvisioningUsageError,
    SelfJoinFailed,
    StoreUnavailable,
)
from chatbridge.bridge.models import (
    ContactOverride,
    ConversationMapping,
    MediaKind,
    NormalizedMedia,
    RecentConversation,
    StoreDocument,
)

__all__ = [
    "BridgeError",
    "ChannelCreateFailed",
    "ChannelNameCollision",
    "ContactOverride",
    "ConversationMapping",
    "InviteFailed",
    "MappingNotFound",
    "MediaDownloadFailed",
    "MediaKind",
    "MediaUploadFailed",
    "NormalizedMedia",
    "ProvisioningUsageError",
    "RecentConversation",
    "SelfJoinFailed",
    "StoreDocument",
    "StoreUnavailable",
]
