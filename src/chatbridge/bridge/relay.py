"""Relay pipeline between the chat side and the workspace side.

Each direction handles one event at a time: the caller awaits a relay
call to completion before handing over the next event of the same
stream, which keeps per-conversation order intact.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chatbridge.bridge.dedup import DedupGuard
from chatbridge.bridge.exceptions import MappingNotFound, MediaDownloadFailed, MediaUploadFailed
from chatbridge.bridge.media import KIND_LABELS, classify, file_kind, temp_media_file
from chatbridge.bridge.models import MediaKind
from chatbridge.bridge.store import MappingStore
from chatbridge.platforms.models import ChatEvent, OutgoingChatMessage, WorkspaceEvent
from chatbridge.platforms.protocol import ChatClient, WorkspaceAdapter

logger = logging.getLogger(__name__)

DEGRADED_MARKER = "_[Error processing an attachment]_"
DEFAULT_LARGE_FILE_THRESHOLD = 10 * 1024 * 1024


@dataclass
class DownloadedFile:
    """A workspace attachment held in memory until it is dispatched."""

    buffer: bytes
    filename: str
    mime_type: str
    kind: MediaKind

    @property
    def suffix(self) -> str:
        return os.path.splitext(self.filename)[1]


def chat_prefix(label: str, is_group: bool) -> str:
    """Sender prefix for messages relayed into the workspace."""
    if is_group:
        return f"*[{label}]*: "
    return f"*[DM] {label}*: "


def workspace_prefix(label: str) -> str:
    """Sender prefix for messages relayed into the chat side."""
    return f"*[{label}]*:\n"


def generic_caption(label: str, kind: MediaKind, filename: str) -> str:
    return f"{label} sent a {KIND_LABELS[kind]}: {filename}"


class RelayPipeline:
    """Forwards messages between a chat client and a workspace adapter.

    Features:
    - At-most-once processing per inbound event id (one DedupGuard per side)
    - Text-only fallback when media cannot be relayed to the workspace
    - Contact labels override chat sender names
    """

    def __init__(
        self,
        store: MappingStore,
        chat: ChatClient,
        workspace: WorkspaceAdapter,
        chat_dedup: Optional[DedupGuard] = None,
        workspace_dedup: Optional[DedupGuard] = None,
        large_file_threshold: int = DEFAULT_LARGE_FILE_THRESHOLD,
        temp_dir: Optional[Path] = None,
    ):
        self._store = store
        self._chat = chat
        self._workspace = workspace
        self._chat_dedup = chat_dedup or DedupGuard(name="chat event")
        self._workspace_dedup = workspace_dedup or DedupGuard(name="workspace event")
        self._large_file_threshold = large_file_threshold
        self._temp_dir = temp_dir

    # ------------------------------------------------------------------
    # Chat -> workspace
    # ------------------------------------------------------------------

    async def relay_chat_event(self, event: ChatEvent) -> None:
        """Relay one chat message into its mapped workspace channel."""
        if not self._chat_dedup.check_and_mark(event.event_id):
            logger.info(f"Skipping duplicate chat event {event}")
            return

        if event.from_me:
            return

        if event.is_group:
            recent_name = event.conversation_name
        else:
            recent_name = event.sender_name or event.conversation_name
        await self._store.touch_recent(event.conversation_id, recent_name)

        envelope = event.envelope
        if envelope.is_album:
            logger.debug(f"Skipping album container {event}")
            return

        try:
            mapping = await self._store.require_by_source(event.conversation_id)
        except MappingNotFound:
            logger.info(
                f"Chat {event.conversation_id} has no mapped channel. Use /map to add one."
            )
            return

        channel_id = mapping.destination_channel_id
        label = await self._sender_label(event)
        prefix = chat_prefix(label, event.is_group)
        text = envelope.text or ""

        try:
            media = await classify(envelope, self._chat.download_media)
        except MediaDownloadFailed as e:
            logger.warning(f"Media download failed for {event}: {e}")
            await self._post_degraded(channel_id, prefix, text)
            return

        if media is None:
            if text:
                await self._workspace.post_message(channel_id, prefix + text)
            return

        logger.info(f"Relaying {media.media_kind.value} from {event.conversation_id} to {channel_id}")
        try:
            await self._workspace.upload_file(
                channel_id,
                media.buffer,
                media.filename,
                initial_comment=prefix + (media.caption or text),
            )
        except MediaUploadFailed as e:
            logger.warning(f"Media upload failed for {event}: {e}")
            await self._post_degraded(channel_id, prefix, text)

    async def _post_degraded(self, channel_id: str, prefix: str, text: str) -> None:
        fallback = f"{prefix}{text}\n\n{DEGRADED_MARKER}"
        try:
            await self._workspace.post_message(channel_id, fallback)
        except Exception as e:
            logger.error(f"Fallback text delivery to {channel_id} failed, dropping message: {e}")

    async def _sender_label(self, event: ChatEvent) -> str:
        sender_id = event.sender_id or event.conversation_id
        override = await self._store.get_contact_label(sender_id)
        if override:
            return override
        if event.sender_name:
            return event.sender_name
        return sender_id.split("@", 1)[0]

    # ------------------------------------------------------------------
    # Workspace -> chat
    # ------------------------------------------------------------------

    async def relay_workspace_event(self, event: WorkspaceEvent) -> None:
        """Relay one workspace message into its mapped chat conversation."""
        if event.retry_num:
            logger.info(
                f"Workspace retry {event.retry_num} ({event.retry_reason or 'unknown reason'}) "
                f"for {event}"
            )

        if not self._workspace_dedup.check_and_mark(event.event_id):
            logger.info(f"Skipping duplicate workspace event {event}")
            return

        mapping = await self._store.get_by_channel(event.channel_id)
        if mapping is None:
            logger.debug(f"Channel {event.channel_id} is not mapped, ignoring message")
            return

        conversation_id = mapping.source_conversation_id
        sender = await self._workspace.get_user_display_name(event.user_id)
        prefix = workspace_prefix(sender)
        text = event.text or ""

        downloads = await self._download_all(event)

        if not downloads:
            if text:
                await self._chat.send_message(conversation_id, OutgoingChatMessage(text=prefix + text))
            elif event.files:
                logger.warning(f"No attachment of {event} could be downloaded, nothing relayed")
            return

        for index, download in enumerate(downloads):
            try:
                await self._dispatch_file(conversation_id, index, download, sender, prefix, text)
            except Exception as e:
                logger.error(
                    f"Failed to relay {download.filename} to {conversation_id}: {e}",
                    exc_info=True,
                )

    async def _download_all(self, event: WorkspaceEvent) -> list[DownloadedFile]:
        downloads: list[DownloadedFile] = []
        for file in event.files:
            try:
                buffer = await self._workspace.download_file(file.url)
            except MediaDownloadFailed as e:
                logger.error(f"Skipping attachment {file.name}: {e}")
                continue
            downloads.append(
                DownloadedFile(
                    buffer=buffer,
                    filename=file.name,
                    mime_type=file.mime_type,
                    kind=file_kind(file.name, file.mime_type),
                )
            )
        return downloads

    async def _dispatch_file(
        self,
        conversation_id: str,
        index: int,
        download: DownloadedFile,
        sender: str,
        prefix: str,
        text: str,
    ) -> None:
        kind = download.kind
        generic = generic_caption(sender, kind, download.filename)
        caption = prefix + text if index == 0 and text else generic

        if len(download.buffer) >= self._large_file_threshold:
            kind = MediaKind.DOCUMENT

        with temp_media_file(download.buffer, download.suffix, self._temp_dir) as path:
            buffer = path.read_bytes()

            if kind == MediaKind.AUDIO:
                if index == 0 and text:
                    await self._chat.send_message(
                        conversation_id, OutgoingChatMessage(text=prefix + text)
                    )
                elif not text:
                    await self._chat.send_message(conversation_id, OutgoingChatMessage(text=generic))
                message = OutgoingChatMessage(
                    media_kind=MediaKind.AUDIO,
                    buffer=buffer,
                    mime_type=download.mime_type,
                    filename=download.filename,
                )
            elif kind in (MediaKind.IMAGE, MediaKind.VIDEO):
                message = OutgoingChatMessage(
                    media_kind=kind,
                    buffer=buffer,
                    mime_type=download.mime_type,
                    filename=download.filename,
                    caption=caption,
                )
            else:
                message = OutgoingChatMessage(
                    media_kind=MediaKind.DOCUMENT,
                    buffer=buffer,
                    mime_type=download.mime_type or "application/octet-stream",
                    filename=download.filename,
                    caption=caption,
                )

            logger.info(f"Relaying {kind.value} {download.filename} to {conversation_id}")
            await self._chat.send_message(conversation_id, message)
