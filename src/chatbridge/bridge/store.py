"""Persistent mapping store.

A single JSON document holds the conversation mappings, the recent
conversation list and the contact labels. Every operation re-reads the
document and every mutation rewrites it whole, atomically.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from chatbridge.bridge.exceptions import MappingNotFound, StoreUnavailable
from chatbridge.bridge.models import (
    ContactOverride,
    ConversationMapping,
    RecentConversation,
    StoreDocument,
    utc_now,
)
from chatbridge.storage.paths import get_state_path

logger = logging.getLogger(__name__)


class MappingStore:
    """Owner of the persisted bridge document.

    Features:
    - Bidirectional lookup: by source conversation id or by channel id
    - Bounded, recency-ordered list of recently seen conversations
    - Contact labels used when rendering sender names

    Mutations hold an asyncio lock for the whole read-modify-write, so
    two tasks touching the same key cannot interleave within a process.
    """

    def __init__(self, path: Optional[Path] = None, recent_limit: int = 50):
        """Initialize the store and validate the existing document.

        Args:
            path: Document path (defaults to ~/.chatbridge/db.json)
            recent_limit: Maximum number of recent conversations kept

        Raises:
            StoreUnavailable: If an existing document cannot be read or parsed
        """
        self._path = path or get_state_path()
        self._recent_limit = recent_limit
        self._lock = asyncio.Lock()

        document = self._read_document()
        logger.info(
            f"Loaded bridge store from {self._path} "
            f"({len(document.mappings)} mappings, {len(document.contact_overrides)} contacts)"
        )

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    async def get(self, conversation_id: str) -> Optional[ConversationMapping]:
        """Find the mapping for a source conversation id or a channel id."""
        document = await self._load()
        return self._lookup(document, conversation_id)

    async def get_by_source(self, source_id: str) -> Optional[ConversationMapping]:
        document = await self._load()
        return document.mappings.get(source_id)

    async def require_by_source(self, source_id: str) -> ConversationMapping:
        """Like get_by_source, but raises MappingNotFound for unmapped sources."""
        mapping = await self.get_by_source(source_id)
        if mapping is None:
            raise MappingNotFound(source_id)
        return mapping

    async def get_by_channel(self, channel_id: str) -> Optional[ConversationMapping]:
        document = await self._load()
        for mapping in document.mappings.values():
            if mapping.destination_channel_id == channel_id:
                return mapping
        return None

    async def put(self, source_id: str, mapping: ConversationMapping) -> ConversationMapping:
        """Create or replace the mapping of a source conversation.

        Any other source bound to the same channel is unbound, so a
        channel always resolves to exactly one source.
        """
        mapping = mapping.model_copy(update={"source_conversation_id": source_id})

        def mutate(document: StoreDocument) -> None:
            for other_id, other in list(document.mappings.items()):
                if other_id != source_id and other.destination_channel_id == mapping.destination_channel_id:
                    logger.info(f"Unbinding {other_id} from {other.destination_channel_id}")
                    del document.mappings[other_id]
            document.mappings[source_id] = mapping

        await self._mutate(mutate)
        logger.info(f"Saved mapping: {mapping}")
        return mapping

    async def remove(self, source_id: str) -> Optional[ConversationMapping]:
        """Delete the mapping of a source conversation.

        Returns:
            The removed mapping, or None if there was none
        """
        removed: list[ConversationMapping] = []

        def mutate(document: StoreDocument) -> bool:
            mapping = document.mappings.pop(source_id, None)
            if mapping is None:
                return False
            removed.append(mapping)
            return True

        await self._mutate(mutate)
        if removed:
            logger.info(f"Removed mapping: {removed[0]}")
            return removed[0]
        return None

    async def list_all(self) -> list[ConversationMapping]:
        document = await self._load()
        return list(document.mappings.values())

    # ------------------------------------------------------------------
    # Recent conversations
    # ------------------------------------------------------------------

    async def touch_recent(self, conversation_id: str, display_name: Optional[str] = None) -> None:
        """Move a conversation to the front of the recent list."""

        def mutate(document: StoreDocument) -> None:
            previous = next(
                (r for r in document.recent_conversations if r.id == conversation_id), None
            )
            name = display_name or (previous.display_name if previous else "") or conversation_id
            entries = [r for r in document.recent_conversations if r.id != conversation_id]
            entries.insert(
                0,
                RecentConversation(id=conversation_id, display_name=name, last_seen_at=utc_now()),
            )
            document.recent_conversations = entries[: self._recent_limit]

        await self._mutate(mutate)

    async def list_recent(self) -> list[RecentConversation]:
        """Recent conversations, most recently seen first."""
        document = await self._load()
        return sorted(document.recent_conversations, key=lambda r: r.last_seen_at, reverse=True)

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def get_contact_label(self, conversation_id: str) -> Optional[str]:
        document = await self._load()
        return document.contact_overrides.get(conversation_id)

    async def add_contact(self, conversation_id: str, display_label: str) -> ContactOverride:
        """Create or overwrite a contact label."""
        label = display_label.strip()

        def mutate(document: StoreDocument) -> None:
            document.contact_overrides[conversation_id] = label

        await self._mutate(mutate)
        logger.info(f"Saved contact label for {conversation_id}")
        return ContactOverride(conversation_id=conversation_id, display_label=label)

    async def edit_contact(self, conversation_id: str, display_label: str) -> Optional[ContactOverride]:
        """Replace an existing contact label.

        Returns:
            The updated contact, or None if no label exists for the id
        """
        label = display_label.strip()

        def mutate(document: StoreDocument) -> bool:
            if conversation_id not in document.contact_overrides:
                return False
            document.contact_overrides[conversation_id] = label
            return True

        if not await self._mutate(mutate):
            return None
        logger.info(f"Updated contact label for {conversation_id}")
        return ContactOverride(conversation_id=conversation_id, display_label=label)

    async def list_contacts(self) -> list[ContactOverride]:
        document = await self._load()
        return [
            ContactOverride(conversation_id=key, display_label=label)
            for key, label in document.contact_overrides.items()
        ]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def _lookup(document: StoreDocument, conversation_id: str) -> Optional[ConversationMapping]:
        mapping = document.mappings.get(conversation_id)
        if mapping is not None:
            return mapping
        for candidate in document.mappings.values():
            if candidate.involves(conversation_id):
                return candidate
        return None

    async def _load(self) -> StoreDocument:
        return await asyncio.to_thread(self._read_document)

    async def _mutate(self, mutate: Callable[[StoreDocument], Optional[bool]]) -> bool:
        """Apply a mutation to a fresh copy of the document and persist it.

        The mutation may return False to signal that nothing changed, in
        which case nothing is written.
        """
        async with self._lock:
            document = await self._load()
            changed = mutate(document)
            if changed is False:
                return False
            await asyncio.to_thread(self._write_document, document)
            return True

    def _read_document(self) -> StoreDocument:
        if not self._path.exists():
            logger.debug(f"No existing store document: {self._path}")
            return StoreDocument()

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreUnavailable(f"Cannot read store document: {e}", path=str(self._path)) from e

        if not raw.strip():
            return StoreDocument()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreUnavailable(f"Store document is not valid JSON: {e}", path=str(self._path)) from e

        if not isinstance(data, dict):
            raise StoreUnavailable("Store document must be a JSON object", path=str(self._path))

        try:
            return StoreDocument.model_validate(data)
        except ValidationError as e:
            raise StoreUnavailable(f"Store document is malformed: {e}", path=str(self._path)) from e

    def _write_document(self, document: StoreDocument) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False)

            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreUnavailable(f"Cannot write store document: {e}", path=str(self._path)) from e
