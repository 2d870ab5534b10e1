"""Channel provisioning: create a workspace channel for a chat conversation."""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Optional

from chatbridge.bridge.exceptions import (
    ChannelCreateFailed,
    ChannelNameCollision,
    InviteFailed,
    ProvisioningUsageError,
    SelfJoinFailed,
)
from chatbridge.bridge.models import ConversationMapping, RecentConversation
from chatbridge.bridge.store import MappingStore
from chatbridge.platforms.models import ChannelInfo
from chatbridge.platforms.protocol import WorkspaceAdapter

logger = logging.getLogger(__name__)

CHANNEL_NAME_MAX_LENGTH = 21
MAX_CREATE_ATTEMPTS = 5

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9-]")


def sanitize_channel_name(
    name: str,
    max_length: int = CHANNEL_NAME_MAX_LENGTH,
    now_ms: Optional[int] = None,
) -> str:
    """Turn a display name into a valid channel name.

    Lower-cases, collapses whitespace runs into ``-`` and drops anything
    outside ``[a-z0-9-]``. Names longer than ``max_length`` are cut two
    characters shorter, leaving room for a ``-n`` suffix. An empty result
    becomes ``chat-<last five digits of the epoch millis>``.
    """
    sanitized = _DISALLOWED.sub("", _WHITESPACE.sub("-", name.lower()))

    if len(sanitized) > max_length:
        sanitized = sanitized[: max_length - 2]

    if not sanitized:
        millis = now_ms if now_ms is not None else int(time.time() * 1000)
        sanitized = f"chat-{str(millis)[-5:]}"

    return sanitized


def suffixed_channel_name(base: str, attempt: int, max_length: int = CHANNEL_NAME_MAX_LENGTH) -> str:
    """Name for the n-th retry after a collision (``base-n``), within the length limit."""
    suffix = f"-{attempt}"
    return f"{base[: max_length - len(suffix)]}{suffix}"


class SelectionCursor:
    """The unmapped conversations shown by the last ``/view``.

    Valid until provisioning succeeds or a new listing replaces it.
    """

    def __init__(self) -> None:
        self._entries: list[RecentConversation] = []

    def set(self, entries: list[RecentConversation]) -> None:
        self._entries = list(entries)

    def clear(self) -> None:
        self._entries = []

    def get(self, index: int) -> Optional[RecentConversation]:
        if 0 <= index < len(self._entries):
            return self._entries[index]
        return None

    @property
    def entries(self) -> list[RecentConversation]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ProvisioningResult:
    """Outcome of a provisioning request."""

    mapping: ConversationMapping
    already_mapped: bool = False
    joined: bool = False
    invited: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def channel_id(self) -> str:
        return self.mapping.destination_channel_id


class ChannelProvisioner:
    """Creates a channel for a selected conversation and binds the pair.

    The mapping is persisted right after the channel exists; joining the
    channel and inviting the reviewer group are best effort.
    """

    def __init__(
        self,
        store: MappingStore,
        workspace: WorkspaceAdapter,
        cursor: SelectionCursor,
        reviewer_group_id: Optional[str] = None,
        max_length: int = CHANNEL_NAME_MAX_LENGTH,
        max_attempts: int = MAX_CREATE_ATTEMPTS,
    ):
        self._store = store
        self._workspace = workspace
        self._cursor = cursor
        self._reviewer_group_id = reviewer_group_id or None
        self._max_length = max_length
        self._max_attempts = max_attempts

    async def provision(self, index: int) -> ProvisioningResult:
        """Provision a channel for the ``index``-th entry of the cursor.

        Raises:
            ProvisioningUsageError: If the index is outside the listing
            ChannelCreateFailed: If the channel cannot be created
        """
        selected = self._cursor.get(index)
        if selected is None:
            raise ProvisioningUsageError(index, len(self._cursor))

        existing = await self._store.get_by_source(selected.id)
        if existing is not None:
            logger.info(f"{selected.id} is already mapped to {existing.destination_channel_id}")
            return ProvisioningResult(mapping=existing, already_mapped=True)

        source_name = selected.display_name or f"Chat {selected.short_id}"
        channel = await self._create_channel(sanitize_channel_name(source_name, self._max_length))

        mapping = await self._store.put(
            selected.id,
            ConversationMapping(
                source_conversation_id=selected.id,
                destination_channel_id=channel.id,
                destination_channel_name=channel.name,
                source_conversation_name=source_name,
            ),
        )
        result = ProvisioningResult(mapping=mapping)

        try:
            await self._workspace.join_channel(channel.id)
            result.joined = True
        except SelfJoinFailed as e:
            logger.warning(f"Could not join #{channel.name}: {e}")
            result.warnings.append(str(e))

        await self._invite_reviewers(channel, result)

        self._cursor.clear()
        logger.info(f"Provisioned #{channel.name} ({channel.id}) for {selected.id}")
        return result

    async def _create_channel(self, base_name: str) -> ChannelInfo:
        name = base_name
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._workspace.create_channel(name)
            except ChannelNameCollision:
                if attempt == self._max_attempts:
                    break
                next_name = suffixed_channel_name(base_name, attempt, self._max_length)
                logger.info(f"Channel name {name} is taken, trying {next_name}")
                name = next_name

        raise ChannelCreateFailed(
            f"Could not find a free channel name for '{base_name}' "
            f"after {self._max_attempts} attempts",
            error_code="name_taken",
        )

    async def _invite_reviewers(self, channel: ChannelInfo, result: ProvisioningResult) -> None:
        if not self._reviewer_group_id:
            logger.info("No reviewer group configured, skipping invites")
            return

        try:
            members = await self._workspace.list_usergroup_members(self._reviewer_group_id)
            if not members:
                logger.warning(f"Reviewer group {self._reviewer_group_id} has no members")
                return
            await self._workspace.invite_to_channel(channel.id, members)
            result.invited = members
            logger.info(f"Invited {len(members)} reviewer(s) to #{channel.name}")
        except InviteFailed as e:
            logger.error(f"Failed to invite reviewers to #{channel.name}: {e}")
            result.warnings.append(str(e))
