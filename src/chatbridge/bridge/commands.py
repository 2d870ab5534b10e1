"""Operator slash commands."""

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Optional

from chatbridge.bridge.dedup import DedupGuard
from chatbridge.bridge.exceptions import (
    BridgeError,
    ChannelCreateFailed,
    ProvisioningUsageError,
    StoreUnavailable,
)
from chatbridge.bridge.models import ConversationMapping, RecentConversation
from chatbridge.bridge.provisioning import ChannelProvisioner, SelectionCursor
from chatbridge.bridge.store import MappingStore
from chatbridge.platforms.models import SlashCommand
from chatbridge.platforms.protocol import ChatClient

logger = logging.getLogger(__name__)

CHANNEL_REF = re.compile(r"^<#(\w+)(?:\|([^>]*))?>$")
PHONE_NUMBER = re.compile(r"^\d+$")

MAP_USAGE = "Usage: `/map <chat_id> <#channel>`\n*Example*: `/map 12345@g.us #general`"
UNMAP_USAGE = "Usage: `/unmap <chat_id>`"
CONTACTS_NEW_USAGE = (
    "Usage: `/contacts new <phone_number> <full_name> - <role>`\n"
    "Example: `/contacts new 573001234567 Juan Perez - Client`"
)
CONTACTS_EDIT_USAGE = (
    "Usage: `/contacts edit <phone_number> <new_full_name> - <new_role>`\n"
    "Example: `/contacts edit 573001234567 Juan Perez - VIP Client`"
)
CONTACTS_HELP = (
    "Unknown `/contacts` subcommand. Use `new`, `view` or `edit`.\nExamples:\n"
    "`/contacts new 573001234567 Juan Perez - Client`\n"
    "`/contacts view`\n"
    "`/contacts edit 573001234567 Juan Perez - VIP Client`"
)


def parse_channel_ref(ref: str) -> tuple[str, str]:
    """Split ``<#C123|name>`` into ``("C123", "name")``; bare ids pass through."""
    match = CHANNEL_REF.match(ref)
    if match:
        return match.group(1), match.group(2) or ""
    return ref.lstrip("#"), ""


def parse_contact_args(args: list[str]) -> Optional[tuple[str, str, str]]:
    """Parse ``<phone> <name> - <role>``.

    Returns:
        (phone, name, role), or None if any part is missing
    """
    if len(args) < 2:
        return None
    phone = args[0]
    name, _, role = " ".join(args[1:]).partition(" - ")
    name, role = name.strip(), role.strip()
    if not phone or not name or not role:
        return None
    return phone, name, role


class CommandHandler:
    """Executes operator commands and always answers with text.

    Commands are deduplicated by trigger id; a duplicate yields None and
    must not be answered again.
    """

    def __init__(
        self,
        store: MappingStore,
        chat: ChatClient,
        provisioner: ChannelProvisioner,
        cursor: SelectionCursor,
        dedup: Optional[DedupGuard] = None,
        view_limit: int = 5,
        contact_id_suffix: str = "@s.whatsapp.net",
    ):
        self._store = store
        self._chat = chat
        self._provisioner = provisioner
        self._cursor = cursor
        self._dedup = dedup or DedupGuard(name="command trigger")
        self._view_limit = view_limit
        self._contact_id_suffix = contact_id_suffix

        self._handlers: dict[str, Callable[[list[str]], Awaitable[str]]] = {
            "/status": self._status,
            "/map": self._map,
            "/unmap": self._unmap,
            "/listmaps": self._listmaps,
            "/view": self._view,
            "/createchannel": self._createchannel,
            "/contacts": self._contacts,
        }

    @property
    def commands(self) -> list[str]:
        return list(self._handlers)

    async def handle(self, command: SlashCommand) -> Optional[str]:
        """Run a slash command.

        Returns:
            The response text, or None for a duplicate delivery
        """
        if not self._dedup.check_and_mark(command.trigger_id):
            logger.info(f"Command with trigger_id {command.trigger_id} already processed, ignoring")
            return None

        logger.info(f"Command received: {command.command} {command.text}")

        handler = self._handlers.get(command.command.lower())
        if handler is None:
            return f'Unknown command "{command.command}".'

        args = command.text.split()
        try:
            return await handler(args)
        except StoreUnavailable as e:
            logger.error(f"Store unavailable while running {command.command}: {e}")
            return "The bridge store is unavailable right now. Check the logs."
        except BridgeError as e:
            logger.error(f"Command {command.command} failed: {e}")
            return f"Error: {e}"
        except Exception as e:
            logger.error(f"Unexpected error running {command.command}: {e}", exc_info=True)
            return "There was an internal error processing your command."

    async def _status(self, args: list[str]) -> str:
        state = "🟢 Connected" if self._chat.is_connected() else "🔴 Disconnected"
        mappings = await self._store.list_all()
        return (
            "*Bridge status*:\n"
            f"- *Chat connection*: {state}\n"
            f"- *Active conversations (mapped)*: {len(mappings)}"
        )

    async def _map(self, args: list[str]) -> str:
        if len(args) < 2:
            return MAP_USAGE

        source_id = args[0]
        channel_id, channel_name = parse_channel_ref(args[1])
        if not source_id or not channel_id:
            return MAP_USAGE

        await self._store.put(
            source_id,
            ConversationMapping(
                source_conversation_id=source_id,
                destination_channel_id=channel_id,
                destination_channel_name=channel_name,
            ),
        )
        return f"✅ Mapping added: chat `{source_id}` now relays to <#{channel_id}>."

    async def _unmap(self, args: list[str]) -> str:
        if not args:
            return UNMAP_USAGE

        source_id = args[0]
        removed = await self._store.remove(source_id)
        if removed is None:
            return f"No mapping found for chat `{source_id}`."
        return f"🗑️ Mapping for chat `{source_id}` removed."

    async def _listmaps(self, args: list[str]) -> str:
        mappings = await self._store.list_all()
        if not mappings:
            return "No mappings configured. Use `/map` to add one."

        lines = ["*Active mappings:*"]
        for mapping in mappings:
            lines.append(
                f"- *Chat:* `{mapping.source_conversation_id}` -> "
                f"*Slack:* <#{mapping.destination_channel_id}>"
            )
        return "\n".join(lines)

    async def _view(self, args: list[str]) -> str:
        mapped = {m.source_conversation_id for m in await self._store.list_all()}
        unmapped = [r for r in await self._store.list_recent() if r.id not in mapped]

        if not unmapped:
            self._cursor.clear()
            return "No recent unmapped chats."

        shown = unmapped[: self._view_limit]
        self._cursor.set(shown)

        lines = [f"Recent unmapped chats (newest {len(shown)}):"]
        for index, entry in enumerate(shown):
            lines.append(f"{index}. {self._describe(entry)}")
        lines.append("")
        lines.append("To create and link a channel, use `/createchannel <number>` (e.g. `/createchannel 0`).")
        return "\n".join(lines)

    @staticmethod
    def _describe(entry: RecentConversation) -> str:
        name = entry.display_name or f"Chat {entry.short_id}"
        seen = entry.last_seen_at.strftime("%Y-%m-%d %H:%M UTC")
        return f"{name} (ID: {entry.short_id}, seen: {seen})"

    async def _createchannel(self, args: list[str]) -> str:
        try:
            index = int(args[0]) if args else -1
        except ValueError:
            index = -1

        try:
            result = await self._provisioner.provision(index)
        except ProvisioningUsageError as e:
            return str(e)
        except ChannelCreateFailed as e:
            logger.error(f"Channel creation failed: {e}")
            if e.error_code == "restricted_action":
                return (
                    "Error: the bot is not allowed to create public channels. "
                    "Check the bot's permissions in Slack."
                )
            if e.error_code == "name_taken":
                return (
                    "Could not create the Slack channel after several attempts. "
                    "Try again later or create the channel manually."
                )
            return f"There was an error creating the Slack channel: {e.error_code or e}"

        mapping = result.mapping
        short_id = mapping.source_conversation_id.split("@", 1)[0]
        if result.already_mapped:
            return (
                f"This chat (ID: {short_id}) is already mapped to "
                f"<#{mapping.destination_channel_id}>."
            )

        response = (
            f"Channel <#{mapping.destination_channel_id}> created and linked to chat "
            f'"{mapping.source_conversation_name}" (ID: {short_id})!'
        )
        for warning in result.warnings:
            response += f"\n⚠️ {warning}"
        return response

    async def _contacts(self, args: list[str]) -> str:
        subcommand = args[0].lower() if args else ""

        if subcommand == "view":
            contacts = await self._store.list_contacts()
            if not contacts:
                return "No saved contacts. Use `/contacts new` to add one."
            lines = ["*Saved contacts:*"]
            for contact in contacts:
                lines.append(f"- *{contact.conversation_id}*: {contact.display_label}")
            return "\n".join(lines)

        if subcommand not in ("new", "edit"):
            return CONTACTS_HELP

        usage = CONTACTS_NEW_USAGE if subcommand == "new" else CONTACTS_EDIT_USAGE
        parsed = parse_contact_args(args[1:])
        if parsed is None:
            return usage

        phone, name, role = parsed
        if not PHONE_NUMBER.match(phone):
            return f"Error: the phone number must contain digits only.\n{usage}"

        contact_id = f"{phone}{self._contact_id_suffix}"
        label = f"{name} - {role}"

        if subcommand == "new":
            await self._store.add_contact(contact_id, label)
            return f"✅ Contact added: {name} ({role}) with number {contact_id}."

        updated = await self._store.edit_contact(contact_id, label)
        if updated is None:
            return f"⚠️ No contact found with number {contact_id} to edit."
        return f"✅ Contact updated: {name} ({role}) for number {contact_id}."
