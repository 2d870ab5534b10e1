"""Slack workspace adapter using Socket Mode."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Optional, Union

import aiohttp
import httpx
from slack_sdk.errors import SlackApiError
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.webhook.async_client import AsyncWebhookClient

from chatbridge.bridge.exceptions import (
    ChannelCreateFailed,
    ChannelNameCollision,
    InviteFailed,
    MediaDownloadFailed,
    MediaUploadFailed,
    SelfJoinFailed,
)
from chatbridge.platforms.models import (
    ChannelInfo,
    SlashCommand,
    WorkspaceEvent,
    WorkspaceFile,
)
from chatbridge.platforms.protocol import WorkspaceAdapter

logger = logging.getLogger(__name__)

RELAYED_SUBTYPES = frozenset({"file_share", "thread_broadcast"})

# Raised by AsyncWebClient when the request never gets a Slack response
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


def _slack_error_code(error: SlackApiError) -> str:
    try:
        return error.response.get("error") or "unknown_error"
    except AttributeError:
        return "unknown_error"


def should_relay(event: dict[str, Any], bot_id: Optional[str]) -> bool:
    """Decide whether a Slack message event is a human message worth relaying.

    Drops join notices, anything posted by a bot (ours included), thread
    replies that were not broadcast to the channel, edits and other
    subtypes, and events carrying neither text nor files.
    """
    subtype = event.get("subtype")

    if subtype == "channel_join":
        return False
    if bot_id and event.get("bot_id") == bot_id:
        return False
    if subtype == "bot_message":
        return False

    thread_ts = event.get("thread_ts")
    broadcast = event.get("reply_broadcast") or subtype == "thread_broadcast"
    if thread_ts and thread_ts != event.get("ts") and not broadcast:
        return False

    if subtype and subtype not in RELAYED_SUBTYPES:
        return False

    return bool(event.get("text") or event.get("files"))


def workspace_event_from_payload(
    event: dict[str, Any],
    retry_num: Optional[int] = None,
    retry_reason: Optional[str] = None,
) -> WorkspaceEvent:
    """Convert a Slack message event into a WorkspaceEvent."""
    files = [
        WorkspaceFile(
            url=f.get("url_private_download") or f.get("url_private") or "",
            name=f.get("name") or f.get("title") or "",
            mime_type=f.get("mimetype") or "",
            size=f.get("size"),
        )
        for f in event.get("files") or []
    ]
    return WorkspaceEvent(
        channel_id=event.get("channel", ""),
        user_id=event.get("user", ""),
        text=event.get("text") or None,
        files=files,
        event_id=event.get("ts", ""),
        retry_num=retry_num,
        retry_reason=retry_reason,
    )


class SlackAdapter(WorkspaceAdapter):
    """Slack workspace adapter using Socket Mode.

    Socket Mode uses a WebSocket connection, so no public endpoint is needed.

    Configuration:
        - bot_token: Bot User OAuth Token (starts with xoxb-)
        - app_token: App-Level Token for Socket Mode (starts with xapp-)
        - bot_id: Bot id whose own messages are ignored (detected when empty)
    """

    def __init__(
        self,
        bot_token: str,
        app_token: str,
        bot_id: Optional[str] = None,
        web_client: Optional[AsyncWebClient] = None,
    ):
        """Initialize Slack adapter.

        Args:
            bot_token: Bot User OAuth Token (xoxb-...)
            app_token: App-Level Token for Socket Mode (xapp-...)
            bot_id: Bot id to filter out (defaults to the authenticated bot)
            web_client: Pre-built web client, mainly for tests
        """
        super().__init__()

        self._bot_token = bot_token
        self._app_token = app_token
        self._bot_id = bot_id or None

        self._web_client: Optional[AsyncWebClient] = web_client
        self._socket_client: Optional[SocketModeClient] = None
        self._event_queue: asyncio.Queue[Union[WorkspaceEvent, SlashCommand]] = asyncio.Queue()
        self._bot_user_id: Optional[str] = None
        self._display_names: dict[str, str] = {}

    @property
    def bot_id(self) -> Optional[str]:
        return self._bot_id

    async def start(self) -> None:
        """Start the Slack adapter with Socket Mode."""
        if self._running:
            logger.warning("Slack adapter already running")
            return

        logger.info("Starting Slack adapter (Socket Mode)")

        if self._web_client is None:
            self._web_client = AsyncWebClient(token=self._bot_token)

        try:
            auth_response = await self._web_client.auth_test()
            self._bot_user_id = auth_response.get("user_id")
            if not self._bot_id:
                self._bot_id = auth_response.get("bot_id")
            logger.info(f"Slack bot authenticated as user ID: {self._bot_user_id}")
        except SlackApiError as e:
            logger.error(f"Failed to authenticate Slack bot: {e}")
            raise

        self._socket_client = SocketModeClient(
            app_token=self._app_token,
            web_client=self._web_client,
        )
        self._socket_client.socket_mode_request_listeners.append(self._handle_socket_event)
        await self._socket_client.connect()

        self._running = True
        logger.info("Slack adapter started in Socket Mode")

    async def stop(self) -> None:
        """Stop the Slack adapter."""
        if not self._running:
            logger.warning("Slack adapter not running")
            return

        logger.info("Stopping Slack adapter")

        if self._socket_client:
            await self._socket_client.close()

        self._running = False
        logger.info("Slack adapter stopped")

    async def _handle_socket_event(
        self, client: SocketModeClient, req: SocketModeRequest
    ) -> None:
        """Acknowledge a Socket Mode request, then queue what the bridge needs."""
        response = SocketModeResponse(envelope_id=req.envelope_id)
        await client.send_socket_mode_response(response)

        if req.type == "events_api":
            event = req.payload.get("event", {})
            if event.get("type") != "message":
                return
            if not should_relay(event, self._bot_id):
                logger.debug(f"Ignoring Slack message (subtype={event.get('subtype')})")
                return
            await self._event_queue.put(
                workspace_event_from_payload(
                    event,
                    retry_num=req.retry_attempt,
                    retry_reason=req.retry_reason,
                )
            )

        elif req.type == "slash_commands":
            payload = req.payload
            await self._event_queue.put(
                SlashCommand(
                    command=payload.get("command", ""),
                    text=payload.get("text", ""),
                    trigger_id=payload.get("trigger_id", ""),
                    channel_id=payload.get("channel_id", ""),
                    user_id=payload.get("user_id", ""),
                    response_url=payload.get("response_url"),
                )
            )

    async def receive_events(self) -> AsyncIterator[Union[WorkspaceEvent, SlashCommand]]:
        """Receive channel messages and slash commands.

        Yields:
            WorkspaceEvent or SlashCommand objects as they arrive
        """
        while self._running:
            try:
                # Wait with timeout to allow checking _running
                item = await asyncio.wait_for(self._event_queue.get(), timeout=1.0)
                yield item
            except asyncio.TimeoutError:
                continue

    def _client(self) -> AsyncWebClient:
        if self._web_client is None:
            raise RuntimeError("Web client not initialized")
        return self._web_client

    async def post_message(self, channel_id: str, text: str) -> None:
        try:
            await self._client().chat_postMessage(channel=channel_id, text=text)
        except SlackApiError as e:
            logger.error(f"Failed to post Slack message to {channel_id}: {e}")
            raise

    async def upload_file(
        self,
        channel_id: str,
        buffer: bytes,
        filename: str,
        initial_comment: str = "",
    ) -> None:
        try:
            await self._client().files_upload_v2(
                channel=channel_id,
                file=buffer,
                filename=filename,
                initial_comment=initial_comment,
            )
        except SlackApiError as e:
            raise MediaUploadFailed(
                f"Slack rejected upload of {filename}: {_slack_error_code(e)}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise MediaUploadFailed(f"Upload of {filename} failed: {e!r}") from e

    async def download_file(self, url: str) -> bytes:
        headers = {"Authorization": f"Bearer {self._bot_token}"}
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=60.0) as client:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            raise MediaDownloadFailed(f"Failed to download {url}: {e}") from e

    async def respond(self, command: SlashCommand, text: str) -> None:
        if command.response_url:
            webhook = AsyncWebhookClient(command.response_url)
            response = await webhook.send(text=text)
            if response.status_code != 200:
                logger.warning(
                    f"Slash command response to {command.command} failed: "
                    f"{response.status_code} {response.body}"
                )
            return

        await self._client().chat_postEphemeral(
            channel=command.channel_id, user=command.user_id, text=text
        )

    async def get_user_display_name(self, user_id: str) -> str:
        if user_id in self._display_names:
            return self._display_names[user_id]

        try:
            response = await self._client().users_info(user=user_id)
        except SlackApiError as e:
            logger.warning(f"Failed to get user info for {user_id}: {e}")
            return user_id

        user = response.get("user") or {}
        profile = user.get("profile") or {}
        name = (
            profile.get("display_name")
            or user.get("real_name")
            or profile.get("real_name")
            or user.get("name")
            or user_id
        )
        self._display_names[user_id] = name
        return name

    async def create_channel(self, name: str) -> ChannelInfo:
        try:
            response = await self._client().conversations_create(name=name, is_private=False)
        except SlackApiError as e:
            code = _slack_error_code(e)
            if code == "name_taken":
                raise ChannelNameCollision(name) from e
            raise ChannelCreateFailed(
                f"Slack refused to create #{name}: {code}", error_code=code
            ) from e
        except TRANSPORT_ERRORS as e:
            raise ChannelCreateFailed(f"Could not reach Slack to create #{name}: {e!r}") from e

        channel = response["channel"]
        return ChannelInfo(id=channel["id"], name=channel.get("name", name))

    async def join_channel(self, channel_id: str) -> None:
        try:
            await self._client().conversations_join(channel=channel_id)
        except SlackApiError as e:
            raise SelfJoinFailed(
                f"Could not join {channel_id}: {_slack_error_code(e)}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise SelfJoinFailed(f"Could not join {channel_id}: {e!r}") from e

    async def list_usergroup_members(self, group_id: str) -> list[str]:
        try:
            response = await self._client().usergroups_users_list(usergroup=group_id)
        except SlackApiError as e:
            raise InviteFailed(
                f"Could not read user group {group_id}: {_slack_error_code(e)}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise InviteFailed(f"Could not read user group {group_id}: {e!r}") from e
        return list(response.get("users") or [])

    async def invite_to_channel(self, channel_id: str, user_ids: list[str]) -> None:
        if not user_ids:
            return
        try:
            await self._client().conversations_invite(
                channel=channel_id, users=",".join(user_ids)
            )
        except SlackApiError as e:
            raise InviteFailed(
                f"Could not invite users to {channel_id}: {_slack_error_code(e)}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise InviteFailed(f"Could not invite users to {channel_id}: {e!r}") from e

    async def health_check(self) -> bool:
        """Check if the Slack connection is healthy."""
        if not self._running or not self._web_client:
            return False

        try:
            await self._web_client.auth_test()
            return True
        except SlackApiError as e:
            logger.error(f"Slack health check failed: {e}")
            return False
