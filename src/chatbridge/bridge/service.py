"""Bridge service: wires the engine together and runs the event loops."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from chatbridge.bridge.commands import CommandHandler
from chatbridge.bridge.dedup import DedupGuard
from chatbridge.bridge.media import cleanup_stale_temp_files
from chatbridge.bridge.provisioning import ChannelProvisioner, SelectionCursor
from chatbridge.bridge.relay import RelayPipeline
from chatbridge.bridge.store import MappingStore
from chatbridge.config.schema import BridgeSettings
from chatbridge.platforms.models import ConnectionUpdate, SlashCommand
from chatbridge.platforms.protocol import ChatClient, WorkspaceAdapter

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 3600.0


def connection_message(update: ConnectionUpdate) -> str:
    if update.connected:
        return "🟢 Chat connection established."
    reason = update.reason or "unknown"
    return (
        f"🔴 Chat connection closed. Reason: {reason}. "
        "The client will try to reconnect automatically."
    )


class BridgeService:
    """Runs the bridge between one chat client and one workspace.

    The service:
    1. Starts both platforms
    2. Consumes each platform's event stream in its own task, one event at a time
    3. Routes slash commands to the command handler
    4. Reports chat connection changes to the main workspace channel
    5. Periodically removes stale temp media files
    """

    def __init__(
        self,
        chat: ChatClient,
        workspace: WorkspaceAdapter,
        store: MappingStore,
        settings: Optional[BridgeSettings] = None,
        reviewer_group_id: Optional[str] = None,
        main_channel: Optional[str] = None,
        contact_id_suffix: str = "@s.whatsapp.net",
        temp_dir: Optional[Path] = None,
        cleanup_interval: float = CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        settings = settings or BridgeSettings()

        self._chat = chat
        self._workspace = workspace
        self._store = store
        self._settings = settings
        self._main_channel = main_channel or None
        self._temp_dir = temp_dir
        self._cleanup_interval = cleanup_interval

        self.cursor = SelectionCursor()
        self.chat_dedup = DedupGuard(settings.dedup_ttl_seconds, name="chat event")
        self.workspace_dedup = DedupGuard(settings.dedup_ttl_seconds, name="workspace event")
        self.command_dedup = DedupGuard(settings.dedup_ttl_seconds, name="command trigger")

        self.pipeline = RelayPipeline(
            store,
            chat,
            workspace,
            chat_dedup=self.chat_dedup,
            workspace_dedup=self.workspace_dedup,
            large_file_threshold=settings.large_file_threshold,
            temp_dir=temp_dir,
        )
        self.provisioner = ChannelProvisioner(
            store,
            workspace,
            self.cursor,
            reviewer_group_id=reviewer_group_id,
            max_length=settings.channel_name_max_length,
            max_attempts=settings.channel_create_attempts,
        )
        self.commands = CommandHandler(
            store,
            chat,
            self.provisioner,
            self.cursor,
            dedup=self.command_dedup,
            view_limit=settings.view_limit,
            contact_id_suffix=contact_id_suffix,
        )

        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start both platforms and the consumer tasks."""
        if self._running:
            logger.warning("Bridge is already running")
            return

        logger.info("Starting bridge")
        self._chat.set_connection_listener(self._on_connection_update)

        await self._workspace.start()
        await self._chat.start()
        self._running = True

        self._spawn(self._consume_chat(), "consume-chat")
        self._spawn(self._consume_workspace(), "consume-workspace")
        self._spawn(self._cleanup_loop(), "temp-cleanup")
        logger.info("Bridge started")

    async def stop(self) -> None:
        """Cancel the consumer tasks and stop both platforms."""
        if not self._running:
            return

        logger.info("Stopping bridge")
        self._running = False

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        for name, platform in (("chat", self._chat), ("workspace", self._workspace)):
            try:
                await platform.stop()
            except Exception as e:
                logger.error(f"Failed to stop {name} platform: {e}")

        logger.info("Bridge stopped")

    async def run_forever(self) -> None:
        """Run until cancelled or until both event streams end."""
        await self.start()
        try:
            consumers = [t for t in self._tasks if t.get_name().startswith("consume-")]
            await asyncio.gather(*consumers)
        finally:
            await self.stop()

    def _spawn(self, coro, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _consume_chat(self) -> None:
        logger.info("Listening for chat events")
        try:
            async for event in self._chat.receive_events():
                try:
                    await self.pipeline.relay_chat_event(event)
                except Exception as e:
                    logger.error(f"Error relaying {event}: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Stopped listening for chat events")
            raise

    async def _consume_workspace(self) -> None:
        logger.info("Listening for workspace events")
        try:
            async for item in self._workspace.receive_events():
                try:
                    if isinstance(item, SlashCommand):
                        await self._handle_command(item)
                    else:
                        await self.pipeline.relay_workspace_event(item)
                except Exception as e:
                    logger.error(f"Error handling {item}: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Stopped listening for workspace events")
            raise

    async def _handle_command(self, command: SlashCommand) -> None:
        response = await self.commands.handle(command)
        if response is None:
            return
        await self._workspace.respond(command, response)

    async def _on_connection_update(self, update: ConnectionUpdate) -> None:
        logger.info(f"Chat connection {'open' if update.connected else 'closed'}")
        if not self._main_channel:
            return
        try:
            await self._workspace.post_message(self._main_channel, connection_message(update))
        except Exception as e:
            logger.error(f"Failed to post connection notification: {e}")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._cleanup_interval)
            try:
                await asyncio.to_thread(
                    cleanup_stale_temp_files,
                    self._settings.temp_file_max_age_seconds,
                    self._temp_dir,
                )
            except Exception as e:
                logger.error(f"Temp media cleanup failed: {e}")
