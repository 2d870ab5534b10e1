"""Unit tests for the bridge service."""

import asyncio
from unittest.mock import patch

import pytest

from chatbridge.bridge.models import ConversationMapping
from chatbridge.bridge.service import BridgeService, connection_message
from chatbridge.config.schema import BridgeSettings
from chatbridge.platforms.models import (
    ChatEnvelope,
    ChatEvent,
    ConnectionUpdate,
    SlashCommand,
    WorkspaceEvent,
)


def stream(*items):
    """Build a receive_events replacement yielding ``items`` once."""

    async def receive_events():
        for item in items:
            yield item

    return receive_events


@pytest.fixture
def service(chat_client, workspace, store, temp_dir):
    workspace.receive_events = stream()
    return BridgeService(
        chat_client,
        workspace,
        store,
        settings=BridgeSettings(),
        main_channel="C0MAIN",
        temp_dir=temp_dir,
    )


class TestConnectionMessage:
    def test_open(self):
        assert connection_message(ConnectionUpdate(connected=True)) == "🟢 Chat connection established."

    def test_closed_with_reason(self):
        message = connection_message(ConnectionUpdate(connected=False, reason="logged out"))

        assert message.startswith("🔴 Chat connection closed. Reason: logged out.")


class TestBridgeService:
    """Tests for BridgeService."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, service, chat_client, workspace):
        await service.start()

        assert service.is_running
        assert chat_client.is_running
        workspace.start.assert_awaited_once()

        await service.stop()

        assert not service.is_running
        assert not chat_client.is_running
        workspace.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_forever_relays_both_directions(self, service, chat_client, workspace, store):
        await store.put("G1", ConversationMapping(source_conversation_id="G1", destination_channel_id="C1"))
        chat_client.events = [
            ChatEvent(
                conversation_id="G1",
                event_id="m1",
                sender_name="Ana",
                is_group=True,
                envelope=ChatEnvelope(text="hello"),
            )
        ]
        workspace.receive_events = stream(
            WorkspaceEvent(channel_id="C1", user_id="U1", text="hi back", event_id="1.1")
        )

        await asyncio.wait_for(service.run_forever(), timeout=5)

        workspace.post_message.assert_any_await("C1", "*[Ana]*: hello")
        assert chat_client.sent[0][0] == "G1"
        assert chat_client.sent[0][1].text == "*[User]*:\nhi back"
        assert not service.is_running

    @pytest.mark.asyncio
    async def test_slash_command_is_answered(self, service, workspace):
        command = SlashCommand(command="/status", trigger_id="T1", channel_id="C0MAIN", user_id="U1")
        workspace.receive_events = stream(command, command)

        await asyncio.wait_for(service.run_forever(), timeout=5)

        workspace.respond.assert_awaited_once()
        assert "*Bridge status*" in workspace.respond.await_args.args[1]

    @pytest.mark.asyncio
    async def test_event_failure_does_not_stop_consumer(self, service, chat_client, workspace, store):
        await store.put("G1", ConversationMapping(source_conversation_id="G1", destination_channel_id="C1"))
        workspace.post_message.side_effect = [RuntimeError("slack down"), None]
        chat_client.events = [
            ChatEvent(conversation_id="G1", event_id=f"m{i}", sender_name="Ana", envelope=ChatEnvelope(text=str(i)))
            for i in range(2)
        ]

        await asyncio.wait_for(service.run_forever(), timeout=5)

        assert workspace.post_message.await_count == 2

    @pytest.mark.asyncio
    async def test_connection_changes_are_posted(self, service, chat_client, workspace):
        await service.start()

        await chat_client._notify_connection(ConnectionUpdate(connected=False, reason="timeout"))

        channel, text = workspace.post_message.await_args.args
        assert channel == "C0MAIN"
        assert "Reason: timeout" in text
        await service.stop()

    @pytest.mark.asyncio
    async def test_connection_changes_without_main_channel(self, chat_client, workspace, store):
        service = BridgeService(chat_client, workspace, store)
        workspace.receive_events = stream()
        await service.start()

        await chat_client._notify_connection(ConnectionUpdate(connected=True))

        workspace.post_message.assert_not_awaited()
        await service.stop()

    @pytest.mark.asyncio
    async def test_cleanup_loop_runs_periodically(self, chat_client, workspace, store, temp_dir):
        service = BridgeService(chat_client, workspace, store, temp_dir=temp_dir, cleanup_interval=0.01)
        workspace.receive_events = stream()

        with patch("chatbridge.bridge.service.cleanup_stale_temp_files", return_value=0) as cleanup:
            await service.start()
            await asyncio.sleep(0.1)
            await service.stop()

        assert cleanup.call_count >= 1
        cleanup.assert_called_with(3600, temp_dir)
