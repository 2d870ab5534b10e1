"""Unit tests for platform models and protocol."""

import pytest

from chatbridge.bridge.models import MediaKind
from chatbridge.platforms.models import (
    ChatEnvelope,
    ChatEvent,
    ConnectionUpdate,
    MediaContainer,
    OutgoingChatMessage,
    SlashCommand,
    WorkspaceEvent,
    WorkspaceFile,
)
from chatbridge.platforms.protocol import ChatClient, WorkspaceAdapter


class TestChatEnvelope:
    """Tests for ChatEnvelope model."""

    def test_text_only(self):
        """Test an envelope without media."""
        envelope = ChatEnvelope(text="hello")

        assert envelope.text == "hello"
        assert envelope.has_media() is False
        assert envelope.is_album is False

    def test_with_media(self):
        """Test an envelope carrying an image."""
        envelope = ChatEnvelope(image=MediaContainer(mimetype="image/png", caption="pic"))

        assert envelope.has_media() is True
        assert envelope.image.caption == "pic"


class TestChatEvent:
    """Tests for ChatEvent model."""

    def test_defaults(self):
        """Test event defaults."""
        event = ChatEvent(conversation_id="G1@g.us", event_id="ABC")

        assert event.is_group is False
        assert event.from_me is False
        assert event.envelope.text is None
        assert event.timestamp is not None

    def test_string_representation(self):
        event = ChatEvent(conversation_id="G1@g.us", event_id="ABC")

        assert str(event) == "[chat] G1@g.us#ABC"


class TestOutgoingChatMessage:
    """Tests for OutgoingChatMessage model."""

    def test_text_message(self):
        message = OutgoingChatMessage(text="hi")

        assert message.is_media is False

    def test_media_message(self):
        message = OutgoingChatMessage(
            media_kind=MediaKind.IMAGE, buffer=b"x", mime_type="image/png", caption="c"
        )

        assert message.is_media is True
        assert message.media_kind == MediaKind.IMAGE


class TestWorkspaceModels:
    """Tests for workspace-side models."""

    def test_event_defaults(self):
        event = WorkspaceEvent(channel_id="C1", user_id="U1", event_id="1.2")

        assert event.files == []
        assert event.retry_num is None
        assert str(event) == "[workspace] C1#1.2"

    def test_event_with_files(self):
        event = WorkspaceEvent(
            channel_id="C1",
            user_id="U1",
            event_id="1.2",
            files=[WorkspaceFile(url="https://files/1", name="a.png", mime_type="image/png")],
        )

        assert event.files[0].name == "a.png"
        assert event.files[0].size is None

    def test_slash_command_defaults(self):
        command = SlashCommand(command="/status")

        assert command.text == ""
        assert command.response_url is None

    def test_connection_update(self):
        update = ConnectionUpdate(connected=False, reason="logged out")

        assert update.connected is False
        assert update.reason == "logged out"


class TestProtocol:
    """Tests for the abstract platform classes."""

    def test_chat_client_is_abstract(self):
        with pytest.raises(TypeError):
            ChatClient()

    def test_workspace_adapter_is_abstract(self):
        with pytest.raises(TypeError):
            WorkspaceAdapter()

    @pytest.mark.asyncio
    async def test_connection_listener(self, chat_client):
        """Test that connection updates reach the registered listener."""
        received = []

        async def listener(update):
            received.append(update)

        chat_client.set_connection_listener(listener)
        await chat_client._notify_connection(ConnectionUpdate(connected=True))

        assert received == [ConnectionUpdate(connected=True)]

    @pytest.mark.asyncio
    async def test_no_listener(self, chat_client):
        await chat_client._notify_connection(ConnectionUpdate(connected=True))
