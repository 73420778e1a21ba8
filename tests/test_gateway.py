"""Tests for gateways and outbound dispatch."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from PocketAgent.bus.events import OutboundMessage
from PocketAgent.bus.queue import MessageBus
from PocketAgent.gateway.adapters.lark_adapter import LarkGateway, event_fields, parse_text_content
from PocketAgent.gateway.adapters.telegram_adapter import split_message
from PocketAgent.gateway.base import Gateway, GatewayStatus
from PocketAgent.gateway.registry import GatewayRegistry


class RecordingGateway(Gateway):
    name = "fake"

    def __init__(self, config, bus) -> None:
        super().__init__(config, bus)
        self.sent: list[OutboundMessage] = []
        self.halted = False

    async def launch(self) -> None:
        await asyncio.Event().wait()

    async def halt(self) -> None:
        self.halted = True

    async def send(self, msg: OutboundMessage) -> None:
        if msg.content == "explode":
            raise RuntimeError("delivery failed")
        self.sent.append(msg)


class TestAllowList:
    def test_empty_allow_list_admits_everyone(self, bus: MessageBus) -> None:
        assert RecordingGateway({}, bus).is_allowed("anyone")

    def test_compound_ids(self, bus: MessageBus) -> None:
        gateway = RecordingGateway({"allow_from": ["alice", 42]}, bus)
        assert gateway.is_allowed("alice")
        assert gateway.is_allowed("42")
        assert gateway.is_allowed("12345|alice")
        assert not gateway.is_allowed("12345|bob")

    @pytest.mark.asyncio
    async def test_disallowed_sender_is_dropped(self, bus: MessageBus) -> None:
        gateway = RecordingGateway({"allow_from": ["alice"]}, bus)

        assert await gateway.publish_inbound("bob", "c", "hi") is False
        assert bus.inbound_size == 0

        assert await gateway.publish_inbound("alice", "c", "hi", media=["m.png"]) is True
        msg = await bus.consume_inbound()
        assert (msg.channel, msg.sender_id, msg.chat_id, msg.media) == ("fake", "alice", "c", ("m.png",))


class TestGatewayRegistry:
    @pytest.mark.asyncio
    async def test_routes_by_channel(self, bus: MessageBus) -> None:
        registry = GatewayRegistry(bus)
        gateway = registry.add(RecordingGateway({}, bus))
        await registry.launch_all()

        await bus.publish_outbound(OutboundMessage(channel="nowhere", chat_id="c", content="lost"))
        await bus.publish_outbound(OutboundMessage(channel="fake", chat_id="c", content="explode"))
        await bus.publish_outbound(OutboundMessage(channel="fake", chat_id="c", content="hello"))
        for _ in range(20):
            if gateway.sent:
                break
            await asyncio.sleep(0.01)

        await registry.shutdown_all()

        assert [m.content for m in gateway.sent] == ["hello"]
        assert gateway.halted
        assert registry.all_instances() == {}

    def test_initialize_from_config_creates_enabled_channels(self, bus: MessageBus, default_config) -> None:
        registry = GatewayRegistry(bus)
        channels = default_config["channels"]
        channels["lark"]["enabled"] = True

        created = registry.initialize_from_config(channels)

        assert [g.name for g in created] == ["lark"]
        assert set(registry.adapter_types) >= {"cli", "telegram", "lark"}

    def test_only_overrides_enabled_flag(self, bus: MessageBus, default_config) -> None:
        registry = GatewayRegistry(bus)
        created = registry.initialize_from_config(default_config["channels"], only=["cli"])
        assert [g.name for g in created] == ["cli"]


class TestTelegramHelpers:
    def test_split_message(self) -> None:
        text = "a" * 10 + "\n" + "b" * 10
        assert split_message(text, limit=15) == ["a" * 10, "b" * 10]
        assert split_message("short") == ["short"]
        assert split_message("x" * 25, limit=10) == ["x" * 10, "x" * 10, "x" * 5]


class TestLarkGateway:
    @pytest.fixture
    def gateway(self, bus: MessageBus) -> LarkGateway:
        return LarkGateway({"app_id": "cli_a", "app_secret": "secret", "allow_from": []}, bus)

    @staticmethod
    def _fields(message_id: str = "m1", text: str = "hello", **overrides: str) -> dict:
        fields = {
            "message_id": message_id,
            "chat_id": "oc_1",
            "chat_type": "p2p",
            "message_type": "text",
            "content": json.dumps({"text": text}),
            "sender_type": "user",
            "open_id": "ou_1",
        }
        fields.update(overrides)
        return fields

    def test_parse_text_content(self) -> None:
        assert parse_text_content('{"text": " hi "}') == "hi"
        assert parse_text_content("not json") == "not json"

    def test_event_fields_flattens_sdk_event(self) -> None:
        data = SimpleNamespace(
            event=SimpleNamespace(
                message=SimpleNamespace(
                    message_id="m9",
                    chat_id="oc_9",
                    chat_type="group",
                    message_type="text",
                    content='{"text": "yo"}',
                ),
                sender=SimpleNamespace(
                    sender_type="user", sender_id=SimpleNamespace(open_id="ou_9")
                ),
            )
        )
        fields = event_fields(data)
        assert fields["message_id"] == "m9"
        assert fields["chat_type"] == "group"
        assert fields["open_id"] == "ou_9"

    @pytest.mark.asyncio
    async def test_text_event_published_once(self, gateway: LarkGateway, bus: MessageBus) -> None:
        assert await gateway.handle_message(self._fields()) == "ok"
        assert await gateway.handle_message(self._fields()) == "duplicate"

        assert bus.inbound_size == 1
        msg = await bus.consume_inbound()
        assert (msg.channel, msg.sender_id, msg.chat_id, msg.content) == ("lark", "ou_1", "oc_1", "hello")
        assert msg.metadata["message_id"] == "m1"

    @pytest.mark.asyncio
    async def test_app_and_non_text_messages_ignored(
        self, gateway: LarkGateway, bus: MessageBus
    ) -> None:
        assert await gateway.handle_message(self._fields("m2", sender_type="app")) == "ignored"
        assert await gateway.handle_message(self._fields("m3", message_type="image")) == "ignored"
        assert await gateway.handle_message(self._fields("m4", text="  ")) == "ignored"
        assert bus.inbound_size == 0

    @pytest.mark.asyncio
    async def test_launch_without_credentials_sets_error(self, bus: MessageBus) -> None:
        gateway = LarkGateway({"allow_from": []}, bus)
        await gateway.launch()
        assert gateway.status is GatewayStatus.ERROR

    @pytest.mark.asyncio
    async def test_send_uses_api_client(self, gateway: LarkGateway) -> None:
        client = MagicMock()
        client.im.v1.message.create.return_value = SimpleNamespace(
            success=lambda: True, code=0, msg="ok"
        )
        gateway._client = client

        await gateway.send(OutboundMessage(channel="lark", chat_id="oc_1", content="你好"))

        request = client.im.v1.message.create.call_args.args[0]
        assert request.request_body.receive_id == "oc_1"
        assert json.loads(request.request_body.content) == {"text": "你好"}
