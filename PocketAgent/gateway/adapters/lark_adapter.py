"""
飞书/Lark 网关适配器
Lark (Feishu) gateway adapter.

基于 lark-oapi：长连接（WebSocket）接收 im.message.receive_v1 事件，
API 客户端负责鉴权与发送消息。
Built on lark-oapi: the long-connection (WebSocket) client receives
``im.message.receive_v1`` events and the API client handles auth and sending.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any

from PocketAgent.bus.events import OutboundMessage
from PocketAgent.bus.queue import MessageBus
from PocketAgent.gateway.base import Gateway, GatewayStatus

logger = logging.getLogger(__name__)

# 已处理消息 ID 的缓存上限
SEEN_CACHE_SIZE = 1000


def parse_text_content(raw: str) -> str:
    """解析飞书 text 消息内容 / Parse the content of a Lark text message."""
    try:
        data = json.loads(raw or "{}")
    except ValueError:
        return raw or ""
    if isinstance(data, dict):
        return str(data.get("text", "")).strip()
    return ""


def event_fields(data: Any) -> dict[str, str]:
    """
    把 SDK 的 P2ImMessageReceiveV1 事件展开为普通字典
    Flatten an SDK ``P2ImMessageReceiveV1`` event into a plain dict.
    """
    event = data.event
    message = event.message
    sender = event.sender
    sender_id = getattr(sender, "sender_id", None)
    return {
        "message_id": message.message_id or "",
        "chat_id": message.chat_id or "",
        "chat_type": message.chat_type or "",
        "message_type": message.message_type or "",
        "content": message.content or "",
        "sender_type": sender.sender_type or "",
        "open_id": (sender_id.open_id if sender_id is not None else "") or "",
    }


class LarkGateway(Gateway):
    """飞书网关 / Lark gateway."""

    name = "lark"

    def __init__(self, config: Mapping[str, Any], bus: MessageBus) -> None:
        super().__init__(config, bus)
        self._app_id = config.get("app_id", "")
        self._app_secret = config.get("app_secret", "")
        self._encrypt_key = config.get("encrypt_key", "")
        self._verification_token = config.get("verification_token", "")

        self._client: Any = None
        self._ws_client: Any = None
        self._ws_loop: asyncio.AbstractEventLoop | None = None
        self._ws_thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event = asyncio.Event()
        self._seen: OrderedDict[str, None] = OrderedDict()

    def _ensure_client(self) -> Any:
        if self._client is None:
            import lark_oapi as lark

            self._client = (
                lark.Client.builder()
                .app_id(self._app_id)
                .app_secret(self._app_secret)
                .log_level(lark.LogLevel.INFO)
                .build()
            )
        return self._client

    async def launch(self) -> None:
        """
        建立长连接并等待停止
        Open the long connection and wait until halted.
        """
        if not self._app_id or not self._app_secret:
            self._status = GatewayStatus.ERROR
            logger.error("飞书未配置 app_id / app_secret")
            return

        import lark_oapi as lark

        self._loop = asyncio.get_running_loop()
        self._ensure_client()
        handler = (
            lark.EventDispatcherHandler.builder(self._encrypt_key, self._verification_token)
            .register_p2_im_message_receive_v1(self._on_message_event)
            .build()
        )
        self._ws_client = lark.ws.Client(
            self._app_id,
            self._app_secret,
            event_handler=handler,
            log_level=lark.LogLevel.INFO,
        )
        self._ws_thread = threading.Thread(target=self._run_ws, name="lark-ws", daemon=True)
        self._ws_thread.start()

        self._status = GatewayStatus.RUNNING
        logger.info("飞书网关已启动 (长连接模式)")
        await self._stop_event.wait()

    def _run_ws(self) -> None:
        import lark_oapi.ws.client as ws_client_module

        # SDK 的 start() 在模块级事件循环上阻塞运行，必须给它独立的循环
        self._ws_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._ws_loop)
        ws_client_module.loop = self._ws_loop
        try:
            self._ws_client.start()
        except RuntimeError:
            # halt() 停止循环时 start() 以 RuntimeError 退出
            if self._status is GatewayStatus.RUNNING:
                self._status = GatewayStatus.ERROR
                logger.exception("飞书长连接异常退出")

    async def halt(self) -> None:
        self._status = GatewayStatus.STOPPED
        self._stop_event.set()
        if self._ws_loop is not None and self._ws_loop.is_running():
            self._ws_loop.call_soon_threadsafe(self._ws_loop.stop)
        self._ws_client = None
        self._client = None

    def _on_message_event(self, data: Any) -> None:
        """SDK 回调（长连接线程）/ SDK callback, runs on the long-connection thread."""
        if self._loop is None:
            return
        asyncio.run_coroutine_threadsafe(self.handle_message(event_fields(data)), self._loop)

    def _is_duplicate(self, message_id: str) -> bool:
        if not message_id:
            return False
        if message_id in self._seen:
            return True
        self._seen[message_id] = None
        while len(self._seen) > SEEN_CACHE_SIZE:
            self._seen.popitem(last=False)
        return False

    async def handle_message(self, fields: Mapping[str, str]) -> str:
        """
        处理一条接收到的消息，返回处理结果
        Handle one received message and return its outcome
        (``ok``, ``ignored`` or ``duplicate``).
        """
        if fields.get("sender_type") == "app":
            return "ignored"
        if self._is_duplicate(fields.get("message_id", "")):
            return "duplicate"
        if fields.get("message_type") != "text":
            logger.debug("跳过非文本飞书消息: %s", fields.get("message_type"))
            return "ignored"

        content = parse_text_content(fields.get("content", ""))
        if not content:
            return "ignored"

        await self.publish_inbound(
            sender_id=fields.get("open_id", ""),
            chat_id=fields.get("chat_id", ""),
            content=content,
            metadata={
                "message_id": fields.get("message_id", ""),
                "chat_type": fields.get("chat_type", ""),
            },
        )
        return "ok"

    async def send(self, msg: OutboundMessage) -> None:
        """发送消息到飞书 / Send message to Lark."""
        from lark_oapi.api.im.v1 import CreateMessageRequest, CreateMessageRequestBody

        request = (
            CreateMessageRequest.builder()
            .receive_id_type("chat_id")
            .request_body(
                CreateMessageRequestBody.builder()
                .receive_id(msg.chat_id)
                .msg_type("text")
                .content(json.dumps({"text": msg.content}, ensure_ascii=False))
                .build()
            )
            .build()
        )
        client = self._ensure_client()
        # SDK 客户端是同步的
        response = await asyncio.to_thread(client.im.v1.message.create, request)
        if not response.success():
            logger.error("飞书消息发送失败: code=%s msg=%s", response.code, response.msg)
        else:
            logger.debug("已发送飞书消息到 %s", msg.chat_id)
