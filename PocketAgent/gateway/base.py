"""
网关基类 - 所有渠道适配器的抽象基类
Gateway base - abstract base class for all channel adapters.

渠道把平台消息转换为 InboundMessage 发布到总线，并负责投递 OutboundMessage。
A channel converts platform messages into InboundMessage events on the bus
and delivers OutboundMessage replies back to its platform.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum, auto
from typing import Any

from PocketAgent.bus.events import InboundMessage, OutboundMessage
from PocketAgent.bus.queue import MessageBus

logger = logging.getLogger(__name__)


class GatewayStatus(Enum):
    """网关状态枚举 / Gateway status enum."""

    INITIALIZING = auto()
    RUNNING = auto()
    ERROR = auto()
    STOPPED = auto()


class Gateway(ABC):
    """
    网关抽象基类 - 所有渠道适配器的父类
    Gateway abstract base - parent of all channel adapters.

    设计要求：
    1. 网关接收平台消息并通过 publish_inbound 提交到总线
    2. 网关负责把回复发送到平台
    3. 网关管理自身的连接生命周期
    """

    # 渠道标识，与 InboundMessage.channel 一致
    name: str = ""

    def __init__(self, config: Mapping[str, Any], bus: MessageBus) -> None:
        self._config = config
        self.bus = bus
        self._status = GatewayStatus.INITIALIZING
        self.allow_from: list[str] = [str(x) for x in (config.get("allow_from") or [])]

    @property
    def status(self) -> GatewayStatus:
        """获取当前状态 / Get current status."""
        return self._status

    def is_allowed(self, sender_id: str) -> bool:
        """
        检查发送者是否在白名单中，空白名单表示允许所有人
        Check the sender against the allow-list; an empty list allows everyone.

        复合 ID（如 ``"12345|alice"``）任一部分匹配即可。
        Any part of a compound id such as ``"12345|alice"`` may match.
        """
        if not self.allow_from:
            return True
        sender = str(sender_id)
        if sender in self.allow_from:
            return True
        if "|" in sender:
            return any(part and part in self.allow_from for part in sender.split("|"))
        return False

    async def publish_inbound(
        self,
        sender_id: str,
        chat_id: str,
        content: str,
        media: list[str] | tuple[str, ...] | None = None,
        metadata: dict[str, Any] | None = None,
        session_key_override: str | None = None,
    ) -> bool:
        """
        提交入站消息到总线，未授权的发送者被丢弃
        Publish an inbound message; messages from disallowed senders are dropped.
        """
        if not self.is_allowed(sender_id):
            logger.warning(
                "渠道 %s 拒绝了发送者 %s 的消息（不在 allow_from 中）",
                self.name,
                sender_id,
            )
            return False

        await self.bus.publish_inbound(
            InboundMessage(
                channel=self.name,
                sender_id=str(sender_id),
                chat_id=str(chat_id),
                content=content,
                media=tuple(media or ()),
                metadata=dict(metadata or {}),
                session_key_override=session_key_override,
            )
        )
        return True

    @abstractmethod
    async def launch(self) -> None:
        """
        启动网关
        Launch the gateway.

        应该建立与平台的连接并开始监听消息。
        Should establish connection to the platform and start listening.
        """
        ...

    @abstractmethod
    async def halt(self) -> None:
        """
        停止网关
        Halt the gateway.
        """
        ...

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """
        发送消息到平台
        Deliver an outbound message to the platform.
        """
        ...
