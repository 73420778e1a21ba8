"""
总线事件 - 渠道与智能体之间传递的消息结构
Bus events - message structures passed between channels and the agent.

事件是不可变的：入站消息由渠道创建，出站消息由对话驱动器创建。
Events are immutable: inbound messages are created by channels,
outbound messages by the conversation driver.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class InboundMessage:
    """
    入站消息 - 从渠道发往智能体
    Inbound message - from a channel to the agent.
    """

    # 渠道标识（如 cli, telegram, lark）
    channel: str
    # 发送者 ID
    sender_id: str
    # 会话/群聊 ID
    chat_id: str
    # 文本内容
    content: str
    # 媒体引用（URL 或本地路径）
    media: tuple[str, ...] = ()
    # 渠道特定数据
    metadata: dict[str, Any] = field(default_factory=dict)
    # 显式会话键（覆盖 channel:chat_id）
    session_key_override: str | None = None
    # 创建时间戳（秒）
    timestamp: float = field(default_factory=time.time)

    @property
    def session_key(self) -> str:
        """会话键 / Session key grouping this message into a conversation."""
        if self.session_key_override:
            return self.session_key_override
        return f"{self.channel}:{self.chat_id}"


@dataclass(frozen=True)
class OutboundMessage:
    """
    出站消息 - 从智能体发往渠道
    Outbound message - from the agent to a channel.
    """

    channel: str
    chat_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
