"""
消息工具 - 让智能体主动向某个渠道发送消息
Message tool - lets the agent proactively send a message to a channel.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import Any

from PocketAgent.agent.tools.base import Tool
from PocketAgent.bus.events import OutboundMessage

SendCallback = Callable[[OutboundMessage], Awaitable[None]]


class MessageTool(Tool):
    """
    消息发送工具
    Message sending tool.

    默认目标是当前轮次的渠道与会话，由对话驱动器在每轮开始前设置。
    目标存放在 ContextVar 中，并发的轮次任务互不干扰。
    The default target is the current turn's channel and chat, set by the
    conversation driver before every turn. It lives in a ContextVar so
    concurrent turn tasks each see their own target.
    """

    def __init__(self, send_callback: SendCallback | None = None) -> None:
        self._send = send_callback
        self._target: ContextVar[tuple[str, str]] = ContextVar(
            f"message_target_{id(self)}", default=("", "")
        )

    def set_context(self, channel: str, chat_id: str) -> None:
        """设置默认目标 / Set the default target."""
        self._target.set((channel, chat_id))

    def set_send_callback(self, callback: SendCallback) -> None:
        self._send = callback

    @property
    def name(self) -> str:
        return "message"

    @property
    def description(self) -> str:
        return (
            "Send a message to the user on a chat channel. "
            "Use this when you want to communicate something before your final reply."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "The message content to send"},
                "channel": {
                    "type": "string",
                    "description": "Optional: target channel (cli, telegram, lark)",
                },
                "chat_id": {"type": "string", "description": "Optional: target chat/user ID"},
            },
            "required": ["content"],
        }

    async def execute(
        self,
        content: str,
        channel: str | None = None,
        chat_id: str | None = None,
        **kwargs: Any,
    ) -> str:
        default_channel, default_chat = self._target.get()
        target_channel = channel or default_channel
        target_chat = chat_id or default_chat

        if not target_channel or not target_chat:
            return "Error: No target channel/chat specified"
        if self._send is None:
            return "Error: Message sending not configured"

        await self._send(
            OutboundMessage(channel=target_channel, chat_id=target_chat, content=content)
        )
        return f"Message sent to {target_channel}:{target_chat}"
