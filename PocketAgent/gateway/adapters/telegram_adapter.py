"""
Telegram 网关适配器 - 对接 Telegram Bot API
Telegram gateway adapter - interfaces with the Telegram Bot API.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from PocketAgent.bus.events import OutboundMessage
from PocketAgent.bus.queue import MessageBus
from PocketAgent.gateway.base import Gateway, GatewayStatus

logger = logging.getLogger(__name__)

# Telegram 单条消息上限
MAX_MESSAGE_LENGTH = 4096


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """按换行优先切分长消息 / Split long text, preferring newline boundaries."""
    if len(text) <= limit:
        return [text]
    chunks = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text:
        chunks.append(text)
    return chunks


class TelegramGateway(Gateway):
    """
    Telegram 网关 - 通过 python-telegram-bot 库连接
    Telegram gateway - connects via python-telegram-bot library.
    """

    name = "telegram"

    def __init__(self, config: Mapping[str, Any], bus: MessageBus) -> None:
        super().__init__(config, bus)
        self._token = config.get("token", "")
        self._proxy = config.get("proxy", "")
        self._application: Any = None
        self._stop_event = asyncio.Event()

    async def launch(self) -> None:
        """
        启动 Telegram Bot 轮询
        Start Telegram Bot polling.
        """
        if not self._token:
            self._status = GatewayStatus.ERROR
            logger.error("Telegram 未配置 token")
            return

        from telegram.ext import ApplicationBuilder, MessageHandler, filters

        builder = ApplicationBuilder().token(self._token)
        if self._proxy:
            builder = builder.proxy(self._proxy).get_updates_proxy(self._proxy)

        self._application = builder.build()
        self._application.add_handler(
            MessageHandler(filters.TEXT | filters.PHOTO | filters.CAPTION, self._handle_update)
        )

        self._status = GatewayStatus.RUNNING
        logger.info("Telegram 机器人开始轮询")

        await self._application.initialize()
        await self._application.start()
        await self._application.updater.start_polling()

        await self._stop_event.wait()

    async def halt(self) -> None:
        """停止 Bot / Stop the bot."""
        self._status = GatewayStatus.STOPPED
        self._stop_event.set()
        if self._application is not None:
            await self._application.updater.stop()
            await self._application.stop()
            await self._application.shutdown()
            self._application = None

    async def send(self, msg: OutboundMessage) -> None:
        """
        发送消息到 Telegram
        Send a message to Telegram.
        """
        if self._application is None:
            logger.warning("Telegram 机器人未运行，丢弃消息")
            return

        bot = self._application.bot
        for chunk in split_message(msg.content):
            await bot.send_message(chat_id=int(msg.chat_id), text=chunk)

    async def _handle_update(self, update: Any, context: Any) -> None:
        """
        处理 Telegram Update
        Handle a Telegram Update.
        """
        message = update.message or update.edited_message
        if message is None:
            return

        text = message.text or message.caption or ""
        sender = message.from_user
        sender_id = str(sender.id) if sender else ""
        if sender is not None and sender.username:
            sender_id = f"{sender_id}|{sender.username}"

        media = []
        if message.photo:
            # 取最大分辨率
            photo = message.photo[-1]
            file = await photo.get_file()
            if file.file_path:
                media.append(file.file_path)

        if not text and not media:
            return

        await self.publish_inbound(
            sender_id=sender_id,
            chat_id=str(message.chat_id),
            content=text or "[image]",
            media=media,
            metadata={
                "message_id": message.message_id,
                "user_id": sender.id if sender else None,
                "username": sender.username if sender else None,
                "is_group": message.chat.type != "private",
            },
        )
