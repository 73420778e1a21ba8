"""
终端网关适配器 - 交互式命令行对话
CLI gateway adapter - interactive terminal chat.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import click

from PocketAgent.bus.events import OutboundMessage
from PocketAgent.bus.queue import MessageBus
from PocketAgent.gateway.base import Gateway, GatewayStatus

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")


class CLIGateway(Gateway):
    """
    终端网关
    CLI gateway.

    每读入一行即发布一条入站消息，并等待回复后再读下一行。
    Each input line is published as an inbound message; the next line is
    read once the reply has been printed.
    """

    name = "cli"

    def __init__(self, config: Mapping[str, Any], bus: MessageBus) -> None:
        super().__init__(config, bus)
        self.chat_id = str(config.get("chat_id", "default"))
        self.sender_id = str(config.get("sender_id", "user"))
        self._reply_ready = asyncio.Event()
        self._stopped = False

    async def _read_line(self) -> str:
        return await asyncio.to_thread(input, "\nYou: ")

    async def launch(self) -> None:
        self._status = GatewayStatus.RUNNING
        click.secho("PocketAgent - type your message (/exit to quit)", fg="cyan")

        while not self._stopped:
            try:
                line = await self._read_line()
            except EOFError:
                break

            text = line.strip()
            if not text:
                continue
            if text in EXIT_COMMANDS:
                break

            self._reply_ready.clear()
            await self.publish_inbound(self.sender_id, self.chat_id, text)
            await self._reply_ready.wait()

        self._status = GatewayStatus.STOPPED
        logger.info("终端网关已退出")

    async def halt(self) -> None:
        self._stopped = True
        self._reply_ready.set()
        self._status = GatewayStatus.STOPPED

    async def send(self, msg: OutboundMessage) -> None:
        if msg.metadata.get("_tool_hint"):
            click.secho(f"  {msg.content}", dim=True)
            return
        click.echo(f"\nPocketAgent: {msg.content}")
        self._reply_ready.set()
