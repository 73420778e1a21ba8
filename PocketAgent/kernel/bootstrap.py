"""
启动引导器 - 应用的生命周期管理
Bootstrap - application lifecycle management.

负责按正确顺序初始化所有子系统，并管理关闭流程。
Responsible for initializing all subsystems in the correct order
and managing the shutdown process.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Mapping
from typing import Any

from PocketAgent.agent.loop import AgentLoop
from PocketAgent.bus.queue import MessageBus
from PocketAgent.config.defaults import build_default_config
from PocketAgent.config.manager import ConfigManager
from PocketAgent.gateway.registry import GatewayRegistry
from PocketAgent.intellect.base import ChatProvider
from PocketAgent.intellect.registry import IntellectRegistry

logger = logging.getLogger(__name__)


def build_agent(
    config: Mapping[str, Any],
    bus: MessageBus,
    provider: ChatProvider,
) -> AgentLoop:
    """
    按配置构建智能体循环
    Build the agent loop from configuration.
    """
    from PocketAgent.utils.paths import get_workspace_path

    defaults = (config.get("agents") or {}).get("defaults") or {}
    channels = config.get("channels") or {}
    return AgentLoop(
        bus=bus,
        provider=provider,
        workspace=get_workspace_path(defaults.get("workspace")),
        model=provider.default_model,
        max_iterations=int(defaults.get("max_tool_iterations", 40)),
        memory_window=int(defaults.get("memory_window", 100)),
        temperature=float(defaults.get("temperature", 0.1)),
        max_tokens=int(defaults.get("max_tokens", 8192)),
        tool_config=config.get("tools") or {},
        send_tool_hints=bool(channels.get("send_tool_hints", False)),
    )


class Bootstrap:
    """
    引导器 - 编排整个应用的启动和关闭
    Bootstrap - orchestrates the startup and shutdown of the application.

    启动顺序：
    1. 加载配置
    2. 初始化日志系统
    3. 创建消息总线
    4. 解析提供者并创建对话客户端
    5. 创建智能体循环
    6. 启动网关（消息渠道）
    """

    def __init__(
        self,
        config_path: str | None = None,
        channels: list[str] | None = None,
    ) -> None:
        self._config_path = config_path
        # None 表示启动配置中所有启用的渠道
        self._channels = channels
        self.config: ConfigManager | None = None
        self.bus = MessageBus()
        self.intellect = IntellectRegistry()
        self.gateways = GatewayRegistry(self.bus)
        self.agent: AgentLoop | None = None
        self._shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task[Any]] = []

    async def init_core(self) -> AgentLoop:
        """
        初始化配置、日志、提供者与智能体
        Initialize config, logging, the chat provider and the agent.
        """
        self.config = ConfigManager(
            defaults=build_default_config(), config_path=self._config_path
        )
        await self.config.load()

        from PocketAgent.kernel.logging import get_log_manager

        get_log_manager().configure_from_settings(self.config.get("logging", {}))

        conf = self.config.as_dict()
        provider = self.intellect.initialize_from_config(conf)
        self.agent = build_agent(conf, self.bus, provider)
        logger.info("智能体已就绪，模型: %s", self.agent.model)
        return self.agent

    async def start(self) -> None:
        """
        启动应用
        Start the application.
        """
        logger.info("PocketAgent 正在启动...")
        agent = await self.init_core()

        self._tasks.append(asyncio.create_task(agent.run()))

        assert self.config is not None
        created = self.gateways.initialize_from_config(
            self.config.get("channels", {}), only=self._channels
        )
        if not created:
            logger.warning("没有启用任何渠道")
        await self.gateways.launch_all()

        logger.info("PocketAgent 启动成功，渠道: %s", ", ".join(g.name for g in created))

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def run_forever(self, stop_when_channels_exit: bool = False) -> None:
        """
        持续运行直到收到关闭信号
        Run until a shutdown signal is received.
        """
        loop = asyncio.get_running_loop()

        # 注册系统信号（仅 Unix）
        if sys.platform != "win32":
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._shutdown_event.set)

        waiters = [asyncio.create_task(self._shutdown_event.wait())]
        if stop_when_channels_exit:
            waiters.append(asyncio.create_task(self.gateways.wait_any()))

        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
            await self.shutdown()

    async def shutdown(self) -> None:
        """
        优雅关闭
        Graceful shutdown.
        """
        logger.info("PocketAgent 正在关闭...")

        # 先让智能体完成进行中的轮次，回复仍可经网关投递
        if self.agent is not None:
            self.agent.stop()
            if self._tasks:
                await asyncio.wait(self._tasks, timeout=self.agent.shutdown_grace + 1.0)

        await self.gateways.shutdown_all()

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        await self.intellect.close()
        logger.info("PocketAgent 已完全关闭")
