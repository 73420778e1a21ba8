"""
网关注册表 - 管理渠道适配器的注册、实例化与出站分发
Gateway registry - registers channel adapters, instantiates them and
dispatches outbound messages.

使用注册表模式替代装饰器注册，所有适配器显式注册。
出站队列只有一个消费者：本注册表按 channel 字段路由到对应网关。
Uses the registry pattern instead of decorator registration; all adapters
register explicitly. The outbound queue has a single consumer: this
registry, which routes each message by its ``channel`` field.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from PocketAgent.bus.queue import MessageBus
from PocketAgent.gateway.base import Gateway, GatewayStatus

logger = logging.getLogger(__name__)


class GatewayRegistry:
    """
    网关注册表 - 集中管理网关类型和实例
    Gateway registry - centrally manages gateway types and instances.
    """

    def __init__(self, bus: MessageBus) -> None:
        self._bus = bus
        # 注册的网关类型: channel 名 -> Gateway 类
        self._adapter_types: dict[str, type[Gateway]] = {}
        # 活跃的网关实例
        self._instances: dict[str, Gateway] = {}
        # 网关的后台任务
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._dispatch_task: asyncio.Task[None] | None = None

    def register_adapter_type(self, adapter_type: str, gateway_cls: type[Gateway]) -> None:
        """
        注册一种网关适配器类型
        Register a gateway adapter type.
        """
        self._adapter_types[adapter_type] = gateway_cls
        logger.debug("已注册网关适配器类型: %s", adapter_type)

    def register_builtin_adapters(self) -> None:
        """
        注册所有内置网关适配器
        Register all built-in gateway adapters.
        """
        from PocketAgent.gateway.adapters.cli_adapter import CLIGateway

        self.register_adapter_type("cli", CLIGateway)

        try:
            from PocketAgent.gateway.adapters.telegram_adapter import TelegramGateway

            self.register_adapter_type("telegram", TelegramGateway)
        except ImportError:
            logger.debug("Telegram 适配器不可用")

        try:
            from PocketAgent.gateway.adapters.lark_adapter import LarkGateway

            self.register_adapter_type("lark", LarkGateway)
        except ImportError:
            logger.debug("飞书适配器不可用")

    def add(self, gateway: Gateway) -> Gateway:
        """添加一个已创建的网关实例 / Add an already-built gateway instance."""
        self._instances[gateway.name] = gateway
        return gateway

    def initialize_from_config(
        self,
        channels_conf: Mapping[str, Any],
        only: list[str] | None = None,
    ) -> list[Gateway]:
        """
        从配置创建所有启用的网关
        Create every enabled gateway from the ``channels`` config section.
        """
        if not self._adapter_types:
            self.register_builtin_adapters()

        created = []
        for adapter_type, conf in channels_conf.items():
            if not isinstance(conf, Mapping):
                continue
            if only is not None and adapter_type not in only:
                continue
            if only is None and not conf.get("enabled", False):
                continue

            gateway_cls = self._adapter_types.get(adapter_type)
            if gateway_cls is None:
                logger.warning("未知的适配器类型: %s", adapter_type)
                continue
            created.append(self.add(gateway_cls(conf, self._bus)))
            logger.info("已创建网关: %s", adapter_type)
        return created

    async def launch_all(self) -> None:
        """
        在后台启动所有网关和出站分发循环
        Launch every gateway and the outbound dispatch loop in the background.
        """
        for name, gateway in self._instances.items():
            if name not in self._tasks:
                self._tasks[name] = asyncio.create_task(self._run_gateway(gateway))
        if self._dispatch_task is None:
            self._dispatch_task = asyncio.create_task(self.dispatch_outbound())

    async def _run_gateway(self, gateway: Gateway) -> None:
        """
        运行网关并处理异常
        Run gateway and handle exceptions.
        """
        try:
            gateway._status = GatewayStatus.RUNNING
            await gateway.launch()
        except asyncio.CancelledError:
            pass
        except Exception:
            gateway._status = GatewayStatus.ERROR
            logger.exception("网关 %s 遇到错误", gateway.name)

    async def dispatch_outbound(self) -> None:
        """
        出站分发循环：按 channel 路由到网关
        Outbound dispatch loop: route each message to its gateway by channel.
        """
        logger.info("出站分发循环已启动")
        while True:
            msg = await self._bus.consume_outbound()
            gateway = self._instances.get(msg.channel)
            if gateway is None:
                logger.warning("未知的渠道: %s", msg.channel)
                continue
            try:
                await gateway.send(msg)
            except Exception:
                logger.exception("向渠道 %s 发送消息失败", msg.channel)

    async def wait_any(self) -> None:
        """等待任一网关结束 / Wait until any gateway task finishes."""
        if self._tasks:
            await asyncio.wait(self._tasks.values(), return_when=asyncio.FIRST_COMPLETED)

    async def shutdown_all(self) -> None:
        """
        关闭所有网关
        Shutdown all gateways.
        """
        for name, gateway in self._instances.items():
            try:
                await gateway.halt()
                gateway._status = GatewayStatus.STOPPED
            except Exception:
                logger.exception("关闭网关出错: %s", name)

        tasks = list(self._tasks.values())
        if self._dispatch_task is not None:
            tasks.append(self._dispatch_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._instances.clear()
        self._tasks.clear()
        self._dispatch_task = None

    def get_instance(self, name: str) -> Gateway | None:
        """获取网关实例 / Get a gateway instance."""
        return self._instances.get(name)

    def all_instances(self) -> dict[str, Gateway]:
        """获取所有网关实例 / Get all gateway instances."""
        return dict(self._instances)

    @property
    def adapter_types(self) -> list[str]:
        """获取所有已注册的适配器类型 / Get all registered adapter types."""
        return list(self._adapter_types.keys())
