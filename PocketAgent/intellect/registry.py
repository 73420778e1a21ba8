"""
智能层注册表 - 管理对话提供者类型并按选择结果实例化
Intellect registry - maps provider names to client classes and builds the
chat provider for a resolved selection.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from PocketAgent.intellect.base import ChatProvider
from PocketAgent.intellect.resolver import ProviderSelection, select_provider

logger = logging.getLogger(__name__)

# 未注册专用客户端的提供者走 OpenAI 兼容接口
DEFAULT_PROVIDER_TYPE = "openai"


class IntellectRegistry:
    """
    智能层注册表
    Intellect registry.

    - 注册提供者客户端类型
    - 由配置解析出提供者并创建客户端
    """

    def __init__(self) -> None:
        self._provider_types: dict[str, type[ChatProvider]] = {}
        self._active: ChatProvider | None = None
        self._selection: ProviderSelection | None = None

    def register_type(self, type_name: str, provider_cls: type[ChatProvider]) -> None:
        """
        注册一种提供者类型
        Register a provider client type.
        """
        self._provider_types[type_name] = provider_cls
        logger.debug("已注册智能层类型: %s", type_name)

    def register_builtin_types(self) -> None:
        """注册内置类型 / Register the built-in client types."""
        from PocketAgent.intellect.providers.anthropic_chat import AnthropicChatProvider
        from PocketAgent.intellect.providers.openai_chat import OpenAIChatProvider

        self.register_type("openai", OpenAIChatProvider)
        self.register_type("anthropic", AnthropicChatProvider)

    def type_for(self, selection: ProviderSelection) -> type[ChatProvider]:
        """选择客户端类型 / Pick the client class for a selection."""
        spec_name = selection.spec.name if selection.spec is not None else ""
        # 通过网关访问 Claude 时仍走 OpenAI 兼容接口
        if spec_name in self._provider_types:
            return self._provider_types[spec_name]
        provider_cls = self._provider_types.get(DEFAULT_PROVIDER_TYPE)
        if provider_cls is None:
            raise KeyError(f"Unknown provider type: {spec_name or DEFAULT_PROVIDER_TYPE}")
        return provider_cls

    def create(self, selection: ProviderSelection) -> ChatProvider:
        """
        创建对话提供者并设为活跃
        Create a chat provider and make it active.
        """
        provider = self.type_for(selection)(selection)
        self._active = provider
        self._selection = selection
        logger.info(
            "已创建对话提供者: %s (模型: %s)",
            selection.display_name,
            selection.resolved_model,
        )
        return provider

    def initialize_from_config(
        self,
        config: Mapping[str, Any],
        environ: Mapping[str, str] | None = None,
    ) -> ChatProvider:
        """
        从配置解析并创建对话提供者
        Resolve and create the chat provider from configuration.
        """
        if not self._provider_types:
            self.register_builtin_types()

        selection = select_provider(config, environ)
        if not selection.has_credentials:
            raise ValueError(
                "No API key configured. Set one under 'providers' in the config "
                "file or via the provider's environment variable."
            )
        return self.create(selection)

    @property
    def active(self) -> ChatProvider | None:
        return self._active

    @property
    def selection(self) -> ProviderSelection | None:
        return self._selection

    async def close(self) -> None:
        if self._active is not None:
            await self._active.close()
            self._active = None
