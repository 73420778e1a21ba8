"""
工具注册表 - 管理所有可用的函数工具并按名称分发调用
Tool registry - manages available function tools and dispatches calls by name.

execute() 的每条路径都返回字符串，工具失败因此只是普通的对话数据。
Every path through execute() returns a string, so tool failure is just
ordinary conversational data for the driver.
"""

from __future__ import annotations

import logging
from typing import Any

from PocketAgent.agent.tools.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    工具注册表
    Tool registry.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """注册工具（同名覆盖）/ Register a tool, overwriting any same-named one."""
        self._tools[tool.name] = tool
        logger.debug("已注册工具: %s", tool.name)

    def unregister(self, name: str) -> None:
        """注销工具 / Unregister a tool."""
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        """获取工具 / Get a tool."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_definitions(self) -> list[dict[str, Any]]:
        """
        导出所有工具的 schema，原样作为模型的工具菜单
        Export every tool schema; used verbatim as the model's tool menu.
        """
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, params: Any) -> str:
        """
        执行工具调用，永不抛出异常
        Execute a tool call; never raises.
        """
        tool = self._tools.get(name)
        if tool is None:
            return f"Error: Tool '{name}' not found"

        errors = tool.validate_params(params)
        if errors:
            return f"Error: Invalid parameters for tool '{name}': " + "; ".join(errors)

        try:
            result = await tool.execute(**params)
        except Exception as exc:
            logger.exception("工具 '%s' 执行失败", name)
            return f"Error executing {name}: {exc}"

        return result if isinstance(result, str) else str(result)

    @property
    def tool_names(self) -> list[str]:
        """已注册工具名列表 / Names of registered tools."""
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
