"""
工具模块 - 工具契约、注册表与内置工具
Tools module - tool contract, registry and built-in tools.
"""

from PocketAgent.agent.tools.base import Tool
from PocketAgent.agent.tools.filesystem import (
    EditFileTool,
    ListDirTool,
    ReadFileTool,
    WriteFileTool,
)
from PocketAgent.agent.tools.message import MessageTool
from PocketAgent.agent.tools.registry import ToolRegistry
from PocketAgent.agent.tools.shell import ExecTool
from PocketAgent.agent.tools.web import WebFetchTool, WebSearchTool

__all__ = [
    "Tool",
    "ToolRegistry",
    "ReadFileTool",
    "WriteFileTool",
    "EditFileTool",
    "ListDirTool",
    "ExecTool",
    "WebSearchTool",
    "WebFetchTool",
    "MessageTool",
]
