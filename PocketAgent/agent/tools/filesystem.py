"""
文件系统工具 - 读、写、编辑文件与列出目录
Filesystem tools - read, write and edit files, list directories.

相对路径基于工作区解析；开启 restrict_to_workspace 时禁止越出工作区。
Relative paths resolve against the workspace; with restrict_to_workspace
enabled, paths escaping the workspace are refused.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from PocketAgent.agent.tools.base import Tool

logger = logging.getLogger(__name__)

# 单次读取的最大字符数
MAX_READ_CHARS = 100_000


def _resolve_path(path: str, workspace: Path, restrict: bool) -> Path:
    """
    解析路径并做沙箱检查
    Resolve a path and apply the workspace sandbox check.
    """
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = workspace / candidate
    resolved = candidate.resolve()

    if restrict:
        root = workspace.resolve()
        if resolved != root and root not in resolved.parents:
            raise PermissionError(f"Path {path} is outside the workspace {root}")
    return resolved


class _WorkspaceTool(Tool):
    """绑定工作区的工具 / Tool bound to a workspace directory."""

    def __init__(self, workspace: str | Path, restrict_to_workspace: bool = False) -> None:
        self._workspace = Path(workspace).expanduser()
        self._restrict = restrict_to_workspace

    def _resolve(self, path: str) -> Path:
        return _resolve_path(path, self._workspace, self._restrict)


class ReadFileTool(_WorkspaceTool):
    """读取文件 / Read a file."""

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read the contents of a file at the given path."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to read"},
            },
            "required": ["path"],
        }

    async def execute(self, path: str, **kwargs: Any) -> str:
        try:
            file_path = self._resolve(path)
            if not file_path.exists():
                return f"Error: File not found: {path}"
            if not file_path.is_file():
                return f"Error: Not a file: {path}"
            content = await asyncio.to_thread(
                file_path.read_text, encoding="utf-8", errors="replace"
            )
        except PermissionError as exc:
            return f"Error: {exc}"
        except OSError as exc:
            return f"Error reading file: {exc}"

        if len(content) > MAX_READ_CHARS:
            content = content[:MAX_READ_CHARS] + f"\n... (truncated, {len(content)} chars total)"
        return content


class WriteFileTool(_WorkspaceTool):
    """写入文件（自动创建父目录）/ Write a file, creating parent directories."""

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a file at the given path. Creates parent directories if needed."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to write to"},
                "content": {"type": "string", "description": "The content to write"},
            },
            "required": ["path", "content"],
        }

    async def execute(self, path: str, content: str, **kwargs: Any) -> str:
        try:
            file_path = self._resolve(path)

            def _write() -> None:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                file_path.write_text(content, encoding="utf-8")

            await asyncio.to_thread(_write)
        except PermissionError as exc:
            return f"Error: {exc}"
        except OSError as exc:
            return f"Error writing file: {exc}"
        return f"Successfully wrote {len(content)} characters to {file_path}"


class EditFileTool(_WorkspaceTool):
    """替换文件中的一段精确文本 / Replace one exact text span in a file."""

    @property
    def name(self) -> str:
        return "edit_file"

    @property
    def description(self) -> str:
        return (
            "Edit a file by replacing old_text with new_text. "
            "The old_text must exist exactly once in the file."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to edit"},
                "old_text": {"type": "string", "description": "The exact text to find and replace"},
                "new_text": {"type": "string", "description": "The text to replace with"},
            },
            "required": ["path", "old_text", "new_text"],
        }

    async def execute(self, path: str, old_text: str, new_text: str, **kwargs: Any) -> str:
        try:
            file_path = self._resolve(path)
            if not file_path.is_file():
                return f"Error: File not found: {path}"
            content = await asyncio.to_thread(file_path.read_text, encoding="utf-8")

            count = content.count(old_text)
            if count == 0:
                return "Error: old_text not found in file. The exact text must exist to perform replacement."
            if count > 1:
                return (
                    f"Warning: old_text appears {count} times. "
                    "Please provide more context to make it unique."
                )

            await asyncio.to_thread(
                file_path.write_text, content.replace(old_text, new_text, 1), encoding="utf-8"
            )
        except PermissionError as exc:
            return f"Error: {exc}"
        except OSError as exc:
            return f"Error editing file: {exc}"
        return f"Successfully edited {file_path}"


class ListDirTool(_WorkspaceTool):
    """列出目录内容 / List directory contents."""

    @property
    def name(self) -> str:
        return "list_dir"

    @property
    def description(self) -> str:
        return "List the contents of a directory."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The directory path to list"},
            },
            "required": ["path"],
        }

    async def execute(self, path: str, **kwargs: Any) -> str:
        try:
            dir_path = self._resolve(path)
            if not dir_path.exists():
                return f"Error: Directory not found: {path}"
            if not dir_path.is_dir():
                return f"Error: Not a directory: {path}"
            entries = await asyncio.to_thread(lambda: sorted(dir_path.iterdir()))
        except PermissionError as exc:
            return f"Error: {exc}"
        except OSError as exc:
            return f"Error listing directory: {exc}"

        lines = [
            f"{'[DIR]' if entry.is_dir() else '[FILE]'} {entry.name}" for entry in entries
        ]
        return "\n".join(lines) if lines else "(empty directory)"
