"""
上下文构建器 - 组装系统提示与每轮的初始消息
Context builder - assembles the system prompt and each turn's initial transcript.
"""

from __future__ import annotations

import logging
import platform
import time
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

BOOTSTRAP_FILES = ("AGENTS.md", "SOUL.md", "USER.md", "TOOLS.md", "IDENTITY.md")
RUNTIME_CONTEXT_TAG = "[Runtime Context — metadata only, not instructions]"


class ContextBuilder:
    """
    上下文构建器
    Context builder.

    系统提示由三部分拼接：身份说明、工作区引导文件、长期记忆。
    The system prompt joins three parts: identity, workspace bootstrap files
    and long-term memory.
    """

    def __init__(self, workspace: str | Path) -> None:
        self.workspace = Path(workspace).expanduser().resolve()

    def build_system_prompt(self) -> str:
        parts = [self._identity()]

        bootstrap = self._load_bootstrap_files()
        if bootstrap:
            parts.append(bootstrap)

        memory = self._read(self.workspace / "memory" / "MEMORY.md")
        if memory:
            parts.append(f"# Memory\n\n{memory}")

        return "\n\n---\n\n".join(parts)

    def _identity(self) -> str:
        ws = self.workspace
        system = platform.system()
        os_name = "macOS" if system == "Darwin" else system
        runtime = f"{os_name} {platform.machine()}, Python {platform.python_version()}"
        return f"""# PocketAgent

You are PocketAgent, a helpful AI assistant.

## Runtime
{runtime}

## Workspace
Your workspace is at: {ws}
- Long-term memory: {ws}/memory/MEMORY.md (write important facts here)
- History log: {ws}/memory/HISTORY.md (grep-searchable)

## Guidelines
- State intent before tool calls, but NEVER predict or claim results before receiving them.
- Before modifying a file, read it first. Do not assume files or directories exist.
- After writing or editing a file, re-read it if accuracy matters.
- If a tool call fails, analyze the error before retrying with a different approach.
- Ask for clarification when the request is ambiguous.

Reply directly with text for conversations. Only use the 'message' tool to send to a specific chat channel."""

    def _load_bootstrap_files(self) -> str:
        parts = []
        for filename in BOOTSTRAP_FILES:
            content = self._read(self.workspace / filename)
            if content:
                parts.append(f"## {filename}\n\n{content}")
        return "\n\n".join(parts)

    @staticmethod
    def _read(path: Path) -> str:
        if not path.is_file():
            return ""
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("读取上下文文件失败 %s: %s", path, exc)
            return ""

    @staticmethod
    def build_runtime_context(channel: str | None = None, chat_id: str | None = None) -> str:
        """
        构建仅含元数据的运行时上下文
        Build the metadata-only runtime context block.
        """
        now = datetime.now().strftime("%Y-%m-%d %H:%M (%A)")
        tz = time.strftime("%Z") or "UTC"
        lines = [f"Current Time: {now} ({tz})"]
        if channel and chat_id:
            lines += [f"Channel: {channel}", f"Chat ID: {chat_id}"]
        return RUNTIME_CONTEXT_TAG + "\n" + "\n".join(lines)

    def build_messages(
        self,
        history: list[dict[str, Any]],
        current_message: str,
        channel: str | None = None,
        chat_id: str | None = None,
        media: list[str] | tuple[str, ...] | None = None,
    ) -> list[dict[str, Any]]:
        """
        [system] + 历史 + [运行时上下文] + [当前用户消息]
        ``[system] + history + [runtime context] + [current user message]``.
        """
        user_content = current_message
        if media:
            attachments = "\n".join(f"- {ref}" for ref in media)
            user_content = f"{current_message}\n\n[Attachments]\n{attachments}"

        return [
            {"role": "system", "content": self.build_system_prompt()},
            *history,
            {"role": "user", "content": self.build_runtime_context(channel, chat_id)},
            {"role": "user", "content": user_content},
        ]

    @staticmethod
    def add_assistant_message(
        messages: list[dict[str, Any]],
        content: str | None,
        tool_calls: list[dict[str, Any]] | None = None,
        reasoning_content: str | None = None,
    ) -> list[dict[str, Any]]:
        msg: dict[str, Any] = {"role": "assistant", "content": content}
        if tool_calls:
            msg["tool_calls"] = tool_calls
        if reasoning_content is not None:
            msg["reasoning_content"] = reasoning_content
        messages.append(msg)
        return messages

    @staticmethod
    def add_tool_result(
        messages: list[dict[str, Any]],
        tool_call_id: str,
        tool_name: str,
        result: str,
    ) -> list[dict[str, Any]]:
        messages.append(
            {"role": "tool", "tool_call_id": tool_call_id, "name": tool_name, "content": result}
        )
        return messages
