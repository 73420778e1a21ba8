"""
Shell 工具 - 在工作区执行命令，带固定超时
Shell tool - runs commands in the workspace under a fixed timeout.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Any

from PocketAgent.agent.tools.base import Tool

logger = logging.getLogger(__name__)

# 输出截断长度
MAX_OUTPUT_CHARS = 10_000

# 拒绝执行的危险命令模式
DENY_PATTERNS = (
    r"\brm\s+-[rf]{1,2}\s+/(\s|$)",
    r"\brm\s+-[rf]{1,2}\s+~(\s|$)",
    r"\bmkfs(\.\w+)?\b",
    r"\bdd\s+if=",
    r">\s*/dev/sd[a-z]",
    r"\b(shutdown|reboot|poweroff|halt)\b",
    r":\(\)\s*\{\s*:\|:&\s*\};:",
)


class ExecTool(Tool):
    """
    命令执行工具
    Command execution tool.
    """

    def __init__(
        self,
        workspace: str | Path,
        timeout: int = 60,
        path_append: str = "",
        restrict_to_workspace: bool = False,
    ) -> None:
        self._workspace = Path(workspace).expanduser()
        self._timeout = timeout
        self._path_append = path_append
        self._restrict = restrict_to_workspace
        self._deny = [re.compile(p) for p in DENY_PATTERNS]

    @property
    def name(self) -> str:
        return "exec"

    @property
    def description(self) -> str:
        return "Execute a shell command and return its output. Use with caution."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The shell command to execute"},
                "working_dir": {
                    "type": "string",
                    "description": "Optional working directory for the command",
                },
            },
            "required": ["command"],
        }

    def _guard(self, command: str, cwd: Path) -> str | None:
        """安全检查，返回拒绝原因 / Safety check; returns a refusal reason or None."""
        lowered = command.strip().lower()
        for pattern in self._deny:
            if pattern.search(lowered):
                return "Error: Command blocked by safety guard (dangerous pattern detected)"

        if self._restrict:
            root = self._workspace.resolve()
            resolved = cwd.resolve()
            if resolved != root and root not in resolved.parents:
                return "Error: Command blocked by safety guard (working_dir outside workspace)"
            if "../" in command or "..\\" in command:
                return "Error: Command blocked by safety guard (path traversal detected)"
        return None

    async def execute(self, command: str, working_dir: str | None = None, **kwargs: Any) -> str:
        cwd = self._workspace
        if working_dir:
            cwd = Path(working_dir).expanduser()
            if not cwd.is_absolute():
                cwd = self._workspace / cwd

        refusal = self._guard(command, cwd)
        if refusal:
            return refusal

        env = os.environ.copy()
        if self._path_append:
            env["PATH"] = env.get("PATH", "") + os.pathsep + self._path_append

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd),
                env=env,
            )
        except OSError as exc:
            return f"Error executing command: {exc}"

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("命令执行超时 (%ds): %s", self._timeout, command)
            return f"Error: Command timed out after {self._timeout} seconds"

        parts: list[str] = []
        if stdout:
            parts.append(stdout.decode("utf-8", errors="replace"))
        if stderr:
            err_text = stderr.decode("utf-8", errors="replace")
            if err_text.strip():
                parts.append(f"STDERR:\n{err_text}")
        if process.returncode != 0:
            parts.append(f"\nExit code: {process.returncode}")

        result = "\n".join(parts) if parts else "(no output)"
        if len(result) > MAX_OUTPUT_CHARS:
            result = result[:MAX_OUTPUT_CHARS] + f"\n... (truncated, {len(result) - MAX_OUTPUT_CHARS} more chars)"
        return result
