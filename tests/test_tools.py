"""Tests for the tool registry and built-in tools."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from PocketAgent.agent.tools import (
    EditFileTool,
    ExecTool,
    ListDirTool,
    MessageTool,
    ReadFileTool,
    Tool,
    ToolRegistry,
    WriteFileTool,
)
from PocketAgent.agent.tools.web import extract_text, format_ddg_results


class EchoTool(Tool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo the text back."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        }

    async def execute(self, text: str, **kwargs: Any) -> str:
        return text


class BrokenTool(EchoTool):
    @property
    def name(self) -> str:
        return "broken"

    async def execute(self, text: str, **kwargs: Any) -> str:
        raise RuntimeError("boom")


class CountingTool(EchoTool):
    @property
    def name(self) -> str:
        return "count"

    async def execute(self, text: str, **kwargs: Any) -> int:  # type: ignore[override]
        return len(text)


@pytest.fixture
def registry() -> ToolRegistry:
    reg = ToolRegistry()
    reg.register(EchoTool())
    reg.register(BrokenTool())
    reg.register(CountingTool())
    return reg


class TestToolRegistry:
    def test_definitions_use_function_schema(self, registry: ToolRegistry) -> None:
        definitions = registry.get_definitions()
        assert len(definitions) == 3
        echo = next(d for d in definitions if d["function"]["name"] == "echo")
        assert echo["type"] == "function"
        assert echo["function"]["parameters"]["required"] == ["text"]

    def test_register_overwrites_and_unregister_is_idempotent(self, registry: ToolRegistry) -> None:
        registry.register(EchoTool())
        assert len(registry) == 3
        registry.unregister("echo")
        registry.unregister("echo")
        assert "echo" not in registry
        assert registry.get("echo") is None

    @pytest.mark.asyncio
    async def test_execute_success(self, registry: ToolRegistry) -> None:
        assert await registry.execute("echo", {"text": "hi"}) == "hi"

    @pytest.mark.asyncio
    async def test_unknown_tool_returns_error_text(self, registry: ToolRegistry) -> None:
        assert await registry.execute("nope", {}) == "Error: Tool 'nope' not found"

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self, registry: ToolRegistry) -> None:
        result = await registry.execute("echo", {})
        assert result.startswith("Error: Invalid parameters for tool 'echo'")
        assert "missing required parameter: text" in result

    @pytest.mark.asyncio
    async def test_non_object_params(self, registry: ToolRegistry) -> None:
        result = await registry.execute("echo", ["hi"])
        assert result.startswith("Error: Invalid parameters for tool 'echo'")

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_text(self, registry: ToolRegistry) -> None:
        assert await registry.execute("broken", {"text": "x"}) == "Error executing broken: boom"

    @pytest.mark.asyncio
    async def test_non_string_result_is_stringified(self, registry: ToolRegistry) -> None:
        assert await registry.execute("count", {"text": "abcd"}) == "4"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,params",
        [
            ("echo", {"text": "ok"}),
            ("echo", {}),
            ("echo", None),
            ("broken", {"text": "x"}),
            ("missing", {"text": "x"}),
            ("echo", {"text": "x", "extra": 1}),
        ],
    )
    async def test_execute_always_returns_string(
        self, registry: ToolRegistry, name: str, params: Any
    ) -> None:
        assert isinstance(await registry.execute(name, params), str)


class TestFilesystemTools:
    @pytest.mark.asyncio
    async def test_write_then_read(self, workspace: Path) -> None:
        write = WriteFileTool(workspace)
        result = await write.execute(path="notes/a.txt", content="hello")
        assert result.startswith("Successfully wrote 5 characters")
        assert await ReadFileTool(workspace).execute(path="notes/a.txt") == "hello"

    @pytest.mark.asyncio
    async def test_read_missing_file(self, workspace: Path) -> None:
        assert await ReadFileTool(workspace).execute(path="nope.txt") == "Error: File not found: nope.txt"

    @pytest.mark.asyncio
    async def test_edit_replaces_unique_text(self, workspace: Path) -> None:
        (workspace / "a.txt").write_text("one two three", encoding="utf-8")
        tool = EditFileTool(workspace)

        result = await tool.execute(path="a.txt", old_text="two", new_text="2")

        assert result.startswith("Successfully edited")
        assert (workspace / "a.txt").read_text(encoding="utf-8") == "one 2 three"

    @pytest.mark.asyncio
    async def test_edit_reports_ambiguous_and_missing_text(self, workspace: Path) -> None:
        (workspace / "a.txt").write_text("x x", encoding="utf-8")
        tool = EditFileTool(workspace)

        assert "appears 2 times" in await tool.execute(path="a.txt", old_text="x", new_text="y")
        assert "not found" in await tool.execute(path="a.txt", old_text="z", new_text="y")

    @pytest.mark.asyncio
    async def test_list_dir(self, workspace: Path) -> None:
        (workspace / "a.txt").write_text("a", encoding="utf-8")
        (workspace / "sub").mkdir()
        result = await ListDirTool(workspace).execute(path=".")
        assert result.splitlines() == ["[FILE] a.txt", "[DIR] sub"]

    @pytest.mark.asyncio
    async def test_list_empty_dir(self, workspace: Path) -> None:
        assert await ListDirTool(workspace).execute(path=".") == "(empty directory)"

    @pytest.mark.asyncio
    async def test_restricted_workspace_blocks_escape(self, workspace: Path) -> None:
        tool = ReadFileTool(workspace, restrict_to_workspace=True)
        result = await tool.execute(path="../outside.txt")
        assert result.startswith("Error:")
        assert "outside the workspace" in result


class TestExecTool:
    @pytest.mark.asyncio
    async def test_runs_command_in_workspace(self, workspace: Path) -> None:
        (workspace / "marker.txt").write_text("m", encoding="utf-8")
        result = await ExecTool(workspace).execute(command="ls")
        assert "marker.txt" in result

    @pytest.mark.asyncio
    async def test_reports_exit_code_and_stderr(self, workspace: Path) -> None:
        result = await ExecTool(workspace).execute(command="echo oops 1>&2; exit 3")
        assert "STDERR:" in result
        assert "oops" in result
        assert "Exit code: 3" in result

    @pytest.mark.asyncio
    async def test_timeout_becomes_error_text(self, workspace: Path) -> None:
        result = await ExecTool(workspace, timeout=1).execute(command="sleep 5")
        assert result == "Error: Command timed out after 1 seconds"

    @pytest.mark.asyncio
    async def test_dangerous_command_blocked(self, workspace: Path) -> None:
        result = await ExecTool(workspace).execute(command="rm -rf /")
        assert result.startswith("Error: Command blocked by safety guard")


class TestMessageTool:
    @pytest.mark.asyncio
    async def test_sends_to_context_target(self) -> None:
        send = AsyncMock()
        tool = MessageTool(send_callback=send)
        tool.set_context("telegram", "42")

        result = await tool.execute(content="ping")

        assert result == "Message sent to telegram:42"
        sent = send.await_args.args[0]
        assert (sent.channel, sent.chat_id, sent.content) == ("telegram", "42", "ping")

    @pytest.mark.asyncio
    async def test_requires_target_and_callback(self) -> None:
        assert await MessageTool(send_callback=AsyncMock()).execute(content="x") == (
            "Error: No target channel/chat specified"
        )
        tool = MessageTool()
        assert await tool.execute(content="x", channel="cli", chat_id="c") == (
            "Error: Message sending not configured"
        )


class TestWebHelpers:
    def test_extract_text_strips_markup(self) -> None:
        html_doc = "<html><head><title>t</title></head><body><script>x()</script><p>Hi &amp; bye</p></body></html>"
        assert extract_text(html_doc) == "Hi & bye"

    def test_format_ddg_results(self) -> None:
        data = {
            "RelatedTopics": [
                {"Text": "Python language", "FirstURL": "https://example.org/py"},
                {"Name": "group without text"},
            ],
            "AbstractText": "A programming language.",
            "AbstractURL": "https://example.org",
        }
        result = format_ddg_results(data, count=5)
        assert "- Python language\n  https://example.org/py" in result
        assert "Abstract:\nA programming language." in result
        assert format_ddg_results({}, count=5) == ""
