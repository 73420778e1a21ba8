"""
智能体循环 - 对话驱动器
Agent loop - the conversation driver.

每条入站消息执行一个轮次（turn），状态流转：
START -> PROMPTING -> (TOOL_EXECUTING -> PROMPTING)* -> DONE | EXHAUSTED

One turn per inbound message, moving through:
START -> PROMPTING -> (TOOL_EXECUTING -> PROMPTING)* -> DONE | EXHAUSTED

- 工具失败永远以文本形式回到模型
- 模型后端失败以带 error 标志的响应返回，轮次仍以 DONE 结束
- 轮次外抛出的异常在分发边界转为致歉回复
- Tool failures always reach the model as text.
- Backend failures arrive as a flagged response; the turn still ends in DONE.
- Exceptions escaping a turn become an apology reply at the dispatch boundary.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from PocketAgent.agent.context import ContextBuilder
from PocketAgent.agent.session import SessionStore
from PocketAgent.agent.tools import (
    EditFileTool,
    ExecTool,
    ListDirTool,
    MessageTool,
    ReadFileTool,
    ToolRegistry,
    WebFetchTool,
    WebSearchTool,
    WriteFileTool,
)
from PocketAgent.bus.events import InboundMessage, OutboundMessage
from PocketAgent.bus.queue import MessageBus
from PocketAgent.intellect.base import ChatProvider, ToolCallRequest

logger = logging.getLogger(__name__)

EXHAUSTED_TEMPLATE = (
    "I reached the maximum number of iterations ({n}) without completing the task."
)
EMPTY_REPLY = "No response"
APOLOGY_TEMPLATE = "Sorry, I encountered an error: {exc}"


class TurnState(str, Enum):
    """轮次状态 / Turn state."""

    START = "start"
    PROMPTING = "prompting"
    TOOL_EXECUTING = "tool_executing"
    DONE = "done"
    EXHAUSTED = "exhausted"


@dataclass
class TurnResult:
    """
    一个轮次的结果
    Result of one turn.
    """

    content: str
    messages: list[dict[str, Any]] = field(default_factory=list)
    iterations: int = 0
    tools_used: list[str] = field(default_factory=list)
    state: TurnState = TurnState.DONE
    # 最终回复来自模型后端失败
    backend_error: bool = False


def parse_tool_arguments(call: ToolCallRequest) -> tuple[dict[str, Any] | None, str | None]:
    """
    解析工具调用参数，返回 (参数, 错误文本)
    Parse a tool call's serialized arguments into ``(params, error_text)``.
    """
    raw = call.arguments
    if raw is None or not str(raw).strip():
        return {}, None
    try:
        params = json.loads(raw)
    except (TypeError, ValueError) as exc:
        return None, f"Error: Invalid JSON arguments for tool '{call.name}': {exc}"
    if not isinstance(params, dict):
        return None, f"Error: Arguments for tool '{call.name}' must be a JSON object"
    return params, None


def _format_hint(calls: list[ToolCallRequest]) -> str:
    parts = []
    for call in calls:
        params, _ = parse_tool_arguments(call)
        first = next(iter((params or {}).values()), None)
        if isinstance(first, str):
            arg = first if len(first) <= 40 else first[:40] + "…"
            parts.append(f'{call.name}("{arg}")')
        else:
            parts.append(f"{call.name}(...)")
    return "🔧 " + ", ".join(parts)


class AgentLoop:
    """
    智能体循环
    Agent loop.

    从总线消费入站消息，为每条消息启动一个任务；同一会话的轮次
    通过会话锁串行，不同会话并发执行。
    Consumes inbound messages from the bus and spawns one task per message;
    turns for the same session serialize on the session lock while
    different sessions run concurrently.
    """

    def __init__(
        self,
        bus: MessageBus,
        provider: ChatProvider,
        workspace: str | Path,
        model: str | None = None,
        max_iterations: int = 40,
        memory_window: int = 100,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        tool_config: Mapping[str, Any] | None = None,
        sessions: SessionStore | None = None,
        context: ContextBuilder | None = None,
        send_tool_hints: bool = False,
        shutdown_grace: float = 5.0,
    ) -> None:
        self.bus = bus
        self.provider = provider
        self.workspace = Path(workspace).expanduser()
        self.model = model or provider.default_model
        self.max_iterations = max_iterations
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.send_tool_hints = send_tool_hints

        self.sessions = sessions or SessionStore(memory_window)
        self.context = context or ContextBuilder(self.workspace)
        self._tools = ToolRegistry()
        self._message_tool = MessageTool(send_callback=self.bus.publish_outbound)

        self.shutdown_grace = shutdown_grace
        self._running = False
        self._run_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

        self._register_default_tools(tool_config or {})

    def _register_default_tools(self, tool_config: Mapping[str, Any]) -> None:
        restrict = bool(tool_config.get("restrict_to_workspace", False))
        exec_conf = tool_config.get("exec") or {}
        search_conf = (tool_config.get("web") or {}).get("search") or {}

        for tool_cls in (ReadFileTool, WriteFileTool, EditFileTool, ListDirTool):
            self._tools.register(tool_cls(self.workspace, restrict_to_workspace=restrict))

        self._tools.register(
            ExecTool(
                self.workspace,
                timeout=int(exec_conf.get("timeout", 60)),
                path_append=exec_conf.get("path_append", ""),
                restrict_to_workspace=restrict,
            )
        )
        self._tools.register(WebSearchTool(max_results=int(search_conf.get("max_results", 5))))
        self._tools.register(WebFetchTool())
        self._tools.register(self._message_tool)

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # 轮次 / Turn
    # ------------------------------------------------------------------

    async def run_turn(
        self,
        content: str,
        session_key: str,
        channel: str,
        chat_id: str,
        media: tuple[str, ...] | list[str] = (),
        send_hints: bool = False,
    ) -> TurnResult:
        """
        执行一个完整轮次并保存历史（调用方需持有会话锁）
        Run one full turn and store the history. Callers hold the session lock.
        """
        self._message_tool.set_context(channel, chat_id)
        history = self.sessions.get_history(session_key)
        messages = self.context.build_messages(
            history, content, channel=channel, chat_id=chat_id, media=media
        )

        result = await self._run_iterations(messages, channel, chat_id, send_hints)
        result.messages = self.sessions.save(session_key, result.messages)

        if result.state is TurnState.EXHAUSTED:
            logger.warning(
                "会话 %s 达到最大迭代次数 %s", session_key, self.max_iterations
            )
        return result

    async def _run_iterations(
        self,
        messages: list[dict[str, Any]],
        channel: str,
        chat_id: str,
        send_hints: bool,
    ) -> TurnResult:
        state = TurnState.START
        tools_used: list[str] = []
        final: str | None = None
        backend_error = False
        iteration = 0

        while iteration < self.max_iterations:
            iteration += 1
            state = TurnState.PROMPTING
            response = await self.provider.chat(
                messages=messages,
                tools=self._tools.get_definitions(),
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )

            if response.has_tool_calls:
                state = TurnState.TOOL_EXECUTING
                if send_hints:
                    await self.bus.publish_outbound(
                        OutboundMessage(
                            channel=channel,
                            chat_id=chat_id,
                            content=_format_hint(response.tool_calls),
                            metadata={"_tool_hint": True},
                        )
                    )
                self.context.add_assistant_message(
                    messages,
                    response.content,
                    [call.to_openai() for call in response.tool_calls],
                    response.reasoning_content,
                )
                for call in response.tool_calls:
                    tools_used.append(call.name)
                    logger.info("调用工具: %s", call.name)
                    result = await self._execute_tool_call(call)
                    self.context.add_tool_result(messages, call.id, call.name, result)
                continue

            if response.error:
                logger.error("模型后端失败: %s", response.content)
            backend_error = response.error
            final = response.content
            self.context.add_assistant_message(
                messages, final, reasoning_content=response.reasoning_content
            )
            state = TurnState.DONE
            break

        if state is not TurnState.DONE:
            state = TurnState.EXHAUSTED
            final = EXHAUSTED_TEMPLATE.format(n=self.max_iterations)

        return TurnResult(
            content=final or EMPTY_REPLY,
            messages=messages,
            iterations=iteration,
            tools_used=tools_used,
            state=state,
            backend_error=backend_error,
        )

    async def _execute_tool_call(self, call: ToolCallRequest) -> str:
        params, error = parse_tool_arguments(call)
        if error is not None:
            logger.warning("工具参数解析失败: %s", error)
            return error
        return await self._tools.execute(call.name, params)

    # ------------------------------------------------------------------
    # 入口 / Entry points
    # ------------------------------------------------------------------

    async def process_message(self, msg: InboundMessage) -> OutboundMessage:
        """
        处理一条入站消息，返回出站回复
        Process one inbound message and return the outbound reply.
        """
        key = msg.session_key
        preview = msg.content if len(msg.content) <= 80 else msg.content[:80] + "..."
        logger.info("处理来自 %s:%s 的消息: %s", msg.channel, msg.sender_id, preview)

        async with self.sessions.lock(key):
            result = await self.run_turn(
                msg.content,
                session_key=key,
                channel=msg.channel,
                chat_id=msg.chat_id,
                media=msg.media,
                send_hints=self.send_tool_hints,
            )

        return OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content=result.content,
            metadata=dict(msg.metadata),
        )

    async def process_direct(
        self,
        content: str,
        session_key: str = "cli:direct",
        channel: str = "cli",
        chat_id: str = "direct",
    ) -> str:
        """
        直接处理一条消息（不经过渠道），用于单次命令行调用
        Process a message directly, bypassing channels. Used by the one-shot CLI.
        """
        async with self.sessions.lock(session_key):
            result = await self.run_turn(
                content, session_key=session_key, channel=channel, chat_id=chat_id
            )
        return result.content

    async def _dispatch(self, msg: InboundMessage) -> None:
        try:
            response = await self.process_message(msg)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("处理消息失败 (会话=%s)", msg.session_key)
            response = OutboundMessage(
                channel=msg.channel,
                chat_id=msg.chat_id,
                content=APOLOGY_TEMPLATE.format(exc=exc),
                metadata=dict(msg.metadata),
            )
        await self.bus.publish_outbound(response)

    async def run(self) -> None:
        """
        消费循环，直到 stop() 被调用
        Consumption loop; runs until ``stop()`` is called.
        """
        self._running = True
        self._run_task = asyncio.current_task()
        logger.info("智能体循环已启动")

        try:
            while self._running:
                msg = await self.bus.consume_inbound()
                task = asyncio.create_task(self._dispatch(msg))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        except asyncio.CancelledError:
            # stop() 取消的是消费等待，其余取消照常向上抛出
            if self._running:
                raise
        finally:
            self._running = False
            self._run_task = None
            await self._drain()
            logger.info("智能体循环已停止")

    async def _drain(self) -> None:
        """
        等待进行中的轮次完成，超过宽限期的才取消
        Let in-flight turns finish; only those outlasting the grace period are cancelled.
        """
        pending = list(self._tasks)
        if not pending:
            return
        _, unfinished = await asyncio.wait(pending, timeout=self.shutdown_grace)
        for task in unfinished:
            task.cancel()
        if unfinished:
            logger.warning("%d 个轮次未在 %.1fs 内完成，已取消", len(unfinished), self.shutdown_grace)
            await asyncio.gather(*unfinished, return_exceptions=True)

    def stop(self) -> None:
        """
        停止接收新消息；进行中的轮次在宽限期内继续运行
        Stop taking new messages; in-flight turns keep running for the grace period.
        """
        self._running = False
        if self._run_task is not None and not self._run_task.done():
            self._run_task.cancel()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)
