"""Tests for the conversation driver."""

import asyncio
from pathlib import Path

import pytest
from conftest import ScriptedProvider, tool_call

from PocketAgent.agent.context import RUNTIME_CONTEXT_TAG
from PocketAgent.agent.loop import AgentLoop, TurnState
from PocketAgent.bus.events import InboundMessage
from PocketAgent.bus.queue import MessageBus
from PocketAgent.intellect.base import LLMResponse, ToolCallRequest


def _inbound(content: str, chat_id: str = "default", **kwargs) -> InboundMessage:
    return InboundMessage(channel="cli", sender_id="user", chat_id=chat_id, content=content, **kwargs)


class TestDefaults:
    def test_registers_builtin_tools(self, make_loop) -> None:
        loop, _ = make_loop([])
        assert set(loop.tools.tool_names) == {
            "read_file",
            "write_file",
            "edit_file",
            "list_dir",
            "exec",
            "web_search",
            "web_fetch",
            "message",
        }

    def test_model_defaults_to_provider_model(self, make_loop) -> None:
        loop, _ = make_loop([])
        assert loop.model == "fake/model"


class TestProcessMessage:
    @pytest.mark.asyncio
    async def test_list_files_scenario(self, make_loop, workspace: Path, bus: MessageBus) -> None:
        (workspace / "a.txt").write_text("a", encoding="utf-8")
        loop, provider = make_loop(
            [
                tool_call("list_dir", '{"path": "."}'),
                LLMResponse(content="There is one file: a.txt"),
            ]
        )

        reply = await loop.process_message(_inbound("list files", metadata={"k": "v"}))

        assert reply.channel == "cli"
        assert reply.chat_id == "default"
        assert reply.content == "There is one file: a.txt"
        assert reply.metadata == {"k": "v"}

        history = loop.sessions.get_history("cli:default")
        assert [m["role"] for m in history] == ["user", "user", "assistant", "tool", "assistant"]
        assert history[0]["content"].startswith(RUNTIME_CONTEXT_TAG)
        assert history[1]["content"] == "list files"
        assert history[2]["tool_calls"][0]["function"]["name"] == "list_dir"
        assert history[3]["content"] == "[FILE] a.txt"
        assert history[3]["tool_call_id"] == "call_1"
        assert history[4]["content"] == "There is one file: a.txt"

        assert len(provider.calls) == 2
        assert provider.calls[0]["tools"] == loop.tools.get_definitions()
        assert provider.calls[0]["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_run_publishes_exactly_one_reply(self, make_loop, workspace: Path, bus: MessageBus) -> None:
        (workspace / "a.txt").write_text("a", encoding="utf-8")
        loop, _ = make_loop(
            [
                tool_call("list_dir", '{"path": "."}'),
                LLMResponse(content="There is one file: a.txt"),
            ]
        )
        runner = asyncio.create_task(loop.run())
        await bus.publish_inbound(_inbound("list files"))

        reply = await asyncio.wait_for(bus.consume_outbound(), timeout=5)
        loop.stop()
        await asyncio.wait_for(runner, timeout=5)

        assert reply.content == "There is one file: a.txt"
        assert bus.outbound_size == 0
        assert len(loop.sessions.get_history("cli:default")) == 5

    @pytest.mark.asyncio
    async def test_history_carries_into_next_turn(self, make_loop) -> None:
        loop, provider = make_loop([LLMResponse(content="first"), LLMResponse(content="second")])

        await loop.process_message(_inbound("one"))
        await loop.process_message(_inbound("two"))

        second_call = provider.calls[1]["messages"]
        assert [m.get("content") for m in second_call if m["role"] == "assistant"] == ["first"]
        assert len(loop.sessions.get_history("cli:default")) == 6

    @pytest.mark.asyncio
    async def test_empty_reply_becomes_placeholder(self, make_loop) -> None:
        loop, _ = make_loop([LLMResponse(content=None)])
        reply = await loop.process_message(_inbound("hi"))
        assert reply.content == "No response"


class TestTurnOutcomes:
    @pytest.mark.asyncio
    async def test_exhaustion(self, make_loop) -> None:
        loop, provider = make_loop(
            [tool_call("list_dir", '{"path": "."}')], repeat_last=True, max_iterations=3
        )

        result = await loop.run_turn("loop forever", session_key="k", channel="cli", chat_id="c")

        assert result.state is TurnState.EXHAUSTED
        assert result.iterations == 3
        assert len(provider.calls) == 3
        assert result.content == (
            "I reached the maximum number of iterations (3) without completing the task."
        )
        assert result.tools_used == ["list_dir"] * 3
        stored = loop.sessions.get_history("k")
        assert stored and stored[-1]["role"] == "tool"

    @pytest.mark.asyncio
    async def test_exhaustion_reply_published_once(self, make_loop, bus: MessageBus) -> None:
        loop, _ = make_loop(
            [tool_call("list_dir", '{"path": "."}')], repeat_last=True, max_iterations=2
        )
        reply = await loop.process_message(_inbound("go"))
        assert reply.content.startswith("I reached the maximum number of iterations (2)")
        assert bus.outbound_size == 0

    @pytest.mark.asyncio
    async def test_history_window_respected(self, make_loop) -> None:
        loop, _ = make_loop(
            [tool_call("list_dir", '{"path": "."}')], repeat_last=True, max_iterations=10, memory_window=7
        )
        result = await loop.run_turn("x", session_key="k", channel="cli", chat_id="c")
        assert len(result.messages) <= 7
        assert result.messages[0]["role"] != "tool"

    @pytest.mark.asyncio
    async def test_malformed_arguments_become_tool_error(self, make_loop) -> None:
        loop, provider = make_loop([tool_call("list_dir", "{not json"), LLMResponse(content="ok")])

        result = await loop.run_turn("x", session_key="k", channel="cli", chat_id="c")

        assert result.state is TurnState.DONE
        tool_msg = next(m for m in result.messages if m["role"] == "tool")
        assert tool_msg["content"].startswith("Error: Invalid JSON arguments for tool 'list_dir'")

    @pytest.mark.asyncio
    async def test_non_object_arguments_become_tool_error(self, make_loop) -> None:
        loop, _ = make_loop([tool_call("list_dir", '["."]'), LLMResponse(content="ok")])
        result = await loop.run_turn("x", session_key="k", channel="cli", chat_id="c")
        tool_msg = next(m for m in result.messages if m["role"] == "tool")
        assert tool_msg["content"] == "Error: Arguments for tool 'list_dir' must be a JSON object"

    @pytest.mark.asyncio
    async def test_unknown_tool_and_multiple_calls_in_order(self, make_loop, workspace: Path) -> None:
        (workspace / "a.txt").write_text("hello", encoding="utf-8")
        loop, _ = make_loop(
            [
                LLMResponse(
                    tool_calls=[
                        ToolCallRequest(id="1", name="ghost", arguments="{}"),
                        ToolCallRequest(id="2", name="read_file", arguments='{"path": "a.txt"}'),
                    ]
                ),
                LLMResponse(content="done"),
            ]
        )
        result = await loop.run_turn("x", session_key="k", channel="cli", chat_id="c")

        tool_msgs = [m for m in result.messages if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_msgs] == ["1", "2"]
        assert tool_msgs[0]["content"] == "Error: Tool 'ghost' not found"
        assert tool_msgs[1]["content"] == "hello"

    @pytest.mark.asyncio
    async def test_backend_error_is_flagged_but_done(self, make_loop) -> None:
        loop, _ = make_loop([LLMResponse.failure(ConnectionError("refused"))])

        result = await loop.run_turn("x", session_key="k", channel="cli", chat_id="c")

        assert result.state is TurnState.DONE
        assert result.backend_error is True
        assert result.content == "Error calling LLM: refused"

    @pytest.mark.asyncio
    async def test_tool_hints_published(self, make_loop, bus: MessageBus) -> None:
        loop, _ = make_loop(
            [tool_call("list_dir", '{"path": "."}'), LLMResponse(content="ok")], send_tool_hints=True
        )
        await loop.process_message(_inbound("x"))

        hint = await asyncio.wait_for(bus.consume_outbound(), timeout=1)
        assert hint.content == '🔧 list_dir(".")'
        assert hint.metadata == {"_tool_hint": True}


class TestDispatchBoundary:
    @pytest.mark.asyncio
    async def test_exception_becomes_apology(self, bus: MessageBus, workspace: Path) -> None:
        class ExplodingProvider(ScriptedProvider):
            async def chat(self, *args, **kwargs):
                raise RuntimeError("kaboom")

        loop = AgentLoop(bus=bus, provider=ExplodingProvider(), workspace=workspace)
        runner = asyncio.create_task(loop.run())
        await bus.publish_inbound(_inbound("hi", chat_id="room", metadata={"m": 1}))

        reply = await asyncio.wait_for(bus.consume_outbound(), timeout=5)
        loop.stop()
        await asyncio.wait_for(runner, timeout=5)

        assert reply.content == "Sorry, I encountered an error: kaboom"
        assert reply.chat_id == "room"
        assert reply.metadata == {"m": 1}

    @pytest.mark.asyncio
    async def test_same_session_turns_serialize(self, bus: MessageBus, workspace: Path) -> None:
        active = 0
        peak = 0

        class SlowProvider(ScriptedProvider):
            async def chat(self, *args, **kwargs):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.02)
                active -= 1
                return LLMResponse(content="ok")

        loop = AgentLoop(bus=bus, provider=SlowProvider(), workspace=workspace)
        await asyncio.gather(
            loop.process_message(_inbound("a")),
            loop.process_message(_inbound("b")),
        )
        assert peak == 1
        assert len(loop.sessions.get_history("cli:default")) == 6

    @pytest.mark.asyncio
    async def test_different_sessions_run_concurrently(self, bus: MessageBus, workspace: Path) -> None:
        active = 0
        peak = 0

        class SlowProvider(ScriptedProvider):
            async def chat(self, *args, **kwargs):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.02)
                active -= 1
                return LLMResponse(content="ok")

        loop = AgentLoop(bus=bus, provider=SlowProvider(), workspace=workspace)
        await asyncio.gather(
            loop.process_message(_inbound("a", chat_id="one")),
            loop.process_message(_inbound("b", chat_id="two")),
        )
        assert peak == 2

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_turn_finish(self, bus: MessageBus, workspace: Path) -> None:
        started = asyncio.Event()

        class SlowProvider(ScriptedProvider):
            async def chat(self, *args, **kwargs):
                started.set()
                await asyncio.sleep(0.05)
                return LLMResponse(content="finished")

        loop = AgentLoop(bus=bus, provider=SlowProvider(), workspace=workspace)
        runner = asyncio.create_task(loop.run())
        await bus.publish_inbound(_inbound("slow"))
        await asyncio.wait_for(started.wait(), timeout=1)

        loop.stop()
        await asyncio.wait_for(runner, timeout=5)

        assert not runner.cancelled()
        assert loop.in_flight == 0
        reply = await asyncio.wait_for(bus.consume_outbound(), timeout=1)
        assert reply.content == "finished"

    @pytest.mark.asyncio
    async def test_stop_cancels_turns_past_grace(self, bus: MessageBus, workspace: Path) -> None:
        started = asyncio.Event()

        class StuckProvider(ScriptedProvider):
            async def chat(self, *args, **kwargs):
                started.set()
                await asyncio.sleep(10)
                return LLMResponse(content="never")

        loop = AgentLoop(bus=bus, provider=StuckProvider(), workspace=workspace, shutdown_grace=0.01)
        runner = asyncio.create_task(loop.run())
        await bus.publish_inbound(_inbound("stuck"))
        await asyncio.wait_for(started.wait(), timeout=1)

        loop.stop()
        await asyncio.wait_for(runner, timeout=5)

        assert loop.in_flight == 0
        assert bus.outbound_size == 0

    @pytest.mark.asyncio
    async def test_message_published_after_stop_stays_queued(self, make_loop, bus: MessageBus) -> None:
        loop, _ = make_loop([LLMResponse(content="unused")])
        runner = asyncio.create_task(loop.run())
        await asyncio.sleep(0)

        loop.stop()
        await bus.publish_inbound(_inbound("late"))
        await asyncio.wait_for(runner, timeout=5)

        assert bus.inbound_size == 1

    @pytest.mark.asyncio
    async def test_process_direct(self, make_loop) -> None:
        loop, _ = make_loop([LLMResponse(content="pong")])
        assert await loop.process_direct("ping") == "pong"
        assert len(loop.sessions.get_history("cli:direct")) == 3
