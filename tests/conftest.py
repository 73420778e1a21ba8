from pathlib import Path
from typing import Any

import pytest

from PocketAgent.agent.loop import AgentLoop
from PocketAgent.bus.queue import MessageBus
from PocketAgent.config.defaults import build_default_config
from PocketAgent.intellect.base import ChatProvider, LLMResponse, ProviderInfo, ToolCallRequest


class ScriptedProvider(ChatProvider):
    """Chat provider that replays a fixed list of responses."""

    def __init__(self, responses: list[LLMResponse] | None = None, repeat_last: bool = False) -> None:
        super().__init__(ProviderInfo(provider_name="fake", model_name="fake/model"))
        self.responses = list(responses or [])
        self.repeat_last = repeat_last
        self.calls: list[dict[str, Any]] = []

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        self.calls.append(
            {"messages": [dict(m) for m in messages], "tools": tools, "model": model}
        )
        if self.responses:
            if self.repeat_last and len(self.responses) == 1:
                return self.responses[0]
            return self.responses.pop(0)
        return LLMResponse(content="done")


def tool_call(name: str, arguments: str = "{}", call_id: str = "call_1") -> LLMResponse:
    """Build a response requesting a single tool call."""
    return LLMResponse(
        content=None,
        tool_calls=[ToolCallRequest(id=call_id, name=name, arguments=arguments)],
        finish_reason="tool_calls",
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Provide an empty workspace directory."""
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def bus() -> MessageBus:
    return MessageBus()


@pytest.fixture
def default_config() -> dict[str, Any]:
    return build_default_config()


@pytest.fixture
def make_loop(bus: MessageBus, workspace: Path):
    """Factory building an AgentLoop around a ScriptedProvider."""

    def _make(responses: list[LLMResponse], **kwargs: Any) -> tuple[AgentLoop, ScriptedProvider]:
        provider = ScriptedProvider(responses, repeat_last=kwargs.pop("repeat_last", False))
        loop = AgentLoop(bus=bus, provider=provider, workspace=workspace, **kwargs)
        return loop, provider

    return _make
