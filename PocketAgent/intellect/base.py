"""
智能层基类 - 对话模型客户端的抽象
Intellect base - abstraction for chat model clients.

后端失败不会抛给对话驱动器：客户端把错误描述放进 content，
并通过 error 标志与正常回复区分开。
Backend failures never reach the driver as exceptions: the client puts the
error description in ``content`` and sets ``error`` so it can be told apart
from a normal reply.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolCallRequest:
    """
    模型发起的工具调用请求
    A tool call requested by the model.

    arguments 保持序列化形式，由对话驱动器负责解析。
    ``arguments`` stays serialized; the driver parses it.
    """

    id: str
    name: str
    arguments: str = "{}"

    def to_openai(self) -> dict[str, Any]:
        """转为 OpenAI 消息中的 tool_calls 条目 / Convert to an OpenAI tool_calls entry."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class LLMResponse:
    """
    模型响应
    Model response.
    """

    content: str | None = None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    reasoning_content: str | None = None
    finish_reason: str = "stop"
    # 传输/后端失败标志
    error: bool = False

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @classmethod
    def failure(cls, exc: BaseException | str) -> LLMResponse:
        """构造后端失败响应 / Build a backend-failure response."""
        return cls(
            content=f"Error calling LLM: {exc}",
            tool_calls=[],
            finish_reason="error",
            error=True,
        )


@dataclass
class ProviderInfo:
    """
    提供者信息描述
    Provider information descriptor.
    """

    # 提供者名（如 openrouter, deepseek）
    provider_name: str = ""
    # 显示名称
    display_name: str = ""
    # 解析后的模型名
    model_name: str = ""
    # API 端点
    endpoint: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


class ChatProvider(ABC):
    """
    对话提供者基类
    Chat provider base.
    """

    def __init__(self, info: ProviderInfo | None = None) -> None:
        self._info = info or ProviderInfo()

    @property
    def info(self) -> ProviderInfo:
        return self._info

    @property
    def default_model(self) -> str:
        return self._info.model_name

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """
        发送对话请求；实现必须捕获传输错误并返回 LLMResponse.failure
        Send a chat request; implementations must catch transport errors
        and return ``LLMResponse.failure``.
        """
        ...

    async def close(self) -> None:
        """释放资源 / Release resources."""
        pass
