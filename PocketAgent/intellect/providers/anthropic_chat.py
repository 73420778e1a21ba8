"""
Anthropic Claude 对话提供者
Anthropic Claude chat provider.

内部消息统一为 OpenAI 格式，这里在请求前后做双向转换。
Messages are kept in OpenAI shape internally; this module converts them
to and from the Anthropic Messages API.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from PocketAgent.intellect.base import (
    ChatProvider,
    LLMResponse,
    ProviderInfo,
    ToolCallRequest,
)
from PocketAgent.intellect.resolver import ProviderSelection

logger = logging.getLogger(__name__)

_DEFAULT_ANTHROPIC_BASE = "https://api.anthropic.com"


def _text_of(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") for part in content if isinstance(part, dict)
        )
    return str(content)


def convert_messages(messages: list[dict[str, Any]]) -> tuple[str, list[dict[str, Any]]]:
    """
    OpenAI 消息 -> (system, Anthropic 消息)
    OpenAI messages -> (system prompt, Anthropic messages).

    连续的 tool 结果合并进同一条 user 消息。
    Consecutive tool results are merged into a single user message.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []

    for msg in messages:
        role = msg.get("role")
        if role == "system":
            system_parts.append(_text_of(msg.get("content")))
            continue

        if role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.get("tool_call_id", ""),
                "content": _text_of(msg.get("content")),
            }
            last = converted[-1] if converted else None
            if (
                last is not None
                and last["role"] == "user"
                and isinstance(last["content"], list)
                and all(b.get("type") == "tool_result" for b in last["content"])
            ):
                last["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if role == "assistant":
            blocks: list[dict[str, Any]] = []
            text = _text_of(msg.get("content"))
            if text:
                blocks.append({"type": "text", "text": text})
            for tc in msg.get("tool_calls") or []:
                fn = tc.get("function", {})
                try:
                    args = json.loads(fn.get("arguments") or "{}")
                except json.JSONDecodeError:
                    args = {}
                if not isinstance(args, dict):
                    args = {}
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.get("id", ""),
                        "name": fn.get("name", ""),
                        "input": args,
                    }
                )
            converted.append({"role": "assistant", "content": blocks or ""})
            continue

        converted.append({"role": "user", "content": _text_of(msg.get("content"))})

    return "\n\n".join(p for p in system_parts if p), converted


def convert_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """OpenAI 工具定义 -> Anthropic 工具定义 / OpenAI tool schemas -> Anthropic tools."""
    result = []
    for tool in tools:
        fn = tool.get("function", tool)
        result.append(
            {
                "name": fn["name"],
                "description": fn.get("description", ""),
                "input_schema": fn.get("parameters") or {"type": "object", "properties": {}},
            }
        )
    return result


class AnthropicChatProvider(ChatProvider):
    """Anthropic Claude 对话提供者 / Anthropic Claude chat provider."""

    def __init__(self, selection: ProviderSelection) -> None:
        super().__init__(
            ProviderInfo(
                provider_name=selection.name,
                display_name=selection.display_name,
                model_name=selection.resolved_model,
                endpoint=selection.api_base,
            )
        )
        self._selection = selection
        self._client: Any = None

    def _ensure_client(self) -> Any:
        if self._client is None:
            from anthropic import AsyncAnthropic

            kwargs: dict[str, Any] = {"api_key": self._selection.api_key}
            base = self._selection.api_base.rstrip("/")
            # SDK 自行拼接 /v1
            if base.endswith("/v1"):
                base = base[: -len("/v1")]
            if base and base != _DEFAULT_ANTHROPIC_BASE:
                kwargs["base_url"] = base
            if self._selection.extra_headers:
                kwargs["default_headers"] = self._selection.extra_headers
            self._client = AsyncAnthropic(**kwargs)
        return self._client

    def _request_model(self, model: str | None) -> str:
        name = model or self._selection.resolved_model
        if name.startswith("anthropic/"):
            name = name[len("anthropic/"):]
        return name

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        system, converted = convert_messages(messages)
        request_kwargs: dict[str, Any] = {
            "model": self._request_model(model),
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": converted,
        }
        if system:
            request_kwargs["system"] = system
        if tools:
            request_kwargs["tools"] = convert_tools(tools)

        try:
            client = self._ensure_client()
            response = await client.messages.create(**request_kwargs)
        except Exception as exc:
            logger.error("Anthropic API 调用失败: %s", exc)
            return LLMResponse.failure(exc)

        texts: list[str] = []
        thinking: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        for block in response.content or []:
            kind = getattr(block, "type", "")
            if kind == "text":
                texts.append(block.text)
            elif kind == "thinking":
                thinking.append(getattr(block, "thinking", ""))
            elif kind == "tool_use":
                tool_calls.append(
                    ToolCallRequest(
                        id=block.id,
                        name=block.name,
                        arguments=json.dumps(block.input, ensure_ascii=False),
                    )
                )

        return LLMResponse(
            content="".join(texts) or None,
            tool_calls=tool_calls,
            reasoning_content="".join(thinking) or None,
            finish_reason=response.stop_reason or "stop",
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
