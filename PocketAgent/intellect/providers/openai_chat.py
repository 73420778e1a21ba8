"""
OpenAI 兼容对话提供者 - 对接 OpenAI 及所有兼容端点
OpenAI-compatible chat provider - OpenAI and every compatible endpoint.

网关（OpenRouter、火山引擎）和大多数国内厂商都提供 OpenAI 兼容接口。
Gateways (OpenRouter, VolcEngine) and most vendors expose an
OpenAI-compatible API.
"""

from __future__ import annotations

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


class OpenAIChatProvider(ChatProvider):
    """
    OpenAI 兼容对话提供者
    OpenAI-compatible chat provider.
    """

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
        """确保客户端已初始化 / Ensure the client is initialized."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self._selection.api_key,
                base_url=self._selection.api_base,
                default_headers=self._selection.extra_headers or None,
            )
        return self._client

    def _request_model(self, model: str | None) -> str:
        if not model or model == self._selection.resolved_model:
            return self._selection.request_model
        return model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """
        发送对话请求
        Send a chat request.
        """
        request_kwargs: dict[str, Any] = {
            "model": self._request_model(model),
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            request_kwargs["tools"] = tools
            request_kwargs["tool_choice"] = "auto"

        logger.debug("发送请求到模型: %s", request_kwargs["model"])

        try:
            client = self._ensure_client()
            response = await client.chat.completions.create(**request_kwargs)
        except Exception as exc:
            logger.error("LLM API 调用失败: %s", exc)
            return LLMResponse.failure(exc)

        if not response.choices:
            return LLMResponse.failure("empty response from model")

        return self._parse_choice(response.choices[0])

    @staticmethod
    def _parse_choice(choice: Any) -> LLMResponse:
        message = choice.message
        tool_calls = [
            ToolCallRequest(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in (message.tool_calls or [])
        ]
        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            reasoning_content=getattr(message, "reasoning_content", None),
            finish_reason=choice.finish_reason or "stop",
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
