"""
智能层 - 模型客户端与提供者解析
Intellect layer - model clients and provider resolution.
"""

from PocketAgent.intellect.base import ChatProvider, LLMResponse, ProviderInfo, ToolCallRequest
from PocketAgent.intellect.registry import IntellectRegistry
from PocketAgent.intellect.resolver import (
    ProviderSelection,
    resolve_model,
    select_provider,
    wire_model,
)
from PocketAgent.intellect.specs import PROVIDERS, ProviderSpec

__all__ = [
    "PROVIDERS",
    "ChatProvider",
    "IntellectRegistry",
    "LLMResponse",
    "ProviderInfo",
    "ProviderSelection",
    "ProviderSpec",
    "ToolCallRequest",
    "resolve_model",
    "select_provider",
    "wire_model",
]
