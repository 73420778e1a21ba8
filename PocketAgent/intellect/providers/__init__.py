"""内置对话提供者 / Built-in chat providers."""

from PocketAgent.intellect.providers.anthropic_chat import AnthropicChatProvider
from PocketAgent.intellect.providers.openai_chat import OpenAIChatProvider

__all__ = ["AnthropicChatProvider", "OpenAIChatProvider"]
