"""
智能体模块 - 对话驱动器、上下文、会话与工具
Agent module - conversation driver, context, sessions and tools.
"""

from PocketAgent.agent.context import ContextBuilder
from PocketAgent.agent.loop import AgentLoop, TurnResult, TurnState
from PocketAgent.agent.session import SessionStore

__all__ = ["AgentLoop", "ContextBuilder", "SessionStore", "TurnResult", "TurnState"]
