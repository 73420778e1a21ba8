"""
消息总线模块 - 渠道与智能体之间的解耦层
Bus module - the decoupling layer between channels and the agent.
"""

from PocketAgent.bus.events import InboundMessage, OutboundMessage
from PocketAgent.bus.queue import HandoffQueue, MessageBus

__all__ = ["InboundMessage", "OutboundMessage", "HandoffQueue", "MessageBus"]
