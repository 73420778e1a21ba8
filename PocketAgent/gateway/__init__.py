"""
网关模块 - 渠道适配器与出站分发
Gateway module - channel adapters and outbound dispatch.
"""

from PocketAgent.gateway.base import Gateway, GatewayStatus
from PocketAgent.gateway.registry import GatewayRegistry

__all__ = ["Gateway", "GatewayRegistry", "GatewayStatus"]
