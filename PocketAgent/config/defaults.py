"""
默认配置 - 所有默认配置值
Default configuration - all default configuration values.
"""

from __future__ import annotations

from typing import Any

from PocketAgent.intellect.resolver import DEFAULT_MODEL
from PocketAgent.intellect.specs import PROVIDERS


def _provider_entry() -> dict[str, Any]:
    return {"api_key": "", "api_base": "", "extra_headers": {}}


def build_default_config() -> dict[str, Any]:
    """
    构建默认配置
    Build the default configuration.
    """
    providers = {spec.name: _provider_entry() for spec in PROVIDERS}
    providers["custom"] = _provider_entry()

    return {
        # 智能体默认参数
        "agents": {
            "defaults": {
                # 为空时使用 <data>/workspace
                "workspace": "",
                "model": DEFAULT_MODEL,
                "provider": "auto",
                "max_tokens": 8192,
                "temperature": 0.1,
                "max_tool_iterations": 40,
                "memory_window": 100,
            },
        },
        # 渠道配置
        "channels": {
            "send_tool_hints": False,
            "cli": {
                "enabled": False,
                "allow_from": [],
            },
            "telegram": {
                "enabled": False,
                "token": "",
                "proxy": "",
                "allow_from": [],
            },
            "lark": {
                "enabled": False,
                "app_id": "",
                "app_secret": "",
                "encrypt_key": "",
                "verification_token": "",
                "allow_from": [],
            },
        },
        # 提供者凭据
        "providers": providers,
        # 工具配置
        "tools": {
            "web": {
                "search": {
                    "max_results": 5,
                },
            },
            "exec": {
                "timeout": 60,
                "path_append": "",
            },
            "restrict_to_workspace": False,
        },
        # 日志配置
        "logging": {
            "level": "INFO",
        },
    }
