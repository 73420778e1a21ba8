"""
配置管理器 - 读写、迁移和合并配置
Config manager - reads, writes, migrates and merges configuration.

使用 JSON 文件存储，支持默认值合并和嵌套键访问。
Uses JSON file storage with default value merging and nested key access.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from typing import Any

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
# 这些键下的子键原样保留（如 HTTP 头）
_VERBATIM_KEYS = frozenset({"extra_headers"})


def camel_to_snake(name: str) -> str:
    """``restrictToWorkspace`` -> ``restrict_to_workspace``."""
    return _CAMEL_RE.sub(r"_\1", name).lower() if _CAMEL_RE.search(name) else name


def normalize_keys(data: Any) -> Any:
    """
    递归地把 camelCase 键转为 snake_case
    Recursively convert camelCase keys to snake_case.
    """
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            new_key = camel_to_snake(key) if isinstance(key, str) else key
            result[new_key] = value if new_key in _VERBATIM_KEYS else normalize_keys(value)
        return result
    if isinstance(data, list):
        return [normalize_keys(item) for item in data]
    return data


def migrate_config(data: dict[str, Any]) -> dict[str, Any]:
    """
    迁移旧版配置
    Migrate older config layouts.

    - camelCase 键统一为 snake_case
    - tools.exec.restrict_to_workspace 移到 tools.restrict_to_workspace
    """
    data = normalize_keys(data)
    tools = data.get("tools")
    if isinstance(tools, dict):
        exec_conf = tools.get("exec")
        if isinstance(exec_conf, dict) and "restrict_to_workspace" in exec_conf:
            value = exec_conf.pop("restrict_to_workspace")
            tools.setdefault("restrict_to_workspace", value)
    return data


class ConfigManager:
    """
    配置管理器 - 应用的配置中心
    Config manager - the configuration center of the application.

    支持：
    - 嵌套键访问（如 "agents.defaults.model"）
    - 默认值自动合并
    - 持久化到 JSON 文件
    """

    def __init__(
        self,
        defaults: dict[str, Any] | None = None,
        config_path: str | None = None,
    ) -> None:
        self._defaults = defaults or {}
        self._config: dict[str, Any] = {}
        if config_path is None:
            from PocketAgent.utils.paths import get_config_file

            config_path = get_config_file()
        self._config_path = config_path

    @property
    def path(self) -> str:
        return self._config_path

    async def load(self, persist: bool = True) -> None:
        """
        加载配置文件
        Load configuration file.
        """
        os.makedirs(os.path.dirname(self._config_path) or ".", exist_ok=True)

        if os.path.exists(self._config_path):
            try:
                with open(self._config_path, encoding="utf-8") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError("config root must be an object")
                self._config = migrate_config(loaded)
                logger.info("配置已从 %s 加载", self._config_path)
            except (ValueError, OSError) as exc:
                logger.warning("加载配置失败，使用默认值: %s", exc)
                self._config = {}
        else:
            self._config = {}
            logger.info("未找到配置文件，将创建默认配置")

        # 合并默认值
        self._merge_defaults(self._config, self._defaults)
        if persist:
            await self.save()

    async def save(self) -> None:
        """
        保存配置到文件
        Save configuration to file.
        """
        try:
            os.makedirs(os.path.dirname(self._config_path) or ".", exist_ok=True)
            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, ensure_ascii=False, indent=2)
        except OSError:
            logger.exception("保存配置失败")

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值（支持嵌套键，如 "tools.exec.timeout"）
        Get config value (supports nested keys like "tools.exec.timeout").
        """
        current: Any = self._config
        for k in key.split("."):
            if isinstance(current, dict):
                current = current.get(k)
            else:
                return default
            if current is None:
                return default
        return current

    def set(self, key: str, value: Any) -> None:
        """
        设置配置值（支持嵌套键）
        Set config value (supports nested keys).
        """
        keys = key.split(".")
        current = self._config
        for k in keys[:-1]:
            if k not in current or not isinstance(current[k], dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    def as_dict(self) -> dict[str, Any]:
        """获取完整配置字典 / Get the full config dictionary."""
        return dict(self._config)

    def _merge_defaults(self, config: dict[str, Any], defaults: dict[str, Any]) -> None:
        """
        递归合并默认值到配置中（不覆盖已有值）
        Recursively merge defaults into config (does not overwrite existing).
        """
        for key, default_value in defaults.items():
            if key not in config:
                config[key] = copy.deepcopy(default_value)
            elif isinstance(default_value, dict) and isinstance(config[key], dict):
                self._merge_defaults(config[key], default_value)
