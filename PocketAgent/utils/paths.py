"""
路径工具 - 管理数据目录与工作区路径
Path utility - manages the data directory and workspace paths.

数据目录由环境变量 POCKETAGENT_DATA_PATH 指定，默认为 ./data。
The data directory comes from ``POCKETAGENT_DATA_PATH`` (default ``./data``).
"""

from __future__ import annotations

import os

DATA_PATH_ENV = "POCKETAGENT_DATA_PATH"
CONFIG_FILE_NAME = "pocketagent.json"


def get_data_path() -> str:
    """获取数据目录路径 / Get data directory path."""
    path = os.environ.get(DATA_PATH_ENV, "data")
    os.makedirs(path, exist_ok=True)
    return path


def get_config_path() -> str:
    """获取配置目录路径 / Get config directory path."""
    path = os.path.join(get_data_path(), "config")
    os.makedirs(path, exist_ok=True)
    return path


def get_config_file() -> str:
    """获取配置文件路径 / Get the config file path."""
    return os.path.join(get_config_path(), CONFIG_FILE_NAME)


def get_logs_path() -> str:
    """获取日志目录路径 / Get logs directory path."""
    path = os.path.join(get_data_path(), "logs")
    os.makedirs(path, exist_ok=True)
    return path


def get_workspace_path(configured: str | None = None) -> str:
    """
    获取工作区路径，未配置时使用 <data>/workspace
    Get the workspace path; ``<data>/workspace`` when not configured.
    """
    if configured:
        path = os.path.expanduser(configured)
    else:
        path = os.path.join(get_data_path(), "workspace")
    os.makedirs(path, exist_ok=True)
    return os.path.abspath(path)
