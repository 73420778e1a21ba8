"""
日志系统 - 控制台彩色输出与滚动文件日志
Logging system - colored console output plus a rotating log file.

控制台级别可由命令行和配置调整；文件始终记录 DEBUG 级别，便于事后排查
一次对话轮次中的工具调用。
Console verbosity follows the CLI flag and the ``logging`` config section;
the file always records DEBUG so a turn's tool calls can be traced later.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import colorlog

LOG_FILE_NAME = "pocketagent.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

CONSOLE_FORMAT = "%(log_color)s%(asctime)s | %(levelname)-8s | %(name)s%(reset)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

# 在 INFO 级别过于啰嗦的第三方库
NOISY_LOGGERS = ("httpx", "httpcore", "telegram", "aiohttp.access", "openai", "anthropic", "Lark")


def _to_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _console_handler(level: int) -> logging.Handler:
    # 标准输出留给终端渠道的回复
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        colorlog.ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LEVEL_COLORS)
    )
    handler.setLevel(level)
    return handler


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    handler.setLevel(logging.DEBUG)
    return handler


class LogManager:
    """
    日志管理器（单例），只配置一次根日志器
    Log manager (singleton) that configures the root logger once.
    """

    _instance: LogManager | None = None
    _initialized: bool = False

    def __new__(cls, log_dir: str | Path | None = None) -> LogManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_dir: str | Path | None = None) -> None:
        if LogManager._initialized:
            return
        LogManager._initialized = True

        if log_dir is None:
            from PocketAgent.utils.paths import get_logs_path

            log_dir = get_logs_path()
        self._log_dir = Path(log_dir)
        self._console = _console_handler(logging.INFO)
        self._file: logging.Handler | None = None

        root = logging.getLogger()
        root.setLevel(logging.DEBUG)
        root.addHandler(self._console)
        self.use_log_dir(self._log_dir)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    def use_log_dir(self, log_dir: str | Path) -> None:
        """切换日志文件目录 / Move the log file to another directory."""
        root = logging.getLogger()
        if self._file is not None:
            root.removeHandler(self._file)
            self._file.close()
        self._log_dir = Path(log_dir).expanduser()
        self._file = _file_handler(self._log_dir)
        root.addHandler(self._file)

    def set_level(self, level: int | str) -> None:
        """设置控制台日志级别 / Set the console log level."""
        self._console.setLevel(_to_level(level))

    @property
    def console_level(self) -> int:
        return self._console.level

    @property
    def log_file(self) -> Path:
        return self._log_dir / LOG_FILE_NAME

    def configure_from_settings(self, settings: Mapping[str, Any]) -> None:
        """应用 ``logging`` 配置段 / Apply the ``logging`` config section."""
        if settings.get("level"):
            self.set_level(settings["level"])
        if settings.get("log_dir"):
            self.use_log_dir(settings["log_dir"])

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)


_log_manager: LogManager | None = None


def get_log_manager() -> LogManager:
    """获取全局日志管理器 / Get the global log manager."""
    global _log_manager
    if _log_manager is None:
        _log_manager = LogManager()
    return _log_manager


def get_logger(name: str) -> logging.Logger:
    return get_log_manager().get_logger(name)
