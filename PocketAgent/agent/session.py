"""
会话历史存储 - 按会话键保存对话记录（进程内）
Session history store - per-session-key conversation history (in process).

每个会话键配有一把 asyncio.Lock，同一会话的轮次串行执行，
不同会话之间完全并发。
Each session key owns an ``asyncio.Lock`` so turns for the same session
serialize while different sessions stay fully concurrent.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


def trim_history(messages: list[dict[str, Any]], window: int) -> list[dict[str, Any]]:
    """
    截取最近 window 条消息，并丢掉开头失去配对的 tool 消息
    Keep the last ``window`` messages and drop leading ``tool`` messages
    whose assistant tool-call was cut off.
    """
    kept = [m for m in messages if m.get("role") != "system"]
    if window <= 0:
        return []
    kept = kept[-window:]
    start = 0
    while start < len(kept) and kept[start].get("role") == "tool":
        start += 1
    return kept[start:]


class SessionStore:
    """
    会话存储
    Session store.
    """

    def __init__(self, memory_window: int = 100) -> None:
        self._memory_window = memory_window
        self._histories: dict[str, list[dict[str, Any]]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def memory_window(self) -> int:
        return self._memory_window

    def get_history(self, key: str) -> list[dict[str, Any]]:
        """获取历史副本，新会话返回空列表 / Copy of the history; empty for a new key."""
        return list(self._histories.get(key, ()))

    def save(self, key: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        保存截断后的历史
        Store the truncated history and return it.
        """
        history = trim_history(messages, self._memory_window)
        self._histories[key] = history
        logger.debug("会话 %s 已保存 %s 条消息", key, len(history))
        return list(history)

    def lock(self, key: str) -> asyncio.Lock:
        """获取会话锁 / Per-session lock, created on first use."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def clear(self, key: str) -> None:
        self._histories.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._histories)

    def __len__(self) -> int:
        return len(self._histories)
