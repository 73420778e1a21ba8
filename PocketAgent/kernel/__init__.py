"""
内核模块 - 日志与生命周期
Kernel module - logging and lifecycle.
"""

from PocketAgent.kernel.bootstrap import Bootstrap, build_agent
from PocketAgent.kernel.logging import LogManager, get_log_manager, get_logger

__all__ = ["Bootstrap", "LogManager", "build_agent", "get_log_manager", "get_logger"]
