"""
PocketAgent - 多渠道工具调用对话智能体运行时
PocketAgent - a multi-channel, tool-calling conversational agent runtime.
"""

__app_name__ = "PocketAgent"
__version__ = "0.1.0"
