"""工具函数 / Utilities."""
