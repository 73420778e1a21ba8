"""
工具基类 - 所有可被智能体调用的工具的抽象
Tool base - abstraction for every tool the agent can call.

工具是一组动态注册的异构对象，只共享能力契约：
name / description / parameters / execute。
Tools are a heterogeneous, dynamically registered set sharing only a
capability contract: name / description / parameters / execute.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class Tool(ABC):
    """
    工具抽象基类
    Tool abstract base class.

    execute() 对预期内的失败不应抛异常，而是返回可读的错误文本。
    execute() must not raise for expected failures; it returns
    human-readable error text instead.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """工具名（注册表内唯一）/ Tool name, unique within a registry."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """
        参数模式（JSON Schema 对象）
        Parameter schema as a JSON Schema object.
        """
        ...

    @abstractmethod
    async def execute(self, **params: Any) -> str:
        """
        执行工具
        Execute the tool.
        """
        ...

    def to_schema(self) -> dict[str, Any]:
        """
        导出为 OpenAI function calling 格式
        Export as OpenAI function calling schema.
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def validate_params(self, params: Any) -> list[str]:
        """
        校验必填参数，返回错误列表（为空表示通过）
        Validate required parameters; an empty list means valid.
        """
        if not isinstance(params, Mapping):
            return [f"parameters must be an object, got {type(params).__name__}"]

        required = self.parameters.get("required", [])
        return [
            f"missing required parameter: {field_name}"
            for field_name in required
            if field_name not in params
        ]
