from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable

from hunyuan.llm.types import ToolDefinition
from hunyuan.types import ToolResult


def normalize_schema(schema: dict) -> dict:
    s = dict(schema or {})
    s.setdefault("type", "object")
    s.setdefault("properties", {})
    return s


class Tool(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict: ...

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult: ...

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=normalize_schema(self.parameters),
        )


class FunctionTool(Tool):
    """
    Wraps a plain function (sync or async) as a tool.

    The function's return value becomes the tool content: strings are used
    as-is, ``ToolResult`` passes through, anything else is ``str()``-ed.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict,
        func: Callable[..., Any],
    ) -> None:
        self._name = name
        self._description = description
        self._parameters = parameters
        self._func = func

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict:
        return self._parameters

    async def execute(self, **kwargs) -> ToolResult:
        value = self._func(**kwargs)
        if inspect.isawaitable(value):
            value = await value
        if isinstance(value, ToolResult):
            return value
        return ToolResult(success=True, content=value if isinstance(value, str) else str(value))
