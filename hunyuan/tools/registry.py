from __future__ import annotations

import asyncio
import json
import logging
from importlib.metadata import entry_points

from hunyuan.errors import UnknownToolError
from hunyuan.llm.types import ToolDefinition
from hunyuan.tools.base import Tool
from hunyuan.tools.validation import ToolValidator
from hunyuan.types import ErrorCode, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Maps tool names to implementations; resolves definitions and runs calls."""

    def __init__(self, timeout: float = 30.0):
        self._tools: dict[str, Tool] = {}
        self.timeout = timeout

    def register(self, tool: Tool, *, overwrite: bool = False) -> None:
        if tool.name in self._tools and not overwrite:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        t = self.get(name)
        if not t:
            raise UnknownToolError(name, known=sorted(self._tools))
        return t

    def list(self) -> list[Tool]:
        return sorted(self._tools.values(), key=lambda t: t.name)

    def resolve(self, names: set[str] | frozenset[str]) -> list[ToolDefinition]:
        """Definitions for *names*, ordered by name. Unknown names raise."""
        return [self.require(name).to_definition() for name in sorted(names)]

    async def execute(
        self,
        name: str,
        arguments: str | dict,
        *,
        timeout: float | None = None,
    ) -> ToolResult:
        """
        Run tool *name* with the model-supplied *arguments*.

        An unknown tool raises ``UnknownToolError``.  Bad arguments, tool
        exceptions and timeouts come back as failed ``ToolResult`` objects
        so the model can see what went wrong.
        """
        tool = self.require(name)

        if isinstance(arguments, str):
            try:
                args = json.loads(arguments or "{}")
            except json.JSONDecodeError as e:
                return ToolResult(
                    success=False,
                    content="",
                    error=f"Arguments are not valid JSON: {e}",
                    error_code=ErrorCode.INVALID_ARGUMENTS,
                )
        else:
            args = arguments
        if not isinstance(args, dict):
            return ToolResult(
                success=False,
                content="",
                error="Arguments must be a JSON object",
                error_code=ErrorCode.INVALID_ARGUMENTS,
            )

        valid, error_msg = ToolValidator.validate(tool, args)
        if not valid:
            return ToolResult(
                success=False,
                content="",
                error=error_msg,
                error_code=ErrorCode.VALIDATION_ERROR,
            )

        limit = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(tool.execute(**args), timeout=limit)
        except asyncio.TimeoutError:
            return ToolResult(
                success=False,
                content="",
                error=f"Timeout after {limit}s",
                error_code=ErrorCode.TIMEOUT,
            )
        except Exception as e:
            logger.exception("Tool %s raised", name)
            return ToolResult(
                success=False,
                content="",
                error=str(e),
                error_code=ErrorCode.TOOL_EXCEPTION,
            )

    def load_plugins(
        self,
        *,
        enabled: bool,
        group: str = "hunyuan.tools",
        allow_tools: set[str] | None = None,
    ) -> int:
        """Register tools advertised under the *group* entry point."""
        if not enabled:
            return 0
        loaded = 0
        for ep in entry_points(group=group):
            if allow_tools and ep.name not in allow_tools:
                continue
            tool_cls = ep.load()
            self.register(tool_cls())
            loaded += 1
        return loaded
