from hunyuan.tools.base import FunctionTool, Tool
from hunyuan.tools.registry import ToolRegistry

__all__ = ["FunctionTool", "Tool", "ToolRegistry"]
