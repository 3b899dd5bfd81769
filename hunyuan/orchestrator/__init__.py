from hunyuan.orchestrator.core import ChatOrchestrator
from hunyuan.orchestrator.request_builder import RequestBuilder, merge_options
from hunyuan.orchestrator.tool_calls import ToolCallResolver, is_tool_call

__all__ = [
    "ChatOrchestrator",
    "RequestBuilder",
    "ToolCallResolver",
    "is_tool_call",
    "merge_options",
]
