"""Signed chat-completion client for Tencent Hunyuan with tool-call resolution."""

from hunyuan.config import HunyuanConfig, load_config
from hunyuan.errors import (
    APIError,
    ConfigurationError,
    HunyuanError,
    ToolCallDepthExceeded,
    UnknownToolError,
    ValidationError,
)
from hunyuan.llm import (
    ChatOptions,
    ChatResult,
    Conversation,
    Generation,
    HunyuanApi,
    Message,
    RequestSigner,
    RetryPolicy,
    RetryTemplate,
)
from hunyuan.orchestrator import ChatOrchestrator
from hunyuan.tools import FunctionTool, Tool, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "APIError",
    "ChatOptions",
    "ChatOrchestrator",
    "ChatResult",
    "ConfigurationError",
    "Conversation",
    "FunctionTool",
    "Generation",
    "HunyuanApi",
    "HunyuanConfig",
    "HunyuanError",
    "Message",
    "RequestSigner",
    "RetryPolicy",
    "RetryTemplate",
    "Tool",
    "ToolCallDepthExceeded",
    "ToolRegistry",
    "UnknownToolError",
    "ValidationError",
    "load_config",
]
