"""LLM subsystem -- wire types, signing, HTTP access, retry and stream aggregation."""

from hunyuan.llm.aggregator import MessageAggregator
from hunyuan.llm.api import ChatCompletionStream, HunyuanApi
from hunyuan.llm.retry import RetryPolicy, RetryTemplate
from hunyuan.llm.signer import RequestSigner, SigningContext
from hunyuan.llm.tool_call_assembler import ToolCallAssembler
from hunyuan.llm.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatOptions,
    ChatRequest,
    ChatResult,
    Conversation,
    FinishReason,
    Generation,
    Message,
    Role,
    ToolCall,
    ToolDefinition,
    Usage,
)

__all__ = [
    "ChatCompletion",
    "ChatCompletionChunk",
    "ChatCompletionStream",
    "ChatOptions",
    "ChatRequest",
    "ChatResult",
    "Conversation",
    "FinishReason",
    "Generation",
    "HunyuanApi",
    "Message",
    "MessageAggregator",
    "RequestSigner",
    "RetryPolicy",
    "RetryTemplate",
    "Role",
    "SigningContext",
    "ToolCall",
    "ToolCallAssembler",
    "ToolDefinition",
    "Usage",
]
