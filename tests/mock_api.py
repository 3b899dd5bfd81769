"""
Mock Hunyuan API for testing.

Provides canned responses so tests can exercise the orchestrator, stream
state and aggregator without signing or hitting the network.
"""

from __future__ import annotations

from hunyuan.llm.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatRequest,
)


def tool_call_wire(call_id: str | None, name: str, arguments: str, index: int | None = None) -> dict:
    tc = {"Id": call_id, "Type": "function", "Function": {"Name": name, "Arguments": arguments}}
    if index is not None:
        tc["Index"] = index
    return tc


def completion(
    text: str = "",
    finish_reason: str = "stop",
    tool_calls: list[dict] | None = None,
    response_id: str = "resp-1",
    role: str | None = "assistant",
    usage: dict | None = None,
) -> ChatCompletion:
    """Build a one-shot ``ChatCompletion`` from its wire form."""
    message: dict = {"Content": text}
    if role is not None:
        message["Role"] = role
    if tool_calls:
        message["ToolCalls"] = tool_calls
    return ChatCompletion.from_wire(
        {
            "Id": response_id,
            "Created": 1700000000,
            "Choices": [{"Index": 0, "Message": message, "FinishReason": finish_reason}],
            "Usage": usage or {"PromptTokens": 3, "CompletionTokens": 5, "TotalTokens": 8},
            "RequestId": "req-" + response_id,
        }
    )


def chunk(
    text: str | None = "",
    finish_reason: str = "",
    role: str | None = None,
    tool_calls: list[dict] | None = None,
    response_id: str = "stream-1",
    index: int = 0,
    no_delta: bool = False,
) -> ChatCompletionChunk:
    """Build one streamed fragment from its wire form."""
    choice: dict = {"Index": index, "FinishReason": finish_reason}
    if not no_delta:
        delta: dict = {}
        if role is not None:
            delta["Role"] = role
        if text is not None:
            delta["Content"] = text
        if tool_calls:
            delta["ToolCalls"] = tool_calls
        choice["Delta"] = delta
    return ChatCompletionChunk.from_wire(
        {"Id": response_id, "Created": 1700000000, "Choices": [choice]}
    )


def text_chunks(text: str, response_id: str = "stream-1") -> list[ChatCompletionChunk]:
    """Stream *text* one word at a time; only the first fragment has a role."""
    words = text.split(" ")
    chunks = []
    for i, word in enumerate(words):
        suffix = " " if i < len(words) - 1 else ""
        chunks.append(
            chunk(
                word + suffix,
                role="assistant" if i == 0 else None,
                response_id=response_id,
            )
        )
    chunks.append(chunk("", finish_reason="stop", response_id=response_id))
    return chunks


class MockStream:
    """Stands in for ``ChatCompletionStream``; records whether it was closed."""

    def __init__(self, chunks: list, gate=None) -> None:
        self._chunks = list(chunks)
        self._gate = gate
        self.closed = False
        self.delivered = 0

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for c in self._chunks:
            if self.closed:
                return
            if self._gate is not None:
                await self._gate.wait()
                self._gate.clear()
            self.delivered += 1
            yield c

    async def aclose(self) -> None:
        self.closed = True


class MockApi:
    """
    Returns scripted completions / streams in order.

    Each entry of *completions* is either a ``ChatCompletion``, ``None`` or an
    exception instance (raised).  Each entry of *streams* is a list of chunks
    or an exception instance.
    """

    def __init__(self, completions=None, streams=None, gate=None) -> None:
        self._completions = list(completions or [])
        self._streams = list(streams or [])
        self._gate = gate
        self.requests: list[ChatRequest] = []
        self.opened: list[MockStream] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def chat_completion(self, request: ChatRequest):
        self.requests.append(request)
        item = self._completions.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def open_chat_stream(self, request: ChatRequest) -> MockStream:
        self.requests.append(request)
        item = self._streams.pop(0)
        if isinstance(item, Exception):
            raise item
        stream = MockStream(item, gate=self._gate)
        self.opened.append(stream)
        return stream

    async def aclose(self) -> None:
        pass
