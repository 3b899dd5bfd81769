"""
Per-exchange state for one streamed call.

Only the first fragment of a response carries the role, and tool calls may be
spread over several fragments.  ``StreamState`` remembers both for a single
exchange; a new instance is created for every stream the orchestrator opens,
so concurrent exchanges never share it.
"""

from __future__ import annotations

from hunyuan.llm.tool_call_assembler import ToolCallAssembler
from hunyuan.llm.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatResult,
    Choice,
    CompletionMessage,
    Generation,
    Role,
)


def chunk_to_completion(chunk: ChatCompletionChunk) -> ChatCompletion:
    """
    Reshape a fragment into a ``ChatCompletion`` so the one-shot
    normalization code applies to it.

    The delta stands in for the message; a missing delta becomes an empty
    assistant message.  Usage is dropped.
    """
    choices = [
        Choice(
            index=c.index,
            message=c.delta if c.delta is not None else CompletionMessage(role=Role.ASSISTANT, content=""),
            finish_reason=c.finish_reason,
        )
        for c in chunk.choices
    ]
    return ChatCompletion(
        id=chunk.id,
        created=chunk.created,
        model=chunk.model,
        choices=choices,
        usage=None,
    )


class StreamState:
    """Role cache keyed by response id plus tool-call buffers keyed by choice index."""

    def __init__(self) -> None:
        self._roles: dict[str, str] = {}
        self._tool_calls: dict[int, ToolCallAssembler] = {}

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def remember_role(self, response_id: str, role: str | None) -> None:
        """Seed the cache; later roles for the same id are ignored."""
        if role:
            # setdefault is atomic, so racing fragments cannot both win.
            self._roles.setdefault(response_id, role)

    def role_for(self, response_id: str) -> str:
        return self._roles.get(response_id, "")

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    def feed(self, chunk: ChatCompletionChunk) -> None:
        """Buffer any tool-call fragments the chunk carries."""
        for choice in chunk.choices:
            if choice.delta is None or not choice.delta.tool_calls:
                continue
            assembler = self._tool_calls.setdefault(choice.index, ToolCallAssembler())
            assembler.feed_all(choice.delta.tool_calls, choice.tool_call_indexes)

    def tool_calls_for(self, index: int) -> list:
        assembler = self._tool_calls.get(index)
        return assembler.calls() if assembler is not None else []

    def with_assembled_tool_calls(self, result: ChatResult) -> ChatResult:
        """
        Copy of *result* where every finished generation carries all tool
        calls buffered for its choice so far.
        """
        generations = []
        changed = False
        for gen in result.generations:
            assembled = self.tool_calls_for(gen.index) if gen.finish_reason else []
            if assembled:
                changed = True
                gen = Generation(
                    text=gen.text,
                    tool_calls=assembled,
                    finish_reason=gen.finish_reason,
                    metadata=dict(gen.metadata),
                    index=gen.index,
                )
            generations.append(gen)
        if not changed:
            return result
        return ChatResult(generations=generations, metadata=result.metadata)
