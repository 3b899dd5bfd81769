"""
Message aggregator -- reduces a stream of incremental results into one.

``aggregate`` passes every incremental ``ChatResult`` through untouched and,
once the stream has completed, hands a single fully-concatenated result to a
callback.  Callers get both views without the incremental one being delayed.

Text is accumulated per choice index, in arrival order; the reduction is not
commutative.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncGenerator, AsyncIterator, Callable

from hunyuan.llm.tool_call_assembler import ToolCallAssembler
from hunyuan.llm.types import ChatResult, Generation, ResultMetadata, Usage

logger = logging.getLogger(__name__)


@dataclass
class _ChoiceBuffer:
    text: list[str] = field(default_factory=list)
    tools: ToolCallAssembler = field(default_factory=ToolCallAssembler)
    response_id: str = ""
    role: str = ""
    finish_reason: str = ""


class MessageAggregator:
    """Accumulates the results of one exchange. Use one instance per stream."""

    def __init__(self) -> None:
        self._choices: dict[int, _ChoiceBuffer] = {}
        self._id = ""
        self._model = ""
        self._created = 0
        self._usage = Usage()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, result: ChatResult) -> None:
        """Fold one incremental result into the buffers."""
        meta = result.metadata
        if meta.id:
            self._id = meta.id
        if meta.model:
            self._model = meta.model
        if meta.created:
            self._created = meta.created
        if not meta.usage.is_empty:
            self._usage = meta.usage

        for gen in result.generations:
            buf = self._choices.setdefault(gen.index, _ChoiceBuffer())
            response_id = gen.metadata.get("id", "")
            if response_id and buf.response_id and response_id != buf.response_id:
                # A continuation stream: earlier tool calls were already resolved.
                buf.tools.reset()
            if response_id:
                buf.response_id = response_id
            if gen.text:
                buf.text.append(gen.text)
            if gen.tool_calls:
                buf.tools.feed_all(gen.tool_calls, gen.tool_call_indexes)
            if gen.role and not buf.role:
                buf.role = gen.role
            if gen.finish_reason:
                buf.finish_reason = gen.finish_reason

    def result(self) -> ChatResult:
        """The concatenated result of everything added so far."""
        generations = [
            Generation(
                text="".join(buf.text),
                tool_calls=buf.tools.calls(),
                finish_reason=buf.finish_reason,
                metadata={
                    "id": buf.response_id,
                    "role": buf.role,
                    "finish_reason": buf.finish_reason,
                },
                index=idx,
            )
            for idx, buf in sorted(self._choices.items())
        ]
        return ChatResult(
            generations=generations,
            metadata=ResultMetadata(
                id=self._id,
                model=self._model,
                usage=self._usage,
                created=self._created,
            ),
        )

    async def aggregate(
        self,
        results: AsyncGenerator[ChatResult, None],
        on_complete: Callable[[ChatResult], None] | None = None,
    ) -> AsyncIterator[ChatResult]:
        """
        Re-yield *results* while accumulating them.

        *on_complete* receives the final result only when the source finishes
        normally; an error or an early close skips it.  Closing this iterator
        closes the source.
        """
        async with aclosing(results) as source:
            async for result in source:
                self.add(result)
                yield result

        final = self.result()
        logger.debug(
            "Aggregated stream %s into %d generation(s)", final.metadata.id, len(final.generations)
        )
        if on_complete is not None:
            on_complete(final)
