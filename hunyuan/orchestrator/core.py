"""
Orchestrator core -- the loop that turns a conversation into a final answer.

The orchestrator:
1. Builds a ``ChatRequest`` from the conversation and the default options
2. Sends it through the retry capability (one-shot or streamed)
3. Normalizes the raw payload into ``Generation``s
4. Checks for a pending tool call; if there is one, runs the tools, extends
   the conversation and goes back to 1
5. Stops at a response with no pending tool call, or fails once
   ``max_tool_rounds`` continuations have been used
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, Callable

from hunyuan.errors import ToolCallDepthExceeded
from hunyuan.llm.aggregator import MessageAggregator
from hunyuan.llm.api import DEFAULT_CHAT_MODEL, HunyuanApi
from hunyuan.llm.retry import RetryTemplate
from hunyuan.llm.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatOptions,
    ChatRequest,
    ChatResult,
    Choice,
    Conversation,
    Generation,
    ResultMetadata,
    Usage,
)
from hunyuan.orchestrator.request_builder import RequestBuilder, merge_options
from hunyuan.orchestrator.stream_state import StreamState, chunk_to_completion
from hunyuan.orchestrator.tool_calls import ToolCallResolver, is_tool_call
from hunyuan.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def build_generation(
    choice: Choice, metadata: dict, tool_call_indexes: list[int] | None = None
) -> Generation:
    message = choice.message
    return Generation(
        text=message.content or "",
        tool_calls=list(message.tool_calls or []),
        finish_reason=choice.finish_reason or "",
        metadata=metadata,
        index=choice.index,
        tool_call_indexes=tool_call_indexes,
    )


def _spoken_part(result: ChatResult) -> ChatResult | None:
    """The text a tool-call fragment carried, without its calls or finish reason."""
    generations = [
        Generation(
            text=gen.text,
            metadata={**gen.metadata, "finish_reason": ""},
            index=gen.index,
        )
        for gen in result.generations
        if gen.text
    ]
    return ChatResult(generations, result.metadata) if generations else None


class ChatOrchestrator:
    """
    One-shot and streaming chat with tool-call resolution.

    Parameters
    ----------
    api : HunyuanApi
        Signed access to the chat-completion action.
    registry : ToolRegistry
        Resolves enabled tool names and executes requested calls.
    default_options : ChatOptions
        Options applied beneath every per-call option.  Read-only.
    retry : RetryTemplate
        Anything with ``async execute(operation)``; wraps each send.
    max_tool_rounds : int
        Max tool-call continuations before ``ToolCallDepthExceeded``.
    """

    def __init__(
        self,
        api: HunyuanApi,
        registry: ToolRegistry | None = None,
        default_options: ChatOptions | None = None,
        retry: RetryTemplate | None = None,
        max_tool_rounds: int = 10,
    ) -> None:
        self.api = api
        self.registry = registry or ToolRegistry()
        self._default_options = default_options or ChatOptions(model=DEFAULT_CHAT_MODEL)
        self.retry = retry or RetryTemplate()
        self.max_tool_rounds = max_tool_rounds
        self.builder = RequestBuilder(self.registry, self._default_options)
        self.resolver = ToolCallResolver(self.registry)

    @property
    def default_options(self) -> ChatOptions:
        return self._default_options

    # ------------------------------------------------------------------
    # One-shot
    # ------------------------------------------------------------------

    async def call(self, conversation: Conversation) -> ChatResult:
        """Send *conversation* and return the final (tool-free) result."""
        rounds = 0
        while True:
            request = self.builder.build(conversation, stream=False)
            completion = await self.retry.execute(lambda: self.api.chat_completion(request))
            result = self._to_result(request, completion)

            if not self._is_pending_tool_call(conversation, result):
                return result

            rounds = self._next_round(rounds)
            conversation = await self.resolver.continue_conversation(conversation, result)

    async def call_text(self, text: str, options: ChatOptions | None = None) -> str:
        """Convenience: single user message in, first generation's text out."""
        result = await self.call(Conversation.from_text(text, options))
        return result.text

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(
        self,
        conversation: Conversation,
        on_complete: Callable[[ChatResult], None] | None = None,
    ) -> AsyncIterator[ChatResult]:
        """
        Yield one ``ChatResult`` per received fragment, in arrival order.

        Tool-call continuations are streamed in place, so the caller sees
        one sequence.  The fragment that completes a tool call is not
        emitted as such: only any text it carries is yielded (without the
        calls or the finish reason) before the continuation's fragments.
        In proxy mode every fragment is emitted unchanged.
        *on_complete* receives the concatenated final result
        once the last stream ends.  Closing or cancelling the iteration
        closes the open HTTP response.
        """
        aggregator = MessageAggregator()
        async with aclosing(aggregator.aggregate(self._stream_rounds(conversation), on_complete)) as results:
            async for result in results:
                yield result

    async def stream_complete(self, conversation: Conversation) -> ChatResult:
        """Consume the whole stream and return only the aggregated result."""
        final: list[ChatResult] = []
        async for _ in self.stream(conversation, on_complete=final.append):
            pass
        return final[0]

    async def _stream_rounds(self, conversation: Conversation) -> AsyncIterator[ChatResult]:
        rounds = 0
        while True:
            request = self.builder.build(conversation, stream=True)
            chunks = await self.retry.execute(lambda: self.api.open_chat_stream(request))

            state = StreamState()
            pending: ChatResult | None = None
            try:
                async for chunk in chunks:
                    result = self._chunk_to_result(request, chunk, state)
                    candidate = state.with_assembled_tool_calls(result)
                    if self._is_pending_tool_call(conversation, candidate):
                        pending = candidate
                        break
                    yield result
            finally:
                await chunks.aclose()

            if pending is None:
                return

            spoken = _spoken_part(pending)
            if spoken is not None:
                yield spoken

            rounds = self._next_round(rounds)
            conversation = await self.resolver.continue_conversation(conversation, pending)

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def _to_result(self, request: ChatRequest, completion: ChatCompletion | None) -> ChatResult:
        if completion is None:
            logger.warning("No chat completion returned for request with %d messages", len(request.messages))
            return ChatResult.empty()
        if not completion.choices:
            logger.warning("No choices returned for completion %s", completion.id)
            return ChatResult.empty()

        generations = [
            build_generation(
                choice,
                {
                    "id": completion.id or "",
                    "role": choice.message.role or "",
                    "finish_reason": choice.finish_reason or "",
                },
            )
            for choice in completion.choices
        ]
        return ChatResult(generations, self._metadata(request, completion))

    def _chunk_to_result(
        self, request: ChatRequest, chunk: ChatCompletionChunk, state: StreamState
    ) -> ChatResult:
        try:
            completion = chunk_to_completion(chunk)
            response_id = completion.id or ""
            state.feed(chunk)
            positions = {c.index: c.tool_call_indexes for c in chunk.choices}

            generations = []
            for choice in completion.choices or []:
                state.remember_role(response_id, choice.message.role)
                generations.append(
                    build_generation(
                        choice,
                        {
                            "id": response_id,
                            "role": state.role_for(response_id),
                            "finish_reason": choice.finish_reason or "",
                        },
                        positions.get(choice.index),
                    )
                )
            return ChatResult(generations, self._metadata(request, completion))
        except Exception:
            logger.exception("Error processing chat completion chunk")
            return ChatResult.empty()

    @staticmethod
    def _metadata(request: ChatRequest, completion: ChatCompletion) -> ResultMetadata:
        return ResultMetadata(
            id=completion.id or "",
            model=request.model or "",
            usage=completion.usage or Usage(),
            created=completion.created or 0,
        )

    # ------------------------------------------------------------------
    # Tool-call loop
    # ------------------------------------------------------------------

    def _is_pending_tool_call(self, conversation: Conversation, result: ChatResult) -> bool:
        proxy = merge_options(conversation.options, self._default_options).proxy_tool_calls
        return not proxy and is_tool_call(result)

    def _next_round(self, rounds: int) -> int:
        rounds += 1
        if rounds > self.max_tool_rounds:
            raise ToolCallDepthExceeded(self.max_tool_rounds)
        logger.info("Resolving tool calls (round %d/%d)", rounds, self.max_tool_rounds)
        return rounds
