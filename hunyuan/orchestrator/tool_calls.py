"""Detecting pending tool calls and building the follow-up conversation."""

from __future__ import annotations

import logging

from hunyuan.errors import ValidationError
from hunyuan.llm.types import ChatResult, Conversation, FinishReason, Message
from hunyuan.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

# Some tool-call completions finish with "stop" instead of "tool_calls".
TOOL_CALL_FINISH_REASONS = frozenset({FinishReason.TOOL_CALLS, FinishReason.STOP})


def is_tool_call(
    result: ChatResult, finish_reasons: frozenset[str] = TOOL_CALL_FINISH_REASONS
) -> bool:
    """True when some generation finished for one of *finish_reasons* and requests tools."""
    return any(
        gen.finish_reason in finish_reasons and gen.has_tool_calls
        for gen in result.generations
    )


class ToolCallResolver:
    """Runs the requested tools and extends the conversation with their results."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def continue_conversation(
        self, conversation: Conversation, result: ChatResult
    ) -> Conversation:
        """
        Return *conversation* plus the assistant turn that asked for tools and
        one tool turn per call, tagged with the call id.
        """
        generation = next((g for g in result.generations if g.has_tool_calls), None)
        if generation is None:
            raise ValidationError("Response does not request any tool calls")

        for tc in generation.tool_calls:
            if not tc.id:
                raise ValidationError(f"Tool call {tc.name!r} has no id")

        tool_messages = []
        for tc in generation.tool_calls:
            logger.info("Executing tool %s (call %s)", tc.name, tc.id)
            outcome = await self._registry.execute(tc.name, tc.arguments)
            if not outcome.success:
                logger.warning("Tool %s failed: [%s] %s", tc.name, outcome.error_code, outcome.error)
            tool_messages.append(Message.tool(outcome.to_content(), tc.id))

        assistant = Message.assistant(generation.text, generation.tool_calls)
        return conversation.extend(assistant, *tool_messages)
