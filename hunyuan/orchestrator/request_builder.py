"""
Conversation -> ChatRequest.

Options come from three layers, highest priority first: the per-call
options on the conversation, the client's default options, and an empty
base.  A field set at a higher layer wins; unset fields fall through.
Enabled tools are the exception: per-call and default tool names are
unioned, then resolved through the tool registry.
"""

from __future__ import annotations

from dataclasses import fields

from hunyuan.errors import ConfigurationError, ValidationError
from hunyuan.llm.types import ROLES, ChatOptions, ChatRequest, Conversation, Message, Role
from hunyuan.tools.registry import ToolRegistry


def merge_options(*layers: ChatOptions | None) -> ChatOptions:
    """Merge option layers given highest priority first."""
    values = {}
    for f in fields(ChatOptions):
        for layer in layers:
            value = getattr(layer, f.name) if layer is not None else None
            if value is not None:
                values[f.name] = value
                break
    return ChatOptions(**values)


def _check_options(options: ChatOptions) -> None:
    if options.temperature is not None and not 0.0 <= options.temperature <= 2.0:
        raise ConfigurationError(f"temperature must be within [0, 2], got {options.temperature}")
    if options.top_p is not None and not 0.0 <= options.top_p <= 1.0:
        raise ConfigurationError(f"top_p must be within [0, 1], got {options.top_p}")


class RequestBuilder:
    """Pure translation of a ``Conversation`` into a ``ChatRequest``."""

    def __init__(
        self,
        registry: ToolRegistry,
        default_options: ChatOptions | None = None,
    ) -> None:
        self._registry = registry
        self._defaults = default_options or ChatOptions()

    def build(self, conversation: Conversation, stream: bool = False) -> ChatRequest:
        messages = self._map_messages(conversation.messages)

        options = merge_options(conversation.options, self._defaults)
        _check_options(options)

        enabled: set[str] = set()
        if conversation.options is not None and conversation.options.tool_names:
            enabled |= set(conversation.options.tool_names)
        if self._defaults.tool_names:
            enabled |= set(self._defaults.tool_names)
        tools = self._registry.resolve(enabled) if enabled else None

        return ChatRequest(
            messages=messages,
            stream=stream,
            model=options.model,
            temperature=options.temperature,
            top_p=options.top_p,
            stop=list(options.stop) if options.stop else None,
            seed=options.seed,
            enable_enhancement=options.enable_enhancement,
            tool_choice=options.tool_choice,
            tools=tools,
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @staticmethod
    def _map_messages(messages: tuple[Message, ...]) -> list[Message]:
        issued: set[str] = set()
        mapped: list[Message] = []
        for msg in messages:
            if msg.role not in ROLES:
                raise ValidationError(f"Unsupported message role: {msg.role!r}")

            if msg.role in (Role.USER, Role.SYSTEM):
                mapped.append(Message(role=msg.role, content=msg.content))
            elif msg.role == Role.ASSISTANT:
                for tc in msg.tool_calls or ():
                    if tc.id:
                        issued.add(tc.id)
                mapped.append(Message.assistant(msg.content, msg.tool_calls))
            else:
                if not msg.tool_call_id:
                    raise ValidationError("tool response missing id")
                if msg.tool_call_id not in issued:
                    raise ValidationError(
                        f"tool response references unknown tool call id {msg.tool_call_id!r}"
                    )
                mapped.append(Message.tool(msg.content, msg.tool_call_id))
        return mapped
