"""
Core types for the chat subsystem.

Two families live here:

  - Conversation-side values handed in by the application (``Message``,
    ``Conversation``, ``ChatOptions``) and handed back (``Generation``,
    ``ChatResult``).
  - Wire payloads of the Hunyuan ``ChatCompletions`` action
    (``ChatRequest``, ``ChatCompletion``, ``ChatCompletionChunk``).  The
    service uses PascalCase keys; ``to_wire`` / ``from_wire`` are the only
    places that know about them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


class Role:
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


ROLES = frozenset({Role.SYSTEM, Role.USER, Role.ASSISTANT, Role.TOOL})


class FinishReason:
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    SENSITIVE = "sensitive"


def _as_dict(value: Any, what: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {type(value).__name__}")
    return value


# ---------------------------------------------------------------------------
# Conversation side
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the assistant.

    *arguments* stays the serialized JSON string the model produced; it is
    only parsed when the tool is executed.
    """

    id: str | None
    name: str
    arguments: str = "{}"
    type: str = "function"

    def to_wire(self) -> dict:
        return {
            "Id": self.id,
            "Type": self.type,
            "Function": {"Name": self.name, "Arguments": self.arguments},
        }

    @classmethod
    def from_wire(cls, data: dict) -> ToolCall:
        data = _as_dict(data, "ToolCall")
        func = _as_dict(data.get("Function") or {}, "Function")
        return cls(
            id=data.get("Id") or None,
            name=func.get("Name") or "",
            arguments=func.get("Arguments") or "",
            type=data.get("Type") or "function",
        )


@dataclass(frozen=True)
class Message:
    """A single message in a conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str = ""
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls=None) -> Message:
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool(cls, content: str, tool_call_id: str | None) -> Message:
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)

    def to_wire(self) -> dict:
        m: dict[str, Any] = {"Role": self.role, "Content": self.content}
        if self.tool_calls:
            m["ToolCalls"] = [tc.to_wire() for tc in self.tool_calls]
        if self.tool_call_id:
            m["ToolCallId"] = self.tool_call_id
        return m


@dataclass(frozen=True)
class ChatOptions:
    """
    Per-call or default model options.

    Every field is optional; ``None`` means "not set at this layer" so a lower
    layer's value falls through when options are merged.
    """

    model: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    stop: tuple[str, ...] | None = None
    seed: int | None = None
    enable_enhancement: bool | None = None
    tool_choice: str | None = None
    tool_names: frozenset[str] | None = None
    proxy_tool_calls: bool | None = None


@dataclass(frozen=True)
class Conversation:
    """Ordered messages plus the per-call options. Never mutated."""

    messages: tuple[Message, ...]
    options: ChatOptions | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", tuple(self.messages))

    @classmethod
    def from_text(cls, text: str, options: ChatOptions | None = None) -> Conversation:
        return cls((Message.user(text),), options)

    def extend(self, *messages: Message) -> Conversation:
        """Return a new conversation with *messages* appended."""
        return Conversation(self.messages + tuple(messages), self.options)


@dataclass(frozen=True)
class ToolDefinition:
    """What the model is told about a tool: name, description, input schema."""

    name: str
    description: str
    parameters: dict = field(default_factory=dict)

    def to_wire(self) -> dict:
        # The service expects the JSON schema as a string, not an object.
        return {
            "Type": "function",
            "Function": {
                "Name": self.name,
                "Description": self.description,
                "Parameters": json.dumps(self.parameters, ensure_ascii=False),
            },
        }


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

@dataclass
class ChatRequest:
    """Wire-shape projection of a ``Conversation``. Built fresh per call."""

    messages: list[Message]
    stream: bool = False
    model: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    stop: list[str] | None = None
    seed: int | None = None
    enable_enhancement: bool | None = None
    tool_choice: str | None = None
    tools: list[ToolDefinition] | None = None

    def to_wire(self) -> dict:
        body: dict[str, Any] = {
            "Messages": [m.to_wire() for m in self.messages],
            "Stream": self.stream,
        }
        optional = {
            "Model": self.model,
            "Temperature": self.temperature,
            "TopP": self.top_p,
            "Stop": self.stop,
            "Seed": self.seed,
            "EnableEnhancement": self.enable_enhancement,
            "ToolChoice": self.tool_choice,
        }
        body.update({k: v for k, v in optional.items() if v is not None})
        if self.tools:
            body["Tools"] = [t.to_wire() for t in self.tools]
        return body

    def to_json(self) -> bytes:
        """Serialize exactly the bytes that are signed and sent."""
        return json.dumps(self.to_wire(), ensure_ascii=False).encode("utf-8")


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------

@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_wire(cls, data: dict | None) -> Usage | None:
        if not data:
            return None
        data = _as_dict(data, "Usage")
        return cls(
            prompt_tokens=int(data.get("PromptTokens") or 0),
            completion_tokens=int(data.get("CompletionTokens") or 0),
            total_tokens=int(data.get("TotalTokens") or 0),
        )

    @property
    def is_empty(self) -> bool:
        return self.total_tokens == 0 and self.prompt_tokens == 0 and self.completion_tokens == 0


@dataclass
class CompletionMessage:
    """A message or delta as returned by the service; every field may be unset."""

    role: str | None = None
    content: str | None = None
    tool_calls: list[ToolCall] | None = None

    @classmethod
    def from_wire(cls, data: dict | None) -> CompletionMessage | None:
        if data is None:
            return None
        data = _as_dict(data, "Message")
        raw_tcs = _as_list(data.get("ToolCalls"), "ToolCalls")
        return cls(
            role=data.get("Role") or None,
            content=data.get("Content"),
            tool_calls=[ToolCall.from_wire(tc) for tc in raw_tcs] or None,
        )


@dataclass
class Choice:
    index: int
    message: CompletionMessage
    finish_reason: str | None = None


@dataclass
class DeltaChoice:
    index: int
    delta: CompletionMessage | None
    finish_reason: str | None = None
    # Position of each tool-call delta, used to merge fragments of one call.
    tool_call_indexes: list[int] | None = None


def _finish_reason(data: dict) -> str | None:
    # Intermediate stream fragments report an empty string.
    return data.get("FinishReason") or None


def _index(data: dict, default: int) -> int:
    value = data.get("Index")
    return default if value is None else int(value)


def _as_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{what} must be an array, got {type(value).__name__}")
    return value


@dataclass
class ChatCompletion:
    """A complete (one-shot) response, or a stream fragment after delta substitution."""

    id: str | None
    created: int | None = None
    model: str | None = None
    choices: list[Choice] | None = None
    usage: Usage | None = None
    request_id: str | None = None

    @classmethod
    def from_wire(cls, data: dict) -> ChatCompletion:
        """Parse the body of the ``Response`` envelope.

        Raises ``ValueError`` or ``TypeError`` when the payload has the wrong shape.
        """
        data = _as_dict(data, "Response")
        raw_choices = data.get("Choices")
        choices = None
        if raw_choices is not None:
            choices = []
            for pos, c in enumerate(_as_list(raw_choices, "Choices")):
                c = _as_dict(c, "Choice")
                choices.append(
                    Choice(
                        index=_index(c, pos),
                        message=CompletionMessage.from_wire(c.get("Message")) or CompletionMessage(),
                        finish_reason=_finish_reason(c),
                    )
                )
        return cls(
            id=data.get("Id"),
            created=data.get("Created"),
            model=data.get("Model"),
            choices=choices,
            usage=Usage.from_wire(data.get("Usage")),
            request_id=data.get("RequestId"),
        )


@dataclass
class ChatCompletionChunk:
    """One streamed fragment."""

    id: str | None
    created: int | None = None
    model: str | None = None
    choices: list[DeltaChoice] = field(default_factory=list)
    usage: Usage | None = None

    @classmethod
    def from_wire(cls, data: dict) -> ChatCompletionChunk:
        data = _as_dict(data, "Chunk")
        choices = []
        for pos, c in enumerate(_as_list(data.get("Choices"), "Choices")):
            c = _as_dict(c, "Choice")
            raw_delta = c.get("Delta")
            if raw_delta is not None:
                raw_delta = _as_dict(raw_delta, "Delta")
            indexes = None
            if raw_delta and raw_delta.get("ToolCalls"):
                indexes = [
                    _index(_as_dict(tc, "ToolCall"), i)
                    for i, tc in enumerate(_as_list(raw_delta["ToolCalls"], "ToolCalls"))
                ]
            choices.append(
                DeltaChoice(
                    index=_index(c, pos),
                    delta=CompletionMessage.from_wire(raw_delta),
                    finish_reason=_finish_reason(c),
                    tool_call_indexes=indexes,
                )
            )
        return cls(
            id=data.get("Id"),
            created=data.get("Created"),
            model=data.get("Model"),
            choices=choices,
            usage=Usage.from_wire(data.get("Usage")),
        )


# ---------------------------------------------------------------------------
# Normalized results
# ---------------------------------------------------------------------------

@dataclass
class Generation:
    """
    One normalized candidate answer.

    *metadata* always carries ``id``, ``role`` and ``finish_reason``; unset
    values are the empty string, never missing keys.
    """

    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    index: int = 0
    # Wire position of each entry in *tool_calls*; None means list order.
    tool_call_indexes: list[int] | None = None

    @property
    def role(self) -> str:
        return self.metadata.get("role", "")

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass
class ResultMetadata:
    id: str = ""
    model: str = ""
    usage: Usage = field(default_factory=Usage)
    created: int = 0


@dataclass
class ChatResult:
    """Ordered generations plus envelope metadata."""

    generations: list[Generation] = field(default_factory=list)
    metadata: ResultMetadata = field(default_factory=ResultMetadata)

    @classmethod
    def empty(cls) -> ChatResult:
        return cls()

    @property
    def result(self) -> Generation | None:
        return self.generations[0] if self.generations else None

    @property
    def text(self) -> str:
        """Text of the first generation, ``""`` when there is none."""
        first = self.result
        return first.text if first is not None else ""
