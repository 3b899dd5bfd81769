"""Exception hierarchy for the Hunyuan chat client."""

from __future__ import annotations


class HunyuanError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(HunyuanError):
    """Missing credentials or malformed configuration. Never retried."""


class ValidationError(HunyuanError):
    """The conversation cannot be turned into a request. Never retried."""


class UnknownToolError(ValidationError):
    """A tool name could not be resolved by the registry."""

    def __init__(self, name: str, *, known: list[str] | None = None) -> None:
        hint = f"Registered tools: {', '.join(known)}" if known else None
        super().__init__(f"Unknown tool: {name!r}", hint=hint)
        self.name = name


class ToolCallDepthExceeded(HunyuanError):
    """The tool-call loop ran more rounds than allowed."""

    def __init__(self, max_rounds: int) -> None:
        super().__init__(
            f"Tool-call resolution exceeded {max_rounds} rounds",
            hint="Raise chat.max_tool_rounds or check for a tool that always re-triggers.",
        )
        self.max_rounds = max_rounds


class APIError(HunyuanError):
    """The service answered with an error status or an error envelope.

    ``retryable`` is decided where the error is raised so the retry layer does
    not need to match on message text.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        code: str | None = None,
        request_id: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.code = code
        self.request_id = request_id
        self.status_code = status_code
        self.retryable = retryable
