from dataclasses import dataclass, field


@dataclass
class ToolResult:
    success: bool
    content: str
    data: dict | list | None = None
    error: str | None = None
    error_code: str | None = None
    metadata: dict = field(default_factory=dict)

    def to_content(self) -> str:
        """Text sent back to the model as the tool turn."""
        if not self.success and self.error:
            return f"[Error: {self.error_code}] {self.error}"
        return self.content


class ErrorCode:
    VALIDATION_ERROR = "validation_error"
    INVALID_ARGUMENTS = "invalid_arguments"
    TIMEOUT = "timeout"
    TOOL_EXCEPTION = "tool_exception"
