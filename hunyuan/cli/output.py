"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from hunyuan.llm.types import ChatResult
from hunyuan.tools.base import Tool


class OutputFormatter:
    """Rich-based output formatting for the hunyuan CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_delta(self, result: ChatResult) -> None:
        """Print one streamed fragment without a trailing newline."""
        if result.text:
            self.console.print(result.text, end="", markup=False, highlight=False)

    def format_result(self, result: ChatResult) -> None:
        self.console.print(result.text, markup=False, highlight=False)

    def format_usage(self, result: ChatResult) -> None:
        meta = result.metadata
        usage = meta.usage
        self.console.print(
            f"[dim]id={meta.id or '-'} model={meta.model or '-'} "
            f"tokens={usage.prompt_tokens}+{usage.completion_tokens}={usage.total_tokens}[/dim]"
        )

    def format_tool_list(self, tools: list[Tool]) -> None:
        table = Table(title="Registered Tools", show_lines=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Description")
        for t in tools:
            table.add_row(t.name, t.description)
        self.console.print(table)

    def format_config(self, data: dict) -> None:
        self.console.print(Panel(
            Syntax(json.dumps(data, indent=2), "json", theme="monokai"),
            title="Effective configuration",
        ))

    def format_error(self, exc: Exception) -> None:
        self.console.print(f"[red]Error:[/red] {exc}")
        hint = getattr(exc, "hint", None)
        if hint:
            self.console.print(f"[dim]{hint}[/dim]")
