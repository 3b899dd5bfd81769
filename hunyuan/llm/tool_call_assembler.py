"""
Assembles streamed tool-call fragments into complete ToolCall objects.

Fragments are keyed by their position index within a choice:
  - the first non-empty ``id`` wins;
  - name fragments are concatenated, except that a fragment repeating the
    full name already buffered is ignored (some fragments resend it);
  - argument fragments are concatenated verbatim.

Arguments stay a serialized string; parsing happens when the tool runs.
"""

from __future__ import annotations

from hunyuan.llm.types import ToolCall


class ToolCallAssembler:
    """Buffers tool-call deltas and emits merged ``ToolCall`` objects."""

    def __init__(self) -> None:
        self._buf: dict[int, dict] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, call_index: int, delta: ToolCall) -> None:
        """Merge one fragment into the buffer for *call_index*."""
        buf = self._buf.setdefault(
            call_index, {"id": None, "name": "", "args": "", "type": delta.type}
        )

        if delta.id and not buf["id"]:
            buf["id"] = delta.id

        if delta.name and delta.name != buf["name"]:
            buf["name"] += delta.name

        if delta.arguments:
            buf["args"] += delta.arguments

    def feed_all(self, deltas: list[ToolCall], indexes: list[int] | None = None) -> None:
        """Feed a fragment's tool calls; positions default to list order."""
        for pos, delta in enumerate(deltas):
            idx = indexes[pos] if indexes and pos < len(indexes) else pos
            self.feed(idx, delta)

    def calls(self) -> list[ToolCall]:
        """Current state of every buffered call, ordered by index."""
        return [
            ToolCall(
                id=buf["id"],
                name=buf["name"].strip(),
                arguments=buf["args"] or "{}",
                type=buf["type"],
            )
            for _, buf in sorted(self._buf.items())
        ]

    @property
    def has_calls(self) -> bool:
        return bool(self._buf)

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._buf.clear()
