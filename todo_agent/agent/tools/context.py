from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ToolContext:
    conversation_id: str | None = None
    run_id: str | None = None
    iteration: int | None = None
    tool_use_id: str | None = None
    tool_name: str | None = None

    def with_tool(self, *, tool_name: str, tool_use_id: str | None = None) -> "ToolContext":
        return replace(self, tool_name=tool_name, tool_use_id=tool_use_id or self.tool_use_id)

    def lineage(self) -> dict[str, str | int | None]:
        return {
            "conversation_id": self.conversation_id,
            "run_id": self.run_id,
            "iteration": self.iteration,
            "tool_use_id": self.tool_use_id,
            "tool_name": self.tool_name,
        }
