from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any

from todo_agent.agent.dedup import InvocationDeduplicator
from todo_agent.agent.messages import ToolOutcomeBlock, Turn


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    input: dict[str, Any]


@dataclass
class ModelResponse:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    provider_state: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolOutcome:
    invocation_id: str
    tool_name: str
    success: bool
    payload: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    latency_ms: int = 0
    duplicate: bool = False
    arguments: dict[str, Any] = field(default_factory=dict)

    @property
    def error_code(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error.get("code") or "") or None

    def to_block(self, evidence: str = "") -> ToolOutcomeBlock:
        return ToolOutcomeBlock(
            invocation_id=self.invocation_id,
            payload=self.payload if self.success else None,
            error=None if self.success else (self.error or {"code": "UNKNOWN", "message": "Tool failed"}),
            duplicate=self.duplicate,
            evidence=evidence,
        )


class RunStatus(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self not in {RunStatus.IDLE, RunStatus.RUNNING}


@dataclass
class RunState:
    """Mutable bookkeeping for exactly one run of the loop."""

    max_iterations: int
    deadline: float
    iteration: int = 0
    status: RunStatus = RunStatus.IDLE
    dedup: InvocationDeduplicator = field(default_factory=InvocationDeduplicator)
    tools_executed: list[str] = field(default_factory=list)
    outcomes: list[ToolOutcome] = field(default_factory=list)
    more_actions_needed: bool = False
    deadline_hit: bool = False
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def start(cls, *, max_iterations: int, deadline_seconds: float) -> "RunState":
        now = time.monotonic()
        return cls(max_iterations=max_iterations, deadline=now + deadline_seconds, started_at=now)

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        return self.deadline_hit or time.monotonic() >= self.deadline

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def record(self, outcomes: list[ToolOutcome]) -> None:
        for outcome in outcomes:
            self.outcomes.append(outcome)
            if not outcome.duplicate and outcome.error_code not in {"UNKNOWN_TOOL", "VALIDATION_ERROR"}:
                self.tools_executed.append(outcome.tool_name)


@dataclass
class RunRequest:
    message: str
    history: list[Turn] = field(default_factory=list)
    max_iterations: int | None = None
    deadline_seconds: float | None = None
    run_id: str | None = None


@dataclass
class RunResult:
    content: str
    iterations: int
    tools_executed: list[str]
    status: RunStatus
    partial: bool
    run_id: str
    history_delta: list[Turn] = field(default_factory=list)
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "response": self.content,
            "run_id": self.run_id,
            "iterations": self.iterations,
            "tools_executed": list(self.tools_executed),
            "status": self.status.value,
            "partial": self.partial,
            "error": self.error,
            "history_delta": [turn.model_dump(mode="json") for turn in self.history_delta],
        }
