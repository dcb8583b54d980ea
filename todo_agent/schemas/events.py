from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from todo_agent.agent.messages import Turn
from todo_agent.config import MAX_ITERATIONS_CEILING

EventType = Literal[
    "run_start",
    "progress",
    "run_error",
    "run_complete",
    "complete",
    "error",
    "pong",
]


class StreamEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: EventType
    run_id: str | None = None
    conversation_id: str | None = None
    iteration: int | None = None
    phase: Literal["planning", "executing", "summarizing"] | None = None
    tool_name: str | None = None
    elapsed_ms: int | None = None
    status: str | None = None
    error: str | None = None
    result: dict[str, Any] | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    history: list[Turn] = Field(default_factory=list)
    conversation_id: str | None = None
    run_id: str | None = Field(default=None, max_length=100)
    # None falls back to AGENT_MAX_ITERATIONS and AGENT_RUN_DEADLINE_SECONDS
    max_iterations: int | None = Field(default=None, ge=1, le=MAX_ITERATIONS_CEILING)
    deadline_seconds: float | None = Field(default=None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _accept_user_role(cls, data: Any) -> Any:
        # "user" is accepted as an alias of "requester" in posted history
        if not isinstance(data, dict) or not isinstance(data.get("history"), list):
            return data
        history = []
        for item in data["history"]:
            if isinstance(item, dict) and item.get("role") == "user":
                item = {**item, "role": "requester"}
            history.append(item)
        return {**data, "history": history}


class ChatResponse(BaseModel):
    response: str
    run_id: str
    iterations: int
    tools_executed: list[str]
    status: str
    partial: bool
    error: str | None = None
    history_delta: list[dict[str, Any]] = Field(default_factory=list)
