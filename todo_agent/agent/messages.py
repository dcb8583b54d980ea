from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

TurnRole = Literal["requester", "assistant"]


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolInvocationBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_invocation"] = "tool_invocation"
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolOutcomeBlock(BaseModel):
    """Result hand-back for one invocation: a payload or an error, never both."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_outcome"] = "tool_outcome"
    invocation_id: str = Field(min_length=1)
    payload: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    duplicate: bool = False
    evidence: str = ""

    @model_validator(mode="after")
    def _payload_xor_error(self) -> "ToolOutcomeBlock":
        if (self.payload is None) == (self.error is None):
            raise ValueError("tool_outcome must carry exactly one of 'payload' or 'error'")
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None


ContentBlock = Annotated[
    Union[TextBlock, ToolInvocationBlock, ToolOutcomeBlock],
    Field(discriminator="type"),
]


class Turn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: TurnRole
    content: Union[str, list[ContentBlock]]

    @classmethod
    def requester(cls, text: str) -> "Turn":
        return cls(role="requester", content=text)

    @classmethod
    def assistant(cls, text: str, invocations: list[ToolInvocationBlock] | None = None) -> "Turn":
        if not invocations:
            return cls(role="assistant", content=text)
        blocks: list[Any] = []
        if text:
            blocks.append(TextBlock(text=text))
        blocks.extend(invocations)
        return cls(role="assistant", content=blocks)

    @classmethod
    def outcomes(cls, outcomes: list[ToolOutcomeBlock]) -> "Turn":
        return cls(role="requester", content=list(outcomes))

    def blocks(self) -> list[Any]:
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    def text(self) -> str:
        return "\n".join(block.text for block in self.blocks() if isinstance(block, TextBlock)).strip()

    def invocation_blocks(self) -> list[ToolInvocationBlock]:
        return [block for block in self.blocks() if isinstance(block, ToolInvocationBlock)]

    def outcome_blocks(self) -> list[ToolOutcomeBlock]:
        return [block for block in self.blocks() if isinstance(block, ToolOutcomeBlock)]

    def is_outcome_handback(self) -> bool:
        if self.role != "requester" or isinstance(self.content, str) or not self.content:
            return False
        return all(isinstance(block, ToolOutcomeBlock) for block in self.content)
