from __future__ import annotations

from collections.abc import Iterable

from todo_agent.agent.errors import InvalidSequence
from todo_agent.agent.messages import ToolOutcomeBlock, Turn


def check_transition(previous: Turn | None, turn: Turn, *, index: int | None = None) -> None:
    """Raise ``InvalidSequence`` if ``turn`` may not follow ``previous``.

    Roles alternate strictly. The one requester turn that is not a new human
    message is the outcome hand-back: it must follow an assistant turn with
    invocations and answer every one of them exactly once.
    """
    blocks = turn.blocks()
    has_outcomes = any(isinstance(block, ToolOutcomeBlock) for block in blocks)

    if turn.role == "assistant":
        if previous is None:
            raise InvalidSequence("conversation must start with a requester turn", index=index)
        if previous.role != "requester":
            raise InvalidSequence("assistant turn must follow a requester turn", index=index)
        if has_outcomes:
            raise InvalidSequence("assistant turn may not carry tool_outcome blocks", index=index)
        ids = [block.id for block in turn.invocation_blocks()]
        if len(ids) != len(set(ids)):
            raise InvalidSequence("tool_invocation ids must be unique within a turn", index=index)
        return

    pending = previous.invocation_blocks() if previous is not None and previous.role == "assistant" else []

    if turn.is_outcome_handback():
        if previous is None or not pending:
            raise InvalidSequence(
                "tool_outcome turn must follow an assistant turn with tool invocations",
                index=index,
            )
        expected = sorted(block.id for block in pending)
        answered = sorted(block.invocation_id for block in turn.outcome_blocks())
        if answered != expected:
            raise InvalidSequence(
                f"tool_outcome ids {answered} do not match pending invocations {expected}",
                index=index,
            )
        return

    if has_outcomes:
        raise InvalidSequence("tool_outcome blocks may not be mixed with other content", index=index)
    if previous is not None and previous.role != "assistant":
        raise InvalidSequence("requester turn must follow an assistant turn", index=index)
    if pending:
        raise InvalidSequence("previous assistant tool invocations were never answered", index=index)


def validate_sequence(turns: Iterable[Turn], *, previous: Turn | None = None, offset: int = 0) -> None:
    last = previous
    for position, turn in enumerate(turns):
        check_transition(last, turn, index=offset + position)
        last = turn


class MessageStore:
    """Append-only, validated turn history for one conversation."""

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    @classmethod
    def from_turns(cls, turns: Iterable[Turn]) -> "MessageStore":
        store = cls()
        store.extend(turns)
        return store

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def last(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    def append(self, turn: Turn) -> None:
        check_transition(self.last, turn, index=len(self._turns))
        self._turns.append(turn)

    def extend(self, turns: Iterable[Turn]) -> None:
        batch = list(turns)
        validate_sequence(batch, previous=self.last, offset=len(self._turns))
        self._turns.extend(batch)

    def snapshot(self) -> list[Turn]:
        return [turn.model_copy(deep=True) for turn in self._turns]

    def fork(self) -> "MessageStore":
        forked = MessageStore()
        forked._turns = self.snapshot()
        return forked

    def turns_since(self, start: int) -> list[Turn]:
        return [turn.model_copy(deep=True) for turn in self._turns[start:]]
