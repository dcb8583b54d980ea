from __future__ import annotations

import pytest

from todo_agent.agent.errors import InvalidSequence
from todo_agent.agent.message_store import MessageStore
from todo_agent.agent.messages import ToolInvocationBlock, ToolOutcomeBlock, Turn


def _invocation(call_id: str, name: str = "list_todos") -> ToolInvocationBlock:
    return ToolInvocationBlock(id=call_id, name=name, arguments={})


def _outcome(call_id: str) -> ToolOutcomeBlock:
    return ToolOutcomeBlock(invocation_id=call_id, payload={"ok": True})


def test_plain_alternation_is_accepted() -> None:
    store = MessageStore()
    store.append(Turn.requester("hi"))
    store.append(Turn.assistant("hello"))
    store.append(Turn.requester("list my todos"))
    assert len(store) == 3


def test_outcome_handback_after_invocations_is_accepted() -> None:
    store = MessageStore()
    store.append(Turn.requester("show todos"))
    store.append(Turn.assistant("checking", [_invocation("a"), _invocation("b", "get_todo")]))
    store.append(Turn.outcomes([_outcome("b"), _outcome("a")]))
    store.append(Turn.assistant("done"))
    assert store.last is not None and store.last.text() == "done"


def test_first_turn_must_be_requester() -> None:
    store = MessageStore()
    with pytest.raises(InvalidSequence):
        store.append(Turn.assistant("hello"))
    assert len(store) == 0


def test_two_requester_text_turns_in_a_row_are_rejected() -> None:
    store = MessageStore()
    store.append(Turn.requester("one"))
    with pytest.raises(InvalidSequence):
        store.append(Turn.requester("two"))
    assert len(store) == 1


def test_two_assistant_turns_in_a_row_are_rejected() -> None:
    store = MessageStore.from_turns([Turn.requester("one"), Turn.assistant("a")])
    with pytest.raises(InvalidSequence):
        store.append(Turn.assistant("b"))


def test_handback_must_answer_every_invocation_exactly_once() -> None:
    store = MessageStore.from_turns(
        [Turn.requester("go"), Turn.assistant("", [_invocation("a"), _invocation("b", "get_todo")])]
    )
    with pytest.raises(InvalidSequence):
        store.append(Turn.outcomes([_outcome("a")]))
    with pytest.raises(InvalidSequence):
        store.append(Turn.outcomes([_outcome("a"), _outcome("a")]))
    with pytest.raises(InvalidSequence):
        store.append(Turn.outcomes([_outcome("a"), _outcome("zzz")]))
    assert len(store) == 2


def test_handback_without_pending_invocations_is_rejected() -> None:
    store = MessageStore.from_turns([Turn.requester("go"), Turn.assistant("no tools")])
    with pytest.raises(InvalidSequence):
        store.append(Turn.outcomes([_outcome("a")]))


def test_text_turn_cannot_skip_pending_invocations() -> None:
    store = MessageStore.from_turns([Turn.requester("go"), Turn.assistant("", [_invocation("a")])])
    with pytest.raises(InvalidSequence):
        store.append(Turn.requester("never mind"))


def test_duplicate_invocation_ids_in_one_turn_are_rejected() -> None:
    store = MessageStore.from_turns([Turn.requester("go")])
    with pytest.raises(InvalidSequence):
        store.append(Turn.assistant("", [_invocation("a"), _invocation("a", "get_todo")]))


def test_extend_is_all_or_nothing() -> None:
    store = MessageStore.from_turns([Turn.requester("go")])
    batch = [Turn.assistant("ok"), Turn.requester("next"), Turn.requester("broken")]
    with pytest.raises(InvalidSequence) as excinfo:
        store.extend(batch)
    assert excinfo.value.index == 3
    assert len(store) == 1


def test_snapshot_and_fork_are_independent_copies() -> None:
    store = MessageStore.from_turns([Turn.requester("go")])
    fork = store.fork()
    fork.append(Turn.assistant("only in fork"))
    snapshot = store.snapshot()
    assert len(store) == 1
    assert len(fork) == 2
    assert snapshot == [Turn.requester("go")]
    assert snapshot[0] is not store.last


def test_outcome_block_requires_exactly_one_of_payload_or_error() -> None:
    with pytest.raises(ValueError):
        ToolOutcomeBlock(invocation_id="a")
    with pytest.raises(ValueError):
        ToolOutcomeBlock(invocation_id="a", payload={}, error={"code": "X"})
