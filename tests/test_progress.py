from __future__ import annotations

import asyncio

import pytest

from todo_agent.agent.progress import ProgressChannel, ProgressEvent


def test_progress_event_omits_unset_optional_fields() -> None:
    assert ProgressEvent(iteration=1, phase="planning").to_dict(run_id="r1") == {
        "type": "progress",
        "run_id": "r1",
        "iteration": 1,
        "phase": "planning",
    }
    event = ProgressEvent(iteration=2, phase="executing", tool_name="list_todos", elapsed_ms=12).to_dict()
    assert event["tool_name"] == "list_todos"
    assert event["elapsed_ms"] == 12


@pytest.mark.asyncio
async def test_channel_delivers_in_order() -> None:
    received: list[dict] = []

    async def sink(event: dict) -> None:
        received.append(event)

    channel = ProgressChannel(sink, run_id="r1").start()
    channel.lifecycle("run_start")
    channel.emit(ProgressEvent(iteration=1, phase="planning"))
    channel.emit(ProgressEvent(iteration=1, phase="summarizing"))
    await channel.aclose()

    assert [event["type"] for event in received] == ["run_start", "progress", "progress"]
    assert [event.get("phase") for event in received[1:]] == ["planning", "summarizing"]
    assert all(event["run_id"] == "r1" for event in received)


@pytest.mark.asyncio
async def test_emit_does_not_wait_for_a_slow_sink() -> None:
    gate = asyncio.Event()
    received: list[dict] = []

    async def slow_sink(event: dict) -> None:
        await gate.wait()
        received.append(event)

    channel = ProgressChannel(slow_sink, run_id="r1").start()
    for index in range(5):
        channel.emit(ProgressEvent(iteration=index, phase="planning"))
    assert received == []
    gate.set()
    await channel.aclose()
    assert [event["iteration"] for event in received] == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_sink_failure_is_logged_and_draining_continues() -> None:
    received: list[dict] = []

    async def flaky_sink(event: dict) -> None:
        if event.get("iteration") == 1:
            raise ConnectionError("client went away")
        received.append(event)

    channel = ProgressChannel(flaky_sink).start()
    for index in range(3):
        channel.emit(ProgressEvent(iteration=index, phase="planning"))
    await channel.aclose()

    assert [event["iteration"] for event in received] == [0, 2]
    assert channel.delivery_failures == 1


@pytest.mark.asyncio
async def test_channel_without_sink_and_after_close_is_a_no_op() -> None:
    channel = ProgressChannel(None).start()
    channel.emit(ProgressEvent(iteration=1, phase="planning"))
    await channel.aclose()
    channel.emit(ProgressEvent(iteration=2, phase="planning"))


@pytest.mark.asyncio
async def test_close_gives_up_on_a_hung_sink_and_counts_dropped_events() -> None:
    release = asyncio.Event()
    received: list[dict] = []

    async def sink(event: dict) -> None:
        received.append(event)
        await release.wait()

    channel = ProgressChannel(sink, run_id="r1", drain_timeout=0.1).start()
    channel.lifecycle("run_start")
    channel.emit(ProgressEvent(iteration=1, phase="planning"))
    channel.lifecycle("run_complete")

    await asyncio.wait_for(channel.aclose(), timeout=2)

    assert [event["type"] for event in received] == ["run_start"]
    assert channel.delivery_failures == 3
