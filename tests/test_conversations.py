from __future__ import annotations

import asyncio

import pytest

from todo_agent.agent.conversations import ConversationRegistry
from todo_agent.agent.errors import ConversationBusy
from todo_agent.agent.messages import Turn


@pytest.mark.asyncio
async def test_acquire_returns_the_same_store_per_conversation() -> None:
    registry = ConversationRegistry()
    async with registry.acquire("c1") as store:
        store.append(Turn.requester("hi"))
    async with registry.acquire("c1") as store_again:
        assert len(store_again) == 1
    async with registry.acquire("c2") as other:
        assert len(other) == 0


@pytest.mark.asyncio
async def test_second_concurrent_run_is_rejected() -> None:
    registry = ConversationRegistry()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def hold() -> None:
        async with registry.acquire("c1"):
            entered.set()
            await release.wait()

    holder = asyncio.create_task(hold())
    await entered.wait()
    with pytest.raises(ConversationBusy) as excinfo:
        async with registry.acquire("c1"):
            pass
    assert excinfo.value.conversation_id == "c1"
    release.set()
    await holder

    async with registry.acquire("c1"):
        pass


def test_cleanup_evicts_oldest_idle_conversations() -> None:
    registry = ConversationRegistry(max_conversations=2, ttl_seconds=3600)
    for name in ("a", "b", "c"):
        registry.get_or_create(name)
    assert len(registry) == 2
    assert "a" not in registry
