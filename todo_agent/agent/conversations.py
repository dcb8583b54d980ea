from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from todo_agent.agent.errors import ConversationBusy
from todo_agent.agent.message_store import MessageStore


@dataclass
class ConversationState:
    conversation_id: str
    store: MessageStore = field(default_factory=MessageStore)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    updated_at: float = field(default_factory=time.time)


class ConversationRegistry:
    """Per-conversation message stores with a single in-flight run each."""

    def __init__(self, *, max_conversations: int = 500, ttl_seconds: int = 3600) -> None:
        self.max_conversations = max_conversations
        self.ttl_seconds = ttl_seconds
        self._conversations: dict[str, ConversationState] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def _cleanup(self, *, keep: str | None = None) -> None:
        now = time.time()
        expired = [
            key
            for key, state in self._conversations.items()
            if key != keep and now - state.updated_at > self.ttl_seconds and not state.lock.locked()
        ]
        for key in expired:
            self._conversations.pop(key, None)

        if len(self._conversations) <= self.max_conversations:
            return
        idle = sorted(
            (
                state
                for state in self._conversations.values()
                if state.conversation_id != keep and not state.lock.locked()
            ),
            key=lambda item: item.updated_at,
        )
        to_remove = len(self._conversations) - self.max_conversations
        for state in idle[:to_remove]:
            self._conversations.pop(state.conversation_id, None)

    def get_or_create(self, conversation_id: str) -> ConversationState:
        state = self._conversations.get(conversation_id)
        if state is None:
            state = ConversationState(conversation_id=conversation_id)
            self._conversations[conversation_id] = state
        state.updated_at = time.time()
        self._cleanup(keep=conversation_id)
        return state

    @asynccontextmanager
    async def acquire(self, conversation_id: str) -> AsyncIterator[MessageStore]:
        """Hold the conversation for one run; a second concurrent run is rejected."""
        state = self.get_or_create(conversation_id)
        if state.lock.locked():
            raise ConversationBusy(conversation_id)
        async with state.lock:
            try:
                yield state.store
            finally:
                state.updated_at = time.time()
