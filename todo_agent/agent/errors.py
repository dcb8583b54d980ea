from __future__ import annotations


class InvalidSequence(ValueError):
    """A turn would break requester/assistant alternation."""

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class ModelEndpointFailure(RuntimeError):
    """The language model endpoint failed; fatal for the current run only."""


class ConversationBusy(RuntimeError):
    """A run is already in flight for this conversation."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation '{conversation_id}' already has a run in progress")
        self.conversation_id = conversation_id
