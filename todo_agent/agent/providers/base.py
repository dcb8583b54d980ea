from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from todo_agent.agent.messages import Turn
from todo_agent.agent.types import ModelResponse


class ModelClient(ABC):
    @abstractmethod
    async def complete(
        self,
        *,
        turns: list[Turn],
        tools: list[dict[str, Any]],
        system_prompt: str,
    ) -> ModelResponse:
        """Return text, tool invocation requests, or both for the next assistant turn.

        Raises ``ModelEndpointFailure`` when the endpoint cannot answer.
        """
        raise NotImplementedError
