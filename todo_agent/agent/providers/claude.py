from __future__ import annotations

import logging
import re
from typing import Any

from todo_agent.agent.adapters import build_claude_messages
from todo_agent.agent.errors import ModelEndpointFailure
from todo_agent.agent.messages import Turn
from todo_agent.agent.providers.base import ModelClient
from todo_agent.agent.types import ModelResponse, ToolCall

logger = logging.getLogger(__name__)

_QUOTED = re.compile(r"[\"']([^\"']{1,200})[\"']")


class ClaudeClient(ModelClient):
    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        max_tokens: int = 1024,
        mock_mode: bool = False,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.mock_mode = mock_mode
        self._client: Any = None
        self.last_request: dict[str, Any] | None = None

    @property
    def is_mock(self) -> bool:
        return self.mock_mode or not self.api_key

    def _mock_turn(self, *, turns: list[Turn]) -> ModelResponse:
        state = {"provider": "claude", "model": self.model, "mock": True}
        last = turns[-1] if turns else None
        if last is not None and last.is_outcome_handback():
            evidence = [block.evidence for block in last.outcome_blocks() if block.evidence]
            text = "Here is what the tools reported:\n\n" + "\n\n".join(evidence) if evidence else "The tools returned no results."
            return ModelResponse(text=text, provider_state=state)

        user_text = last.text() if last is not None else ""
        lowered = user_text.lower()
        if any(word in lowered for word in ("add", "create", "new todo")):
            match = _QUOTED.search(user_text)
            title = match.group(1) if match else re.sub(r"^(please\s+)?(add|create)\s+(a\s+)?(new\s+)?(todo|task)?\s*:?\s*", "", user_text, flags=re.I).strip()
            return ModelResponse(
                text="I will create that todo.",
                tool_calls=[ToolCall(id="mock_claude_create_1", name="create_todo", input={"title": title[:200] or "Untitled"})],
                provider_state=state,
            )
        if any(word in lowered for word in ("list", "show", "todos", "tasks")):
            return ModelResponse(
                text="Let me check your todos.",
                tool_calls=[ToolCall(id="mock_claude_list_1", name="list_todos", input={})],
                provider_state=state,
            )
        return ModelResponse(text=f"Claude mock response: {user_text or 'Ready.'}", provider_state=state)

    def _get_client(self) -> Any:
        if self._client is None:
            from anthropic import AsyncAnthropic

            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    def build_request(self, *, turns: list[Turn], tools: list[dict[str, Any]], system_prompt: str) -> dict[str, Any]:
        request_payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": build_claude_messages(turns),
        }
        if system_prompt:
            request_payload["system"] = system_prompt
        if tools:
            request_payload["tools"] = tools
        return request_payload

    async def complete(
        self,
        *,
        turns: list[Turn],
        tools: list[dict[str, Any]],
        system_prompt: str,
    ) -> ModelResponse:
        request_payload = self.build_request(turns=turns, tools=tools, system_prompt=system_prompt)
        self.last_request = request_payload
        if self.is_mock:
            return self._mock_turn(turns=turns)

        try:
            response = await self._get_client().messages.create(**request_payload)
        except Exception as exc:
            logger.error("Claude request failed: %s", exc)
            raise ModelEndpointFailure(f"Claude request failed: {exc}") from exc

        text_chunks: list[str] = []
        tool_calls: list[ToolCall] = []
        for index, block in enumerate(getattr(response, "content", None) or []):
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_chunks.append(str(getattr(block, "text", "") or ""))
            elif block_type == "tool_use":
                raw_input = getattr(block, "input", None)
                tool_calls.append(
                    ToolCall(
                        id=str(getattr(block, "id", None) or f"claude_tool_{index}"),
                        name=str(getattr(block, "name", None) or "unknown_tool"),
                        input=raw_input if isinstance(raw_input, dict) else {"raw": raw_input},
                    )
                )

        return ModelResponse(
            text="".join(text_chunks).strip(),
            tool_calls=tool_calls,
            provider_state={
                "provider": "claude",
                "model": self.model,
                "stop_reason": getattr(response, "stop_reason", None),
                "message_id": getattr(response, "id", None),
            },
        )
