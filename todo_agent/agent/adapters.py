from __future__ import annotations

import json
from typing import Any

from todo_agent.agent.messages import TextBlock, ToolInvocationBlock, ToolOutcomeBlock, Turn

_ROLE_MAP = {"requester": "user", "assistant": "assistant"}


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)
    except Exception:
        return str(value)


def _tool_result_content(block: ToolOutcomeBlock) -> str:
    if block.evidence:
        return block.evidence
    return _coerce_text(block.error if block.is_error else block.payload)


def build_claude_messages(turns: list[Turn]) -> list[dict[str, Any]]:
    """Map stored turns onto the Anthropic Messages API shape.

    Outcome hand-backs become ``user`` messages of ``tool_result`` blocks, so
    the alternation already enforced by the store carries over unchanged.
    """
    messages: list[dict[str, Any]] = []
    for turn in turns:
        content: list[dict[str, Any]] = []
        for block in turn.blocks():
            if isinstance(block, TextBlock):
                if block.text.strip():
                    content.append({"type": "text", "text": block.text})
            elif isinstance(block, ToolInvocationBlock):
                content.append(
                    {
                        "type": "tool_use",
                        "id": block.id,
                        "name": block.name,
                        "input": dict(block.arguments),
                    }
                )
            elif isinstance(block, ToolOutcomeBlock):
                result: dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": block.invocation_id,
                    "content": _tool_result_content(block),
                }
                if block.is_error:
                    result["is_error"] = True
                content.append(result)
        if not content:
            content.append({"type": "text", "text": "(empty)"})
        messages.append({"role": _ROLE_MAP[turn.role], "content": content})
    return messages
