from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from todo_agent.agent.tools.context import ToolContext
from todo_agent.agent.tools.contracts import normalize_tool_output
from todo_agent.agent.tools.errors import ToolExecutionError, error_payload, unknown_error_payload

logger = logging.getLogger(__name__)

ToolHandler = Callable[[BaseModel, ToolContext | None], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[BaseModel]
    handler: ToolHandler

    @property
    def input_schema(self) -> dict[str, Any]:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def anthropic_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description.strip(),
            "input_schema": self.input_schema,
        }


class ToolRegistry:
    def __init__(self, tools: list[ToolSpec]) -> None:
        self._by_name = {tool.name: tool for tool in tools}

    def anthropic_schemas(self) -> list[dict[str, Any]]:
        return [tool.anthropic_schema() for tool in self._by_name.values()]

    def names(self) -> list[str]:
        return sorted(self._by_name.keys())

    def get_spec(self, tool_name: str) -> ToolSpec | None:
        return self._by_name.get(tool_name)

    def validate(self, tool_name: str, arguments: Any) -> tuple[BaseModel | None, dict[str, Any] | None]:
        """Return ``(parsed_args, None)`` or ``(None, error_payload)``."""
        tool = self._by_name.get(tool_name)
        if tool is None:
            return None, error_payload(
                "UNKNOWN_TOOL",
                f"Unknown tool '{tool_name}'",
                available_tools=self.names(),
            )
        if not isinstance(arguments, dict):
            return None, error_payload(
                "VALIDATION_ERROR",
                f"Arguments for '{tool_name}' must be an object",
                tool=tool_name,
            )
        try:
            return tool.args_model.model_validate(arguments), None
        except ValidationError as exc:
            issues = [
                {
                    "field": ".".join(str(part) for part in err.get("loc", ())) or "(root)",
                    "message": str(err.get("msg") or ""),
                }
                for err in exc.errors()
            ]
            return None, error_payload(
                "VALIDATION_ERROR",
                f"Invalid arguments for '{tool_name}'",
                tool=tool_name,
                issues=issues,
            )

    async def execute_validated(
        self,
        tool_name: str,
        args: BaseModel,
        ctx: ToolContext | None = None,
    ) -> dict[str, Any]:
        tool = self._by_name[tool_name]
        effective_ctx = ctx.with_tool(tool_name=tool_name) if ctx is not None else None
        try:
            raw_result = await tool.handler(args, effective_ctx)
            return {
                "status": "success",
                "output": normalize_tool_output(raw_result, ctx=effective_ctx),
            }
        except ToolExecutionError as exc:
            return {
                "status": "error",
                "error": exc.to_error_payload(),
            }
        except Exception as exc:
            logger.exception("Tool '%s' raised an unexpected error", tool_name)
            return {
                "status": "error",
                "error": unknown_error_payload(exc),
            }

    async def execute(self, tool_name: str, arguments: Any, ctx: ToolContext | None = None) -> dict[str, Any]:
        args, validation_error = self.validate(tool_name, arguments)
        if validation_error is not None:
            return {"status": "error", "error": validation_error}
        assert args is not None
        return await self.execute_validated(tool_name, args, ctx)
