from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from todo_agent.agent.tools.context import ToolContext

CONTRACT_VERSION = "1.0"
RESULT_KINDS = {"todo", "todo_list", "todo_change", "todo_deleted", "status"}


def utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _lineage_from_ctx(ctx: ToolContext | None) -> dict[str, Any]:
    if ctx is None:
        return {"run_id": None, "tool_use_id": None}
    return {"run_id": ctx.run_id, "tool_use_id": ctx.tool_use_id}


def _coerce_result_kind(value: Any) -> str:
    candidate = str(value or "").strip().lower()
    if candidate in RESULT_KINDS:
        return candidate
    return "status"


def make_tool_output(
    *,
    result_kind: str,
    summary: str,
    data: Any | None = None,
    ids: list[str] | None = None,
    filters: dict[str, Any] | None = None,
    ctx: ToolContext | None = None,
) -> dict[str, Any]:
    """Uniform success payload every todo tool returns."""
    return {
        "contract_version": CONTRACT_VERSION,
        "result_kind": _coerce_result_kind(result_kind),
        "summary": summary,
        "data": data if data is not None else {},
        "ids": list(ids or []),
        "filters": {key: value for key, value in (filters or {}).items() if value is not None},
        "source_meta": {
            "source": "todo_store",
            "retrieved_at": utc_iso(),
            "lineage": _lineage_from_ctx(ctx),
        },
    }


def normalize_tool_output(output: Any, *, ctx: ToolContext | None) -> dict[str, Any]:
    if isinstance(output, dict) and "result_kind" in output and "data" in output:
        normalized = dict(output)
        normalized["contract_version"] = CONTRACT_VERSION
        normalized["result_kind"] = _coerce_result_kind(normalized.get("result_kind"))
        normalized.setdefault("summary", "Tool completed.")
        normalized.setdefault("ids", [])
        normalized.setdefault("filters", {})
        source_meta = normalized.get("source_meta")
        if not isinstance(source_meta, dict):
            source_meta = {}
        source_meta.setdefault("source", "todo_store")
        source_meta.setdefault("retrieved_at", utc_iso())
        source_meta.setdefault("lineage", _lineage_from_ctx(ctx))
        normalized["source_meta"] = source_meta
        return normalized

    return make_tool_output(
        result_kind="status",
        summary="Tool completed.",
        data={"value": output},
        ctx=ctx,
    )
