from __future__ import annotations

import json
from typing import Any

from todo_agent.agent.types import ToolOutcome

STATUS_ORDER = ("pending", "in_progress", "completed", "cancelled")
STATUS_LABELS = {
    "pending": "Pending",
    "in_progress": "In progress",
    "completed": "Completed",
    "cancelled": "Cancelled",
}
# Display order of record fields; anything else present is appended after these.
FIELD_ORDER = (
    "title",
    "id",
    "status",
    "priority",
    "description",
    "due_date",
    "tags",
    "created_at",
    "updated_at",
    "completed_at",
)
FIELD_LABELS = {
    "title": "Title",
    "id": "ID",
    "status": "Status",
    "priority": "Priority",
    "description": "Description",
    "due_date": "Due",
    "tags": "Tags",
    "created_at": "Created",
    "updated_at": "Updated",
    "completed_at": "Completed",
}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)) and not value:
        return False
    return True


def _render_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, ensure_ascii=False)
    return str(value)


def _ordered_fields(todo: dict[str, Any]) -> list[str]:
    known = [name for name in FIELD_ORDER if name in todo]
    extra = sorted(name for name in todo if name not in FIELD_ORDER)
    return known + extra


def format_todo(todo: dict[str, Any]) -> str:
    """Every present field of one record, one per line."""
    lines: list[str] = []
    for name in _ordered_fields(todo):
        value = todo.get(name)
        if not _present(value):
            continue
        label = FIELD_LABELS.get(name, name)
        if name == "title":
            lines.append(f'{label}: "{value}"')
        else:
            lines.append(f"{label}: {_render_value(value)}")
    return "\n".join(lines)


def _todo_line(todo: dict[str, Any]) -> str:
    """One list entry: title and id first, then every other present field except status."""
    head: list[str] = []
    if _present(todo.get("title")):
        head.append(f'"{todo["title"]}"')
    if _present(todo.get("id")):
        head.append(f"(id: {todo['id']})")
    parts = [" ".join(head)] if head else []
    for name in _ordered_fields(todo):
        # status is already given by the group header
        if name in ("title", "id", "status"):
            continue
        value = todo.get(name)
        if _present(value):
            parts.append(f"{FIELD_LABELS.get(name, name).lower()} {_render_value(value)}")
    return "- " + ", ".join(parts)


def format_todo_list(
    todos: list[dict[str, Any]],
    *,
    counts_by_status: dict[str, int] | None = None,
    filters: dict[str, Any] | None = None,
) -> str:
    """Total, exact per-status counts, then one line per record grouped by status."""
    counts = {status: 0 for status in STATUS_ORDER}
    if counts_by_status:
        counts.update({str(key): int(value) for key, value in counts_by_status.items()})
    else:
        for todo in todos:
            status = str(todo.get("status") or "")
            counts[status] = counts.get(status, 0) + 1

    noun = "todo" if len(todos) == 1 else "todos"
    lines = [f"Found {len(todos)} {noun}" + (":" if todos else ".")]
    applied = {key: value for key, value in (filters or {}).items() if _present(value)}
    if applied:
        lines.append("Filters: " + ", ".join(f"{key}={_render_value(applied[key])}" for key in sorted(applied)))
    lines.append("Status counts: " + ", ".join(f"{status} {counts[status]}" for status in counts))

    statuses = list(STATUS_ORDER) + sorted(
        {str(todo.get("status") or "") for todo in todos} - set(STATUS_ORDER)
    )
    for status in statuses:
        group = [todo for todo in todos if str(todo.get("status") or "") == status]
        if not group:
            continue
        lines.append(f"{STATUS_LABELS.get(status, status or 'Unknown')} ({len(group)}):")
        lines.extend(_todo_line(todo) for todo in group)
    return "\n".join(lines)


def format_comparison(before: dict[str, Any], after: dict[str, Any]) -> str:
    title = after.get("title") or before.get("title") or ""
    todo_id = after.get("id") or before.get("id") or "?"
    changed: list[str] = []
    for name in _ordered_fields({**before, **after}):
        old, new = before.get(name), after.get(name)
        if old == new:
            continue
        old_text = _render_value(old) if _present(old) else "(none)"
        new_text = _render_value(new) if _present(new) else "(none)"
        changed.append(f"- {FIELD_LABELS.get(name, name)}: {old_text} -> {new_text}")
    if not changed:
        return f'No fields changed on "{title}" (id: {todo_id}).'
    return "\n".join([f'Changed fields on "{title}" (id: {todo_id}):', *changed])


def format_error(error: dict[str, Any]) -> str:
    code = str(error.get("code") or "ERROR")
    message = str(error.get("message") or "Tool failed")
    lines = [f"Error [{code}]: {message}"]
    details = error.get("details") if isinstance(error.get("details"), dict) else {}
    for issue in details.get("issues") or []:
        if isinstance(issue, dict):
            lines.append(f"- {issue.get('field')}: {issue.get('message')}")
    return "\n".join(lines)


def _format_payload(payload: dict[str, Any]) -> str:
    kind = str(payload.get("result_kind") or "")
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

    if kind == "todo_list":
        return format_todo_list(
            list(data.get("todos") or []),
            counts_by_status=data.get("counts_by_status"),
            filters=payload.get("filters"),
        )
    if kind == "todo_change":
        return format_comparison(dict(data.get("before") or {}), dict(data.get("after") or {}))
    if kind == "todo_deleted":
        return "Deleted todo:\n" + format_todo(dict(data.get("todo") or {}))
    if kind == "todo":
        return format_todo(dict(data.get("todo") or {}))

    summary = str(payload.get("summary") or "").strip()
    body = json.dumps(data, sort_keys=True, ensure_ascii=False, default=str)
    return f"{summary}\n{body}".strip()


def format_outcome(outcome: ToolOutcome) -> str:
    """Render one outcome as text that keeps every reported fact.

    Pure: the result depends only on ``outcome``.
    """
    header = f"[{outcome.tool_name} #{outcome.invocation_id}]"
    if outcome.duplicate:
        message = str((outcome.error or {}).get("message") or "Skipped duplicate invocation")
        return f"{header} not executed (duplicate)\n{message}"
    if not outcome.success:
        return f"{header} failed\n{format_error(outcome.error or {})}"
    return f"{header} succeeded\n{_format_payload(outcome.payload or {})}"
