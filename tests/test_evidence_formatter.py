from __future__ import annotations

from todo_agent.agent.evidence import (
    format_comparison,
    format_error,
    format_outcome,
    format_todo,
    format_todo_list,
    render_partial_summary,
)
from todo_agent.agent.types import RunStatus, ToolOutcome

GROCERIES = {
    "id": "t-1",
    "title": "Groceries",
    "status": "pending",
    "priority": "high",
    "created_at": "2024-05-01T10:00:00Z",
    "updated_at": "2024-05-01T10:00:00Z",
}


def _success(kind: str, data: dict, *, tool: str = "list_todos", call_id: str = "c1", filters: dict | None = None) -> ToolOutcome:
    return ToolOutcome(
        invocation_id=call_id,
        tool_name=tool,
        success=True,
        payload={"result_kind": kind, "summary": "", "data": data, "filters": filters or {}},
    )


def test_format_todo_renders_present_fields_and_omits_absent_ones() -> None:
    text = format_todo({**GROCERIES, "description": "milk, eggs", "tags": ["home", "weekly"]})
    assert 'Title: "Groceries"' in text
    assert "ID: t-1" in text
    assert "Status: pending" in text
    assert "Priority: high" in text
    assert "Description: milk, eggs" in text
    assert "Tags: home, weekly" in text
    assert "Due" not in text
    assert "Completed" not in text


def test_format_todo_list_has_exact_counts_and_groups() -> None:
    todos = [
        GROCERIES,
        {**GROCERIES, "id": "t-2", "title": "Taxes", "status": "completed", "completed_at": "2024-05-02T09:00:00Z"},
        {**GROCERIES, "id": "t-3", "title": "Gym", "priority": "low"},
    ]
    text = format_todo_list(todos, filters={"search": None, "priority": "high"})
    lines = text.splitlines()
    assert lines[0] == "Found 3 todos:"
    assert "Filters: priority=high" in lines
    assert "Status counts: pending 2, in_progress 0, completed 1, cancelled 0" in lines
    assert "Pending (2):" in lines
    assert "Completed (1):" in lines
    assert any(line.startswith('- "Taxes" (id: t-2)') for line in lines)
    assert lines.index("Pending (2):") < lines.index("Completed (1):")


def test_format_todo_list_empty() -> None:
    text = format_todo_list([])
    assert text.splitlines()[0] == "Found 0 todos."


def test_format_todo_list_lines_omit_absent_fields_and_keep_the_rest() -> None:
    text = format_todo_list(
        [{"title": "A", "status": "pending", "created_at": "2026-01-01T00:00:00", "source": "import"}]
    )
    line = [line for line in text.splitlines() if line.startswith("- ")][0]
    assert line == '- "A", created 2026-01-01T00:00:00, source import'
    assert "?" not in text
    assert "priority" not in line

    full = format_todo_list([GROCERIES]).splitlines()[-1]
    assert full == (
        '- "Groceries" (id: t-1), priority high, '
        "created 2024-05-01T10:00:00Z, updated 2024-05-01T10:00:00Z"
    )


def test_format_comparison_lists_only_changed_fields() -> None:
    before = dict(GROCERIES)
    after = {**GROCERIES, "status": "completed", "completed_at": "2024-05-03T08:00:00Z", "updated_at": "2024-05-03T08:00:00Z"}
    text = format_comparison(before, after)
    assert text.startswith('Changed fields on "Groceries" (id: t-1):')
    assert "- Status: pending -> completed" in text
    assert "- Completed: (none) -> 2024-05-03T08:00:00Z" in text
    assert "Priority" not in text


def test_format_error_includes_code_and_issues() -> None:
    text = format_error(
        {
            "code": "VALIDATION_ERROR",
            "message": "Invalid arguments for 'create_todo'",
            "details": {"issues": [{"field": "title", "message": "Field required"}]},
        }
    )
    assert text.splitlines() == [
        "Error [VALIDATION_ERROR]: Invalid arguments for 'create_todo'",
        "- title: Field required",
    ]


def test_format_outcome_is_deterministic() -> None:
    outcome = _success("todo_list", {"todos": [GROCERIES], "counts_by_status": {"pending": 1}})
    assert format_outcome(outcome) == format_outcome(outcome)
    assert format_outcome(outcome).startswith("[list_todos #c1] succeeded")


def test_format_outcome_for_duplicate_and_failure() -> None:
    duplicate = ToolOutcome(
        invocation_id="c2",
        tool_name="create_todo",
        success=False,
        error={"code": "DUPLICATE_INVOCATION_SKIPPED", "message": "Skipped: repeat"},
        duplicate=True,
    )
    failed = ToolOutcome(
        invocation_id="c3",
        tool_name="get_todo",
        success=False,
        error={"code": "NOT_FOUND", "message": "No todo with id 'x'"},
    )
    assert format_outcome(duplicate) == "[create_todo #c2] not executed (duplicate)\nSkipped: repeat"
    assert "Error [NOT_FOUND]: No todo with id 'x'" in format_outcome(failed)


def test_partial_summary_distinguishes_nothing_from_partial() -> None:
    nothing = render_partial_summary(RunStatus.DEADLINE_EXCEEDED, [], iterations=1, max_iterations=3)
    assert nothing.startswith("[Incomplete]")
    assert "Nothing happened" in nothing

    created = _success("todo", {"todo": GROCERIES}, tool="create_todo")
    partial = render_partial_summary(
        RunStatus.ITERATION_LIMIT_REACHED, [created], iterations=3, max_iterations=3
    )
    assert "tool-iteration limit" in partial
    assert "Partially completed" in partial
    assert 'Title: "Groceries"' in partial


def test_partial_summary_for_aborted_run_names_the_failure() -> None:
    text = render_partial_summary(RunStatus.ABORTED, [], iterations=1, max_iterations=3, reason="HTTP 529 overloaded")
    assert text.startswith("[Failed] The language model endpoint failed: HTTP 529 overloaded")


def test_partial_summary_marks_timed_out_writes_as_unknown() -> None:
    timed_out = ToolOutcome(
        invocation_id="c1",
        tool_name="create_todo",
        success=False,
        error={"code": "TIMEOUT", "message": "Tool 'create_todo' did not finish within 2s and was cancelled"},
    )
    text = render_partial_summary(RunStatus.DEADLINE_EXCEEDED, [timed_out], iterations=1, max_iterations=3)
    assert "Nothing happened" not in text
    assert "no todos were changed" not in text
    assert "outcome is unknown" in text
    assert "Outcome unknown" in text
    assert "[create_todo #c1] failed" in text

    read_timeout = ToolOutcome(
        invocation_id="c2",
        tool_name="list_todos",
        success=False,
        error={"code": "TIMEOUT", "message": "timed out"},
    )
    text = render_partial_summary(RunStatus.DEADLINE_EXCEEDED, [read_timeout], iterations=1, max_iterations=3)
    assert "Nothing happened" in text
    assert "Calls that failed:" in text
