from __future__ import annotations

import pytest

from todo_agent.agent.tools.context import ToolContext
from todo_agent.agent.tools.todos import create_todo_registry


def test_catalog_exposes_five_tools_with_schemas(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    assert registry.names() == ["create_todo", "delete_todo", "get_todo", "list_todos", "update_todo"]
    schemas = {schema["name"]: schema for schema in registry.anthropic_schemas()}
    create_schema = schemas["create_todo"]["input_schema"]
    assert create_schema["required"] == ["title"]
    assert set(create_schema["properties"]["priority"]["enum"]) == {"low", "medium", "high"}
    for schema in schemas.values():
        for token in ("WHEN:", "AVOID:", "CRITICAL_ARGS:", "RETURNS:", "FAILS_IF:"):
            assert token in schema["description"]


@pytest.mark.asyncio
async def test_create_get_and_list(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    ctx = ToolContext(run_id="run-1")

    created = await registry.execute(
        "create_todo",
        {"title": "  Groceries ", "priority": "high", "due_date": "2030-01-15", "tags": ["home"]},
        ctx,
    )
    assert created["status"] == "success"
    todo = created["output"]["data"]["todo"]
    assert todo["title"] == "Groceries"
    assert todo["priority"] == "high"
    assert todo["status"] == "pending"
    assert todo["due_date"] == "2030-01-15T00:00:00Z"
    assert todo["tags"] == ["home"]
    assert "completed_at" not in todo
    assert created["output"]["result_kind"] == "todo"
    assert created["output"]["source_meta"]["lineage"]["run_id"] == "run-1"

    fetched = await registry.execute("get_todo", {"id": todo["id"]})
    assert fetched["output"]["data"]["todo"] == todo

    await registry.execute("create_todo", {"title": "Taxes", "status": "completed"})
    listed = await registry.execute("list_todos", {"status": "pending"})
    data = listed["output"]["data"]
    assert [item["title"] for item in data["todos"]] == ["Groceries"]
    assert listed["output"]["filters"] == {"status": "pending"}

    everything = await registry.execute("list_todos", {})
    assert everything["output"]["data"]["counts_by_status"] == {
        "pending": 1,
        "in_progress": 0,
        "completed": 1,
        "cancelled": 0,
    }


@pytest.mark.asyncio
async def test_list_sorted_by_priority_and_search(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    for title, priority in (("Walk dog", "low"), ("Pay rent", "high"), ("Call mom", "medium")):
        await registry.execute("create_todo", {"title": title, "priority": priority})

    ordered = await registry.execute("list_todos", {"sort": "priority"})
    assert [item["title"] for item in ordered["output"]["data"]["todos"]] == ["Pay rent", "Call mom", "Walk dog"]

    reversed_order = await registry.execute("list_todos", {"sort": "priority", "order": "asc"})
    assert [item["title"] for item in reversed_order["output"]["data"]["todos"]] == ["Walk dog", "Call mom", "Pay rent"]

    searched = await registry.execute("list_todos", {"search": "rent"})
    assert [item["title"] for item in searched["output"]["data"]["todos"]] == ["Pay rent"]


@pytest.mark.asyncio
async def test_update_tracks_completed_at_and_returns_before_after(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    created = await registry.execute("create_todo", {"title": "Groceries"})
    todo_id = created["output"]["data"]["todo"]["id"]

    completed = await registry.execute("update_todo", {"id": todo_id, "status": "completed"})
    assert completed["output"]["result_kind"] == "todo_change"
    before = completed["output"]["data"]["before"]
    after = completed["output"]["data"]["after"]
    assert before["status"] == "pending" and "completed_at" not in before
    assert after["status"] == "completed" and "completed_at" in after

    reopened = await registry.execute("update_todo", {"id": todo_id, "status": "in_progress"})
    assert "completed_at" not in reopened["output"]["data"]["after"]


@pytest.mark.asyncio
async def test_update_without_changes_is_a_validation_error(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    created = await registry.execute("create_todo", {"title": "Groceries"})
    todo_id = created["output"]["data"]["todo"]["id"]

    result = await registry.execute("update_todo", {"id": todo_id})
    assert result["status"] == "error"
    assert result["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_missing_ids_return_not_found(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    for name, args in (
        ("get_todo", {"id": "nope"}),
        ("update_todo", {"id": "nope", "title": "x"}),
        ("delete_todo", {"id": "nope"}),
    ):
        result = await registry.execute(name, args)
        assert result["status"] == "error"
        assert result["error"]["code"] == "NOT_FOUND"
        assert result["error"]["details"] == {"id": "nope"}


@pytest.mark.asyncio
async def test_delete_returns_the_removed_record(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    created = await registry.execute("create_todo", {"title": "Groceries"})
    todo_id = created["output"]["data"]["todo"]["id"]

    deleted = await registry.execute("delete_todo", {"id": todo_id})
    assert deleted["output"]["result_kind"] == "todo_deleted"
    assert deleted["output"]["data"]["todo"]["title"] == "Groceries"
    listed = await registry.execute("list_todos", {})
    assert listed["output"]["data"]["count"] == 0


@pytest.mark.asyncio
async def test_bad_arguments_are_rejected_with_issues(session_factory) -> None:
    registry = create_todo_registry(session_factory)
    result = await registry.execute("create_todo", {"title": "", "priority": "urgent"})
    assert result["status"] == "error"
    assert result["error"]["code"] == "VALIDATION_ERROR"
    fields = {issue["field"] for issue in result["error"]["details"]["issues"]}
    assert {"title", "priority"} <= fields

    unknown = await registry.execute("archive_todo", {})
    assert unknown["error"]["code"] == "UNKNOWN_TOOL"
