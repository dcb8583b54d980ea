from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from todo_agent.agent.tools.context import ToolContext
from todo_agent.agent.tools.contracts import make_tool_output
from todo_agent.agent.tools.errors import ToolExecutionError
from todo_agent.agent.tools.registry import ToolRegistry, ToolSpec
from todo_agent.persistence.models import TodoPriority, TodoStatus
from todo_agent.persistence.service import TodoStore

StatusName = Literal["pending", "in_progress", "completed", "cancelled"]
PriorityName = Literal["low", "medium", "high"]

STATUS_ORDER = [status.value for status in TodoStatus]


def _parse_due_date(value: Any) -> Any:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if not text:
        return None
    if len(text) == 10:
        parsed_date = date.fromisoformat(text)
        return datetime(parsed_date.year, parsed_date.month, parsed_date.day)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class _ToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ListTodosArgs(_ToolArgs):
    status: StatusName | None = Field(default=None, description="Only todos with this status.")
    priority: PriorityName | None = Field(default=None, description="Only todos with this priority.")
    search: str | None = Field(default=None, max_length=200, description="Case-insensitive text match on title or description.")
    sort: Literal["created", "due", "priority"] = "created"
    order: Literal["asc", "desc"] = "desc"


class TodoIdArgs(_ToolArgs):
    id: str = Field(min_length=1, description="Exact todo id as returned by list_todos or create_todo.")


class CreateTodoArgs(_ToolArgs):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    priority: PriorityName = "medium"
    status: StatusName = "pending"
    due_date: datetime | None = Field(default=None, description="ISO 8601 date or datetime.")
    tags: list[str] | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, value: Any) -> Any:
        return _parse_due_date(value)


class UpdateTodoArgs(_ToolArgs):
    id: str = Field(min_length=1)
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    priority: PriorityName | None = None
    status: StatusName | None = None
    due_date: datetime | None = Field(default=None, description="ISO 8601 date or datetime; null clears it.")
    tags: list[str] | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, value: Any) -> Any:
        return _parse_due_date(value)

    def changes(self) -> dict[str, Any]:
        fields = self.model_dump(exclude_unset=True, exclude={"id"})
        # title/priority/status are not nullable; an explicit null means "leave as is"
        for name in ("title", "priority", "status"):
            if fields.get(name, "") is None:
                fields.pop(name)
        if "priority" in fields:
            fields["priority"] = TodoPriority(fields["priority"])
        if "status" in fields:
            fields["status"] = TodoStatus(fields["status"])
        return fields


def _not_found(todo_id: str) -> ToolExecutionError:
    return ToolExecutionError(
        code="NOT_FOUND",
        message=f"No todo with id '{todo_id}'",
        details={"id": todo_id},
    )


def count_by_status(todos: list[dict[str, Any]]) -> dict[str, int]:
    counts = {status: 0 for status in STATUS_ORDER}
    for todo in todos:
        status = str(todo.get("status") or "")
        counts[status] = counts.get(status, 0) + 1
    return counts


def create_todo_tools(session_factory: async_sessionmaker[AsyncSession]) -> list[ToolSpec]:
    async def list_todos(args: ListTodosArgs, ctx: ToolContext | None = None) -> dict[str, Any]:
        async with session_factory() as session:
            todos = await TodoStore(session).list_todos(
                status=TodoStatus(args.status) if args.status else None,
                priority=TodoPriority(args.priority) if args.priority else None,
                search=args.search or None,
                sort=args.sort,
                order=args.order,
            )
            payloads = [todo.to_payload() for todo in todos]
        return make_tool_output(
            result_kind="todo_list",
            summary=f"Found {len(payloads)} todo{'s' if len(payloads) != 1 else ''}.",
            data={"todos": payloads, "count": len(payloads), "counts_by_status": count_by_status(payloads)},
            ids=[item["id"] for item in payloads],
            filters={"status": args.status, "priority": args.priority, "search": args.search},
            ctx=ctx,
        )

    async def get_todo(args: TodoIdArgs, ctx: ToolContext | None = None) -> dict[str, Any]:
        async with session_factory() as session:
            todo = await TodoStore(session).get_todo(args.id)
            if todo is None:
                raise _not_found(args.id)
            payload = todo.to_payload()
        return make_tool_output(
            result_kind="todo",
            summary=f"Fetched todo '{payload['title']}'.",
            data={"todo": payload},
            ids=[payload["id"]],
            ctx=ctx,
        )

    async def create_todo(args: CreateTodoArgs, ctx: ToolContext | None = None) -> dict[str, Any]:
        async with session_factory() as session:
            todo = await TodoStore(session).create_todo(
                title=args.title,
                description=args.description,
                priority=TodoPriority(args.priority),
                status=TodoStatus(args.status),
                due_date=args.due_date,
                tags=args.tags,
            )
            payload = todo.to_payload()
        return make_tool_output(
            result_kind="todo",
            summary=f"Created todo '{payload['title']}'.",
            data={"todo": payload},
            ids=[payload["id"]],
            ctx=ctx,
        )

    async def update_todo(args: UpdateTodoArgs, ctx: ToolContext | None = None) -> dict[str, Any]:
        changes = args.changes()
        if not changes:
            raise ToolExecutionError(
                code="VALIDATION_ERROR",
                message="update_todo needs at least one field to change",
                details={"id": args.id},
            )
        async with session_factory() as session:
            result = await TodoStore(session).update_todo(args.id, changes)
            if result is None:
                raise _not_found(args.id)
            before, todo = result
            after = todo.to_payload()
        return make_tool_output(
            result_kind="todo_change",
            summary=f"Updated todo '{after['title']}'.",
            data={"before": before, "after": after},
            ids=[after["id"]],
            ctx=ctx,
        )

    async def delete_todo(args: TodoIdArgs, ctx: ToolContext | None = None) -> dict[str, Any]:
        async with session_factory() as session:
            payload = await TodoStore(session).delete_todo(args.id)
        if payload is None:
            raise _not_found(args.id)
        return make_tool_output(
            result_kind="todo_deleted",
            summary=f"Deleted todo '{payload['title']}'.",
            data={"todo": payload},
            ids=[payload["id"]],
            ctx=ctx,
        )

    return [
        ToolSpec(
            name="list_todos",
            description=(
                "WHEN: Find todos, check what exists, or look up ids before changing anything.\n"
                "AVOID: Guessing ids or titles from memory instead of listing.\n"
                "CRITICAL_ARGS: status, priority, search, sort, order (all optional).\n"
                "RETURNS: matching todos with total and per-status counts.\n"
                "FAILS_IF: a filter value is outside its allowed set."
            ),
            args_model=ListTodosArgs,
            handler=list_todos,
        ),
        ToolSpec(
            name="get_todo",
            description=(
                "WHEN: Read every field of one todo whose id is known.\n"
                "AVOID: Calling it per item after list_todos already returned the fields.\n"
                "CRITICAL_ARGS: id.\n"
                "RETURNS: the full todo record.\n"
                "FAILS_IF: no todo has that id."
            ),
            args_model=TodoIdArgs,
            handler=get_todo,
        ),
        ToolSpec(
            name="create_todo",
            description=(
                "WHEN: The user asks to add a new task.\n"
                "AVOID: Creating a second todo with a title that already exists unless asked.\n"
                "CRITICAL_ARGS: title; optional description, priority, status, due_date, tags.\n"
                "RETURNS: the created todo including its new id.\n"
                "FAILS_IF: title is empty or longer than 200 characters."
            ),
            args_model=CreateTodoArgs,
            handler=create_todo,
        ),
        ToolSpec(
            name="update_todo",
            description=(
                "WHEN: Change title, description, priority, status, due date or tags of an existing todo.\n"
                "AVOID: Updating without the exact id from list_todos or get_todo.\n"
                "CRITICAL_ARGS: id plus at least one field to change.\n"
                "RETURNS: the todo before and after the change.\n"
                "FAILS_IF: no todo has that id or no field was given."
            ),
            args_model=UpdateTodoArgs,
            handler=update_todo,
        ),
        ToolSpec(
            name="delete_todo",
            description=(
                "WHEN: The user asks to remove a todo permanently.\n"
                "AVOID: Deleting when the user only wants it marked completed or cancelled.\n"
                "CRITICAL_ARGS: id.\n"
                "RETURNS: the deleted todo as it was.\n"
                "FAILS_IF: no todo has that id."
            ),
            args_model=TodoIdArgs,
            handler=delete_todo,
        ),
    ]


def create_todo_registry(session_factory: async_sessionmaker[AsyncSession]) -> ToolRegistry:
    return ToolRegistry(create_todo_tools(session_factory))
