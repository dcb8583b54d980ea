from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import asc, case, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from todo_agent.persistence.models import Todo, TodoPriority, TodoStatus, utcnow

_PRIORITY_WEIGHT = case(
    (Todo.priority == TodoPriority.HIGH, 3),
    (Todo.priority == TodoPriority.MEDIUM, 2),
    (Todo.priority == TodoPriority.LOW, 1),
    else_=0,
)


class TodoStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_todos(
        self,
        *,
        status: TodoStatus | None = None,
        priority: TodoPriority | None = None,
        search: str | None = None,
        sort: str = "created",
        order: str = "desc",
    ) -> list[Todo]:
        query = select(Todo)
        if status is not None:
            query = query.where(Todo.status == status)
        if priority is not None:
            query = query.where(Todo.priority == priority)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Todo.title.like(pattern), Todo.description.like(pattern)))

        direction = asc if order == "asc" else desc
        if sort == "due":
            query = query.order_by(direction(Todo.due_date), Todo.id)
        elif sort == "priority":
            query = query.order_by(direction(_PRIORITY_WEIGHT), Todo.created_at, Todo.id)
        else:
            query = query.order_by(direction(Todo.created_at), Todo.id)

        result = await self.session.execute(query)
        return list(result.scalars())

    async def get_todo(self, todo_id: str) -> Todo | None:
        return await self.session.get(Todo, todo_id)

    async def create_todo(
        self,
        *,
        title: str,
        description: str | None = None,
        priority: TodoPriority = TodoPriority.MEDIUM,
        status: TodoStatus = TodoStatus.PENDING,
        due_date: datetime | None = None,
        tags: list[str] | None = None,
    ) -> Todo:
        now = utcnow()
        todo = Todo(
            title=title,
            description=description,
            priority=priority,
            status=status,
            due_date=due_date,
            tags=tags or None,
            created_at=now,
            updated_at=now,
            completed_at=now if status == TodoStatus.COMPLETED else None,
        )
        self.session.add(todo)
        await self.session.commit()
        await self.session.refresh(todo)
        return todo

    async def update_todo(self, todo_id: str, changes: dict[str, Any]) -> tuple[dict[str, Any], Todo] | None:
        """Apply ``changes`` and return ``(before_payload, updated_todo)``.

        ``completed_at`` follows status: set when the todo becomes completed,
        cleared when it moves to any other status.
        """
        todo = await self.session.get(Todo, todo_id)
        if todo is None:
            return None

        before = todo.to_payload()
        for field_name, value in changes.items():
            setattr(todo, field_name, value)

        new_status = changes.get("status")
        if new_status == TodoStatus.COMPLETED:
            if before.get("status") != TodoStatus.COMPLETED.value:
                todo.completed_at = utcnow()
        elif new_status is not None:
            todo.completed_at = None

        todo.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(todo)
        return before, todo

    async def delete_todo(self, todo_id: str) -> dict[str, Any] | None:
        todo = await self.session.get(Todo, todo_id)
        if todo is None:
            return None
        payload = todo.to_payload()
        await self.session.delete(todo)
        await self.session.commit()
        return payload
