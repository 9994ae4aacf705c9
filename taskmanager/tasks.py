"""Ownership-scoped task operations."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .database import Database
from .errors import FieldError, NotFound, ValidationFailed
from .models import Pagination, Task, TaskPage, TaskStatus

TASK_NOT_FOUND = "Task not found"


@dataclass(frozen=True)
class TaskQuery:
    page: int = 1
    limit: int = 10
    status: Optional[TaskStatus] = None
    search: Optional[str] = None


def next_status(current: TaskStatus) -> TaskStatus:
    """COMPLETED flips back to PENDING; every other status becomes COMPLETED."""
    if current is TaskStatus.COMPLETED:
        return TaskStatus.PENDING
    return TaskStatus.COMPLETED


class TaskService:
    """CRUD over a user's own tasks.

    A task owned by someone else is reported exactly like a missing one.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def list_tasks(self, user_id: str, query: TaskQuery = TaskQuery()) -> TaskPage:
        page = max(query.page, 1)
        limit = query.limit
        if limit < 1:
            raise ValidationFailed(
                "Validation error",
                details=[FieldError(field="limit", message="limit must be at least 1")],
            )

        tasks, total = self._database.list_tasks_for_user(
            user_id,
            status=query.status,
            search=query.search or None,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return TaskPage(
            tasks=tasks,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )

    def get_task(self, user_id: str, task_id: str) -> Task:
        task = self._database.get_task_for_user(user_id, task_id)
        if task is None:
            raise NotFound(TASK_NOT_FOUND)
        return task

    def create_task(
        self,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        status: Optional[TaskStatus] = None,
    ) -> Task:
        return self._database.create_task(
            user_id,
            title=title,
            description=description,
            status=status or TaskStatus.PENDING,
        )

    def update_task(self, user_id: str, task_id: str, **fields: object) -> Task:
        unknown = set(fields) - {"title", "description", "status"}
        if unknown:
            raise TypeError(f"Unsupported task fields: {', '.join(sorted(unknown))}")

        self.get_task(user_id, task_id)
        updated = self._database.update_task(user_id, task_id, **fields)
        if updated is None:
            raise NotFound(TASK_NOT_FOUND)
        return updated

    def toggle_status(self, user_id: str, task_id: str) -> Task:
        task = self.get_task(user_id, task_id)
        updated = self._database.update_task(user_id, task_id, status=next_status(task.status))
        if updated is None:
            raise NotFound(TASK_NOT_FOUND)
        return updated

    def delete_task(self, user_id: str, task_id: str) -> None:
        if not self._database.delete_task(user_id, task_id):
            raise NotFound(TASK_NOT_FOUND)


__all__ = ["TaskQuery", "TaskService", "TASK_NOT_FOUND", "next_status"]
