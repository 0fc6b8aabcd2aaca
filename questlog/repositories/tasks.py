"""
questlog.repositories.tasks — Task Repository
==============================================

Task CRUD over the ``tasks`` collection plus :class:`TaskFilter`, the
post-read predicate shared with the sync façade.  Filters are never
pushed down to storage; the whole collection is read and then narrowed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from questlog.constants import TASKS
from questlog.entities import (
    Priority,
    Subtask,
    Task,
    TaskStatus,
    record_assignees,
    utc_now_iso,
)
from questlog.errors import ValidationError
from questlog.repositories.base import CollectionRepository, generate_id

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TaskFilter:
    """Record predicate.  Unset criteria match everything."""

    assigned_to: str | None = None
    owner_id: str | None = None
    status: str | None = None

    def __call__(self, record: dict) -> bool:
        if self.owner_id is not None and record.get("ownerId") != self.owner_id:
            return False
        if self.assigned_to is not None:
            if self.assigned_to not in record_assignees(record):
                return False
        if self.status is not None and record.get("status") != self.status:
            return False
        return True


def _enum(enum_cls: type, value: Any, label: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value!r}") from None


def _subtask(value: Subtask | dict) -> Subtask:
    if isinstance(value, Subtask):
        return value
    data = dict(value)
    data.setdefault("id", generate_id("subtask"))
    return Subtask.from_record(data)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------
class TaskRepository(CollectionRepository[Task]):
    collection = TASKS
    kind = "task"
    entity_cls = Task

    def create(
        self,
        title: str,
        owner_id: str,
        created_by: str,
        *,
        description: str | None = None,
        priority: Priority | str = Priority.MEDIUM,
        status: TaskStatus | str | None = None,
        due_date: str | None = None,
        tags: Iterable[str] = (),
        subtasks: Iterable[Subtask | dict] = (),
        completed: bool = False,
        assigned_to: Iterable[str] = (),
    ) -> str:
        """Add a task and return its id.

        ``assigned_to`` falls back to ``[owner_id]``; a task must end up
        with at least one assignee.
        """
        errors = []
        if not title or not title.strip():
            errors.append("Task title is required")
        if not created_by or not created_by.strip():
            errors.append("User ID is required")
        assignees = [a for a in assigned_to if a] or [a for a in [owner_id] if a]
        if not assignees:
            errors.append("Task must be assigned to at least one member")
        if errors:
            raise ValidationError(errors)

        if status is None:
            status = TaskStatus.COMPLETED if completed else TaskStatus.TODO
        now = utc_now_iso()
        task = Task(
            id=self.new_id(),
            title=title.strip(),
            description=description,
            owner_id=owner_id,
            created_by=created_by,
            priority=_enum(Priority, priority, "priority"),
            status=_enum(TaskStatus, status, "status"),
            due_date=due_date or now,
            tags=list(dict.fromkeys(tags)),
            subtasks=[_subtask(st) for st in subtasks],
            completed=completed,
            assigned_to=list(dict.fromkeys(assignees)),
            created_at=now,
            updated_at=now,
        )
        self._append(task)
        return task.id

    def find(self, task_filter: TaskFilter) -> list[Task]:
        return [
            Task.from_record(r) for r in self.store.get(self.collection) if task_filter(r)
        ]

    # -------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------
    def _coerce(self, name: str, value: Any) -> Any:
        if name == "title" and isinstance(value, str):
            return value.strip()
        if name == "priority":
            return _enum(Priority, value, "priority")
        if name == "status":
            return _enum(TaskStatus, value, "status")
        if name in ("tags", "assigned_to"):
            return list(dict.fromkeys(value))
        if name == "subtasks":
            return [_subtask(st) for st in value]
        return value

    def _validate(self, task: Task) -> None:
        errors = []
        if not task.title:
            errors.append("Task title cannot be empty")
        if not task.assigned_to:
            errors.append("Task must be assigned to at least one member")
        if errors:
            raise ValidationError(errors)

    def _before_save(self, task: Task, changes: dict[str, Any]) -> None:
        task.updated_at = max(utc_now_iso(), task.created_at)
