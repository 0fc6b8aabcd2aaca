"""
questlog.entities — Member, Task and Subtask
=============================================

Plain dataclasses for the two entity kinds.  Collections persist them as
camelCase records (the shape the browser storage used), so every entity
converts with ``to_record()`` / ``from_record()``.  ``from_record`` is
lenient: missing optional keys get their defaults so old blobs stay
readable.  A member's stored ``level`` is ignored on read and derived
from ``xp``, so a stale level in a blob never surfaces.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

from questlog.engine.progression import level_for_xp


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Priority(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(enum.StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    DONE = "done"


# ---------------------------------------------------------------------------
# Member
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Member:
    """Gamification profile attached to one user account."""

    id: str
    name: str
    user_id: str
    email: str = ""
    avatar: str | None = None
    xp: int = 0
    level: int = 1

    # attribute → record key
    FIELD_KEYS = {
        "id": "id",
        "name": "name",
        "user_id": "userId",
        "email": "email",
        "avatar": "avatar",
        "xp": "xp",
        "level": "level",
    }

    def to_record(self) -> dict:
        record = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "userId": self.user_id,
            "xp": self.xp,
            "level": self.level,
        }
        if self.avatar is not None:
            record["avatar"] = self.avatar
        return record

    @classmethod
    def from_record(cls, record: dict) -> Member:
        xp = int(record.get("xp") or 0)
        return cls(
            id=str(record["id"]),
            name=record.get("name") or "",
            user_id=record.get("userId") or "",
            email=record.get("email") or "",
            avatar=record.get("avatar"),
            xp=xp,
            level=level_for_xp(xp),
        )


def record_assignees(record: dict) -> list[str]:
    """``assignedTo`` of a task record, falling back to ``[ownerId]``."""
    assigned = record.get("assignedTo") or [record.get("ownerId")]
    return [a for a in assigned if a]


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Subtask:
    id: str
    title: str
    completed: bool = False

    def to_record(self) -> dict:
        return {"id": self.id, "title": self.title, "completed": self.completed}

    @classmethod
    def from_record(cls, record: dict) -> Subtask:
        return cls(
            id=str(record["id"]),
            title=record.get("title") or "",
            completed=bool(record.get("completed", False)),
        )


@dataclass(slots=True)
class Task:
    """A unit of work owned by one member and assigned to one or more."""

    id: str
    title: str
    owner_id: str
    created_by: str
    created_at: str
    updated_at: str
    description: str | None = None
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    due_date: str = field(default_factory=utc_now_iso)
    tags: list[str] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    completed: bool = False
    assigned_to: list[str] = field(default_factory=list)

    FIELD_KEYS = {
        "id": "id",
        "title": "title",
        "description": "description",
        "owner_id": "ownerId",
        "created_by": "createdBy",
        "priority": "priority",
        "status": "status",
        "due_date": "dueDate",
        "tags": "tags",
        "subtasks": "subtasks",
        "completed": "completed",
        "assigned_to": "assignedTo",
        "created_at": "createdAt",
        "updated_at": "updatedAt",
    }

    def to_record(self) -> dict:
        record = {
            "id": self.id,
            "title": self.title,
            "ownerId": self.owner_id,
            "createdBy": self.created_by,
            "priority": str(self.priority),
            "status": str(self.status),
            "dueDate": self.due_date,
            "tags": list(self.tags),
            "subtasks": [st.to_record() for st in self.subtasks],
            "completed": self.completed,
            "assignedTo": list(self.assigned_to),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.description is not None:
            record["description"] = self.description
        return record

    @classmethod
    def from_record(cls, record: dict) -> Task:
        owner_id = record.get("ownerId") or ""
        created_at = record.get("createdAt") or utc_now_iso()
        assigned = record_assignees(record)
        return cls(
            id=str(record["id"]),
            title=record.get("title") or "",
            description=record.get("description"),
            owner_id=owner_id,
            created_by=record.get("createdBy") or owner_id,
            priority=Priority(record.get("priority") or Priority.MEDIUM),
            status=TaskStatus(record.get("status") or TaskStatus.TODO),
            due_date=record.get("dueDate") or created_at,
            tags=list(record.get("tags") or []),
            subtasks=[Subtask.from_record(st) for st in record.get("subtasks") or []],
            completed=bool(record.get("completed", False)),
            assigned_to=assigned,
            created_at=created_at,
            updated_at=record.get("updatedAt") or created_at,
        )
