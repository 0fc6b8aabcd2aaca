"""
questlog.engine.achievements — Achievement Conditions
======================================================

The achievement catalogue as pure predicates over ``(member, tasks)``.
Each condition is built by a small factory so the catalogue reads as
data.  No storage I/O here; unlock bookkeeping lives in
:mod:`questlog.services.achievement_service`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from questlog.entities import Member, Priority, Task

logger = logging.getLogger(__name__)

Condition = Callable[[Member, list[Task]], bool]


@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str
    category: str  # tasks | xp | streak | special
    condition: Condition


# ---------------------------------------------------------------------------
# Condition factories
# ---------------------------------------------------------------------------
def _owned(member: Member, tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.owner_id == member.id]


def completed_tasks_at_least(n: int, *, priority: Priority | None = None) -> Condition:
    def _check(member: Member, tasks: list[Task]) -> bool:
        done = [t for t in _owned(member, tasks) if t.completed]
        if priority is not None:
            done = [t for t in done if t.priority == priority]
        return len(done) >= n

    return _check


def level_at_least(n: int) -> Condition:
    return lambda member, tasks: member.level >= n


def xp_at_least(n: int) -> Condition:
    return lambda member, tasks: member.xp >= n


def completed_subtasks_at_least(n: int) -> Condition:
    def _check(member: Member, tasks: list[Task]) -> bool:
        total = sum(
            sum(1 for st in t.subtasks if st.completed) for t in _owned(member, tasks)
        )
        return total >= n

    return _check


def tagged_tasks_at_least(n: int) -> Condition:
    def _check(member: Member, tasks: list[Task]) -> bool:
        return sum(1 for t in _owned(member, tasks) if t.tags) >= n

    return _check


def _parse_iso(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def completed_before_due_at_least(n: int) -> Condition:
    """Completed tasks whose last update precedes their due date."""

    def _check(member: Member, tasks: list[Task]) -> bool:
        count = 0
        for t in _owned(member, tasks):
            if not t.completed or not t.due_date:
                continue
            finished, due = _parse_iso(t.updated_at), _parse_iso(t.due_date)
            if finished is None or due is None:
                continue
            try:
                if finished < due:
                    count += 1
            except TypeError:
                # naive vs aware timestamps
                continue
        return count >= n

    return _check


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("first-task", "First Steps", "Complete your first task",
                "\U0001f3af", "tasks", completed_tasks_at_least(1)),
    Achievement("ten-tasks", "Getting Started", "Complete 10 tasks",
                "⭐", "tasks", completed_tasks_at_least(10)),
    Achievement("fifty-tasks", "Task Master", "Complete 50 tasks",
                "\U0001f3c6", "tasks", completed_tasks_at_least(50)),
    Achievement("hundred-tasks", "Centurion", "Complete 100 tasks",
                "\U0001f451", "tasks", completed_tasks_at_least(100)),
    Achievement("level-5", "Rising Star", "Reach level 5",
                "⭐", "xp", level_at_least(5)),
    Achievement("level-10", "Expert", "Reach level 10",
                "\U0001f31f", "xp", level_at_least(10)),
    Achievement("level-20", "Master", "Reach level 20",
                "\U0001f48e", "xp", level_at_least(20)),
    Achievement("level-50", "Legend", "Reach level 50",
                "\U0001f3c5", "xp", level_at_least(50)),
    Achievement("thousand-xp", "XP Collector", "Earn 1000 XP",
                "\U0001f4af", "xp", xp_at_least(1000)),
    Achievement("five-thousand-xp", "XP Master", "Earn 5000 XP",
                "\U0001f525", "xp", xp_at_least(5000)),
    Achievement("high-priority", "High Priority Hero", "Complete 10 high priority tasks",
                "⚡", "tasks", completed_tasks_at_least(10, priority=Priority.HIGH)),
    Achievement("subtask-master", "Detail Oriented", "Complete 50 subtasks",
                "\U0001f4cb", "tasks", completed_subtasks_at_least(50)),
    Achievement("tag-master", "Organized", "Use tags in 20 tasks",
                "\U0001f3f7️", "tasks", tagged_tasks_at_least(20)),
    Achievement("early-bird", "Early Bird", "Complete 5 tasks before their due date",
                "\U0001f305", "special", completed_before_due_at_least(5)),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}


def check_achievements(
    member: Member,
    tasks: list[Task],
    unlocked_ids: set[str] | frozenset[str] = frozenset(),
    catalogue: Iterable[Achievement] = ACHIEVEMENTS,
) -> list[str]:
    """Return ids of achievements *member* now meets but has not unlocked."""
    earned: list[str] = []
    for achievement in catalogue:
        if achievement.id in unlocked_ids:
            continue
        try:
            if achievement.condition(member, tasks):
                earned.append(achievement.id)
        except Exception:
            logger.exception("Achievement condition %s failed", achievement.id)
    return earned
