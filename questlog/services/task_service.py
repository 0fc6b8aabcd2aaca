"""
questlog.services.task_service — Task Completion Workflow
==========================================================

Ties task state changes to XP: completing a task pays its owner
``TASK_COMPLETE_XP`` plus ``SUBTASK_COMPLETE_XP`` for every subtask that
is already done; un-completing or deleting a completed task takes the
same amount back.  Subtasks pay on their own when toggled.

Each method returns the owner when the XP change levelled them up, else
``None`` (same contract as :meth:`GamificationService.add_xp`).
"""

from __future__ import annotations

import logging

from questlog.constants import SUBTASK_COMPLETE_XP, TASK_COMPLETE_XP
from questlog.entities import Member, Subtask, Task, TaskStatus
from questlog.errors import NotFound, ValidationError
from questlog.repositories.base import generate_id
from questlog.repositories.tasks import TaskRepository
from questlog.services.gamification import GamificationService

logger = logging.getLogger(__name__)

_FINISHED = (TaskStatus.COMPLETED, TaskStatus.DONE)


def task_xp_value(task: Task) -> int:
    """XP a completed task is worth, including its finished subtasks."""
    done = sum(1 for st in task.subtasks if st.completed)
    return TASK_COMPLETE_XP + SUBTASK_COMPLETE_XP * done


class TaskService:
    def __init__(self, tasks: TaskRepository, gamification: GamificationService) -> None:
        self.tasks = tasks
        self.gamification = gamification

    def _require(self, task_id: str) -> Task:
        task = self.tasks.get_by_id(task_id)
        if task is None:
            raise NotFound("task", task_id)
        return task

    @staticmethod
    def _find_subtask(task: Task, subtask_id: str) -> Subtask:
        for st in task.subtasks:
            if st.id == subtask_id:
                return st
        raise NotFound("subtask", subtask_id)

    # -------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------
    def toggle_task_complete(self, task_id: str) -> Member | None:
        task = self._require(task_id)
        completed = not task.completed
        if completed:
            status = TaskStatus.COMPLETED
        else:
            status = task.status if task.status not in _FINISHED else TaskStatus.TODO
        self.tasks.update(task_id, completed=completed, status=status)
        logger.debug("Task %s completed=%s (status %s)", task_id, completed, status)

        if not task.owner_id:
            return None
        amount = task_xp_value(task)
        if completed:
            return self.gamification.add_xp(task.owner_id, amount)
        return self.gamification.remove_xp(task.owner_id, amount)

    def delete_task(self, task_id: str) -> None:
        """Delete a task, taking back the XP it paid out if it was completed."""
        task = self.tasks.get_by_id(task_id)
        if task is None:
            return
        if task.completed and task.owner_id:
            self.gamification.remove_xp(task.owner_id, task_xp_value(task))
        self.tasks.delete(task_id)

    # -------------------------------------------------------------------
    # Subtasks
    # -------------------------------------------------------------------
    def add_subtask(self, task_id: str, title: str, *, completed: bool = False) -> Subtask:
        if not title or not title.strip():
            raise ValidationError("Subtask title is required")
        task = self._require(task_id)
        subtask = Subtask(id=generate_id("subtask"), title=title.strip(), completed=completed)
        self.tasks.update(task_id, subtasks=[*task.subtasks, subtask])
        return subtask

    def update_subtask(
        self,
        task_id: str,
        subtask_id: str,
        *,
        title: str | None = None,
        completed: bool | None = None,
    ) -> Subtask:
        task = self._require(task_id)
        subtask = self._find_subtask(task, subtask_id)
        if title is not None:
            if not title.strip():
                raise ValidationError("Subtask title cannot be empty")
            subtask.title = title.strip()
        if completed is not None:
            subtask.completed = completed
        self.tasks.update(task_id, subtasks=task.subtasks)
        return subtask

    def toggle_subtask_complete(self, task_id: str, subtask_id: str) -> Member | None:
        task = self._require(task_id)
        subtask = self._find_subtask(task, subtask_id)
        completed = not subtask.completed
        self.update_subtask(task_id, subtask_id, completed=completed)

        if not task.owner_id:
            return None
        if completed:
            return self.gamification.add_xp(task.owner_id, SUBTASK_COMPLETE_XP)
        return self.gamification.remove_xp(task.owner_id, SUBTASK_COMPLETE_XP)

    def delete_subtask(self, task_id: str, subtask_id: str) -> None:
        task = self._require(task_id)
        subtask = self._find_subtask(task, subtask_id)
        remaining = [st for st in task.subtasks if st.id != subtask_id]
        self.tasks.update(task_id, subtasks=remaining)
        if subtask.completed and task.owner_id:
            self.gamification.remove_xp(task.owner_id, SUBTASK_COMPLETE_XP)
