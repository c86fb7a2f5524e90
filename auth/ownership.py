"""
auth/ownership.py -- Task ownership authorization.

Rule: a user may read, update, complete or delete a task only if they own it.
There is no admin capability; all users are symmetric.

Denial is reported exactly like absence. get_owned_task() raises the same
NotFoundError("Task not found.") whether the id does not exist or belongs to
someone else, so a caller cannot probe for other users' task ids.

Layer rule: no runtime imports from api/ or tasks/. The task store is
duck-typed (anything with find_by_id) and Task is imported for type checking
only.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from core.errors import NotFoundError

if TYPE_CHECKING:
    from tasks.models import Task
    from tasks.store import TaskStore

logger = logging.getLogger("taskmanager.auth")

TASK_NOT_FOUND = "Task not found."


class Decision(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def authorize(user_id: int, task: Task) -> Decision:
    """Return ALLOWED only when user_id owns task."""
    if task.owner_user_id == user_id:
        return Decision.ALLOWED
    return Decision.DENIED


def get_owned_task(store: TaskStore, task_id: int, user_id: int) -> Task:
    """Load task_id on behalf of user_id, or raise NotFoundError.

    Every single-task route calls this before touching the task, so the
    ownership check cannot be skipped by a handler that forgets it.
    """
    task = store.find_by_id(task_id)
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    if authorize(user_id, task) is Decision.DENIED:
        logger.info("Denied user %d access to task %d (reported as not found)", user_id, task_id)
        raise NotFoundError(TASK_NOT_FOUND)
    return task
