"""
tasks/models.py -- Domain dataclass for a task.

Pure data container with zero logic. Persistence lives in tasks/store.py;
access rules live in auth/ownership.py.
"""

from dataclasses import dataclass
from typing import Optional

TASK_STATUSES = ("pending", "in-progress", "completed")
DEFAULT_DESCRIPTION = "remember to do this"
TITLE_MAX_LENGTH = 100


@dataclass
class Task:
    """A unit of work owned by exactly one user.

    title is unique across all tasks, not just per owner.
    status is one of TASK_STATUSES; complete() forces "completed".

    id is None before the record is written to the database.
    """

    title: str
    owner_user_id: int
    description: str = DEFAULT_DESCRIPTION
    status: str = "pending"  # "pending" | "in-progress" | "completed"
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, bumped by store on every update
