"""
tasks/store.py -- SQLAlchemy-backed persistence layer for tasks.

Uses SQLAlchemy Core (not ORM) so the Task dataclass in tasks/models.py
remains the authoritative domain representation.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Ownership: the store filters by owner_user_id when asked but never decides
access. Callers go through auth.ownership.get_owned_task() before any
single-task read or write.

Usage:
    store = TaskStore("sqlite:///:memory:")
    task = store.create(Task(title="T1", owner_user_id=1))
    store.find_all(owner_user_id=1)
    store.update_by_id(task.id, status="completed")
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Integer, MetaData, String, Table, Text

from core.config import get_settings
from core.db import create_store_engine
from tasks.models import DEFAULT_DESCRIPTION, TASK_STATUSES, TITLE_MAX_LENGTH, Task

logger = logging.getLogger("taskmanager.tasks")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(TITLE_MAX_LENGTH), nullable=False, unique=True),
    Column("description", Text, nullable=False, server_default=DEFAULT_DESCRIPTION),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("owner_user_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    CheckConstraint(
        "status IN ('pending', 'in-progress', 'completed')",
        name="ck_task_status",
    ),
)

_UPDATABLE_FIELDS = frozenset({"title", "description", "status"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    """Repository for Task entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine = create_store_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, task: Task) -> Task:
        """Insert a task and return the stored record.

        Raises sqlalchemy.exc.IntegrityError if the title already exists.
        """
        if task.status not in TASK_STATUSES:
            raise ValueError(f"Unknown task status: {task.status!r}")
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.insert().values(
                    title=task.title,
                    description=task.description,
                    status=task.status,
                    owner_user_id=task.owner_user_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            task_id = result.inserted_primary_key[0]
        return Task(
            id=task_id,
            title=task.title,
            description=task.description,
            status=task.status,
            owner_user_id=task.owner_user_id,
            created_at=now,
            updated_at=now,
        )

    def update_by_id(self, task_id: int, **fields) -> Optional[Task]:
        """Update title, description and/or status. Ownership is never changed here.

        Returns the updated Task, or None if task_id was not found.
        Raises IntegrityError if the new title collides with another task.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)!r}")
        if "status" in fields and fields["status"] not in TASK_STATUSES:
            raise ValueError(f"Unknown task status: {fields['status']!r}")
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _tasks.update().where(_tasks.c.id == task_id).values(updated_at=_now_iso(), **fields)
                )
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.find_by_id(task_id)

    def delete_by_id(self, task_id: int) -> bool:
        """Delete a task. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.id == task_id))
            conn.commit()
        return result.rowcount > 0

    def delete_by_owner(self, owner_user_id: int) -> int:
        """Delete every task owned by a user. Returns the number removed.

        Used by account deletion so no orphaned tasks outlive their owner.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.owner_user_id == owner_user_id))
            conn.commit()
        if result.rowcount:
            logger.info("Deleted %d tasks owned by user %d", result.rowcount, owner_user_id)
        return result.rowcount

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_id(self, task_id: int) -> Optional[Task]:
        """Look up a task by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    def find_by_title(self, title: str) -> Optional[Task]:
        """Look up a task by exact title. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.title == title)).fetchone()
        return _row_to_task(row) if row is not None else None

    def find_all(self, owner_user_id: Optional[int] = None, status: Optional[str] = None) -> list[Task]:
        """Return tasks matching the filter, oldest first.

        owner_user_id=None means no owner filter. Route handlers always pass
        the caller's id; the unfiltered form exists for maintenance scripts.
        """
        query = _tasks.select()
        if owner_user_id is not None:
            query = query.where(_tasks.c.owner_user_id == owner_user_id)
        if status is not None:
            query = query.where(_tasks.c.status == status)
        query = query.order_by(_tasks.c.id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_task(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        status=row.status,
        owner_user_id=row.owner_user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
