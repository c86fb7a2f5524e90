"""
api/routes/v1/tasks.py -- Task routes for the Task Manager REST API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /tasks                      -- create a task owned by the caller
  GET    /tasks                      -- list the caller's tasks (?status= filter)
  PATCH  /tasks/{task_id}/complete   -- force status=completed (idempotent)
  GET    /tasks/{task_id}            -- task detail
  PUT    /tasks/{task_id}            -- update title/description/status
  PATCH  /tasks/{task_id}            -- same as PUT (partial update)
  DELETE /tasks/{task_id}            -- delete

Ownership:
  Every single-task route loads the task through get_owned_task(), which
  answers 404 both for a missing id and for another user's task. Listing is
  always filtered by the caller's id; there is no unfiltered listing.

Title uniqueness:
  Titles are unique across all tasks. The pre-check gives a friendly 400; the
  UNIQUE constraint is authoritative and its IntegrityError maps to the same
  ConflictError.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.exc import IntegrityError

from api.models import Envelope, TaskCreate, TaskOut, TaskStatusEnum, TaskUpdate
from auth.dependencies import require_auth
from auth.ownership import TASK_NOT_FOUND, get_owned_task
from core.errors import ConflictError, NotFoundError
from tasks.models import Task
from tasks.store import TaskStore

# All task routes require authentication.
# Router-level dependency applies to every route registered on this router;
# handlers still declare Depends(require_auth) to receive the user id (FastAPI
# caches the dependency, so it runs once per request).
router = APIRouter(dependencies=[Depends(require_auth)])

DUPLICATE_TITLE = "The title already exists."

# Ids outside SQLite's signed 64-bit INTEGER range cannot be bound as parameters.
TaskId = Annotated[int, Path(ge=1, le=2**63 - 1)]


def _store(request: Request) -> TaskStore:
    return request.app.state.task_store


def _check_title_free(store: TaskStore, title: str, task_id: Optional[int] = None) -> None:
    existing = store.find_by_title(title)
    if existing is not None and existing.id != task_id:
        raise ConflictError(DUPLICATE_TITLE)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.post("/tasks", response_model=Envelope[TaskOut], response_model_exclude_none=True, status_code=201)
def create_task(request: Request, body: TaskCreate, user_id: int = Depends(require_auth)) -> Envelope[TaskOut]:
    """Create a task owned by the authenticated user."""
    store = _store(request)
    _check_title_free(store, body.title)
    try:
        task = store.create(
            Task(
                title=body.title,
                description=body.description,
                status=body.status.value,
                owner_user_id=user_id,
            )
        )
    except IntegrityError as exc:
        raise ConflictError(DUPLICATE_TITLE) from exc
    return Envelope[TaskOut](data=TaskOut.from_task(task))


@router.get("/tasks", response_model=Envelope[list[TaskOut]], response_model_exclude_none=True)
def list_tasks(
    request: Request,
    status: Optional[TaskStatusEnum] = None,
    user_id: int = Depends(require_auth),
) -> Envelope[list[TaskOut]]:
    """Return the authenticated user's tasks, optionally filtered by status."""
    tasks = _store(request).find_all(owner_user_id=user_id, status=status.value if status else None)
    return Envelope[list[TaskOut]](data=[TaskOut.from_task(t) for t in tasks], count=len(tasks))


# ---------------------------------------------------------------------------
# PATCH /tasks/{task_id}/complete (must be before /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.patch("/tasks/{task_id}/complete", response_model=Envelope[TaskOut], response_model_exclude_none=True)
def complete_task(request: Request, task_id: TaskId, user_id: int = Depends(require_auth)) -> Envelope[TaskOut]:
    """Mark a task completed. Repeating the call leaves it completed."""
    store = _store(request)
    task = get_owned_task(store, task_id, user_id)
    if task.status != "completed":
        task = store.update_by_id(task_id, status="completed")
        if task is None:
            raise NotFoundError(TASK_NOT_FOUND)
    return Envelope[TaskOut](data=TaskOut.from_task(task))


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=Envelope[TaskOut], response_model_exclude_none=True)
def get_task(request: Request, task_id: TaskId, user_id: int = Depends(require_auth)) -> Envelope[TaskOut]:
    """Return one of the authenticated user's tasks."""
    task = get_owned_task(_store(request), task_id, user_id)
    return Envelope[TaskOut](data=TaskOut.from_task(task))


@router.put("/tasks/{task_id}", response_model=Envelope[TaskOut], response_model_exclude_none=True)
@router.patch("/tasks/{task_id}", response_model=Envelope[TaskOut], response_model_exclude_none=True)
def update_task(
    request: Request,
    task_id: TaskId,
    body: TaskUpdate,
    user_id: int = Depends(require_auth),
) -> Envelope[TaskOut]:
    """Update any of title, description and status. Ownership cannot be changed."""
    store = _store(request)
    task = get_owned_task(store, task_id, user_id)

    updates: dict = {}
    if body.title is not None and body.title != task.title:
        _check_title_free(store, body.title, task_id)
        updates["title"] = body.title
    if body.description is not None:
        updates["description"] = body.description
    if body.status is not None:
        updates["status"] = body.status.value

    if not updates:
        return Envelope[TaskOut](data=TaskOut.from_task(task))
    try:
        updated = store.update_by_id(task_id, **updates)
    except IntegrityError as exc:
        raise ConflictError(DUPLICATE_TITLE) from exc
    if updated is None:
        raise NotFoundError(TASK_NOT_FOUND)
    return Envelope[TaskOut](data=TaskOut.from_task(updated))


@router.delete("/tasks/{task_id}", response_model=Envelope[TaskOut], response_model_exclude_none=True)
def delete_task(request: Request, task_id: TaskId, user_id: int = Depends(require_auth)) -> Envelope[TaskOut]:
    """Delete one of the authenticated user's tasks."""
    store = _store(request)
    task = get_owned_task(store, task_id, user_id)
    store.delete_by_id(task_id)
    return Envelope[TaskOut](data=TaskOut.from_task(task), message="Task deleted successfully")
