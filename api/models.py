"""
API request and response models for the Task Manager REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tasks/models.py, which own the internal domain representation. Route handlers
map between the two.

Every response uses one envelope:
  success -> {"success": true,  "data": ..., "message"?, "count"?}
  failure -> {"success": false, "error": "...", "code": "...", "hint"?}

UserOut has no password field at all, so a password hash cannot be serialized
even if a handler passes the wrong object.
"""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from tasks.models import DEFAULT_DESCRIPTION, TITLE_MAX_LENGTH, Task

T = TypeVar("T")

# Character cap only. CredentialService enforces the 72-byte bcrypt limit.
PASSWORD_MAX_LENGTH = 72


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TaskStatusEnum(str, Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"


# ---------------------------------------------------------------------------
# Request models -- users
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /users.

    Fields are optional at the schema level so a missing field produces the
    credential service's 400 message rather than a generic schema error.
    """

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=PASSWORD_MAX_LENGTH)


class LoginRequest(BaseModel):
    """Request body for POST /users/login."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=PASSWORD_MAX_LENGTH)


class ProfileUpdate(BaseModel):
    """Request body for PUT /users/me. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=PASSWORD_MAX_LENGTH)


# ---------------------------------------------------------------------------
# Request models -- tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /tasks.

    The owner is always the authenticated caller; any owner field in the
    body is ignored.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(default=DEFAULT_DESCRIPTION, max_length=2000)
    status: TaskStatusEnum = TaskStatusEnum.pending


class TaskUpdate(BaseModel):
    """Request body for PUT and PATCH /tasks/{task_id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[TaskStatusEnum] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of a user. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TaskOut(BaseModel):
    """Public view of a task."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    status: str
    owner_user_id: int
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskOut":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            owner_user_id=task.owner_user_id,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class Envelope(BaseModel, Generic[T]):
    """Success envelope shared by every route."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    count: Optional[int] = None


class AuthEnvelope(Envelope[UserOut]):
    """Register/login response: the user plus a fresh token and its lifetime."""

    token: str
    token_expires_in: str


class ErrorResponse(BaseModel):
    """Failure envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: str
    code: str
    hint: Optional[str] = None
    detail: Optional[Any] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
