"""
core/errors.py -- Error taxonomy shared by auth/, tasks/ and api/.

Every error carries the HTTP status and machine-readable code it maps to, so
api/main.py needs a single exception handler for the whole family. Services
raise these; they never build HTTP responses themselves.

  ValidationError      400  bad input shape or constraint
  ConflictError        400  duplicate unique field (name, email, task title)
  AuthenticationError  401  missing / expired / invalid / malformed credential
  NotFoundError        404  missing resource, also masks ownership denial
  InternalError        500  unexpected storage or hashing failure

InternalError messages are logged, never sent to the client.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from __future__ import annotations

from enum import Enum


class AuthFailure(str, Enum):
    MISSING = "missing"
    EXPIRED = "expired"
    INVALID = "invalid"
    MALFORMED = "malformed"


_AUTH_CODES: dict[AuthFailure, str] = {
    AuthFailure.MISSING: "NO_TOKEN",
    AuthFailure.EXPIRED: "TOKEN_EXPIRED",
    AuthFailure.INVALID: "TOKEN_INVALID",
    AuthFailure.MALFORMED: "TOKEN_MALFORMED",
}


class AppError(Exception):
    """Base class for every error the API knows how to render."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        if code is not None:
            self.code = code


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class ConflictError(AppError):
    """A unique field (user name, email, task title) is already taken.

    Raised both by the application pre-check and, authoritatively, when the
    storage layer rejects the write with an IntegrityError.
    """

    status_code = 400
    code = "CONFLICT"


class AuthenticationError(AppError):
    status_code = 401

    def __init__(
        self,
        reason: AuthFailure,
        message: str,
        *,
        code: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, code=code or _AUTH_CODES[reason], hint=hint)
        self.reason = reason


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"


class HashingError(InternalError):
    """bcrypt failed to produce a digest. Fatal for the request."""
