"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token sources are checked in priority order:
  1. Authorization: Bearer <token> header.
  2. x-access-token: <token> header (fallback for clients that cannot set
     Authorization).

require_auth() is the hard variant: it raises AuthenticationError (rendered as
401 by api/main.py) before the route handler runs.
optional_auth() is the soft variant: it never raises and leaves the decision to
the handler.

Both only write request-scoped state:
  request.state.user_id       -- int, or None when unauthenticated
  request.state.authenticated -- bool

Layer rule: no imports from api/ or tasks/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.tokens import TokenFailure, TokenService
from core.errors import AuthenticationError, AuthFailure

TOKEN_HINT = "Send token as: Authorization: Bearer <token> or x-access-token header"

_FAILURES: dict[TokenFailure, tuple[AuthFailure, str]] = {
    TokenFailure.EXPIRED: (AuthFailure.EXPIRED, "Token has expired."),
    TokenFailure.BAD_SIGNATURE: (AuthFailure.INVALID, "Invalid token."),
    TokenFailure.MALFORMED: (AuthFailure.MALFORMED, "Malformed token."),
}


def extract_token(request: Request) -> str | None:
    """Return the bearer token from the request headers, or None if absent."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    token = request.headers.get("x-access-token", "").strip()
    return token or None


def _mark(request: Request, user_id: int | None) -> None:
    request.state.user_id = user_id
    request.state.authenticated = user_id is not None


def _subject_exists(request: Request, user_id: int) -> bool:
    settings = request.app.state.settings
    if not settings.verify_subject_exists:
        return True
    return request.app.state.user_store.find_by_id(user_id) is not None


def require_auth(request: Request) -> int:
    """Require a valid token. Returns the authenticated user id.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user_id: int = Depends(require_auth)): ...

    Raises AuthenticationError with reason MISSING, EXPIRED, INVALID or
    MALFORMED; the downstream handler is never invoked in that case.
    """
    _mark(request, None)
    token = extract_token(request)
    if token is None:
        raise AuthenticationError(
            AuthFailure.MISSING,
            "No token provided. Please include authorization token in headers.",
            hint=TOKEN_HINT,
        )

    token_service: TokenService = request.app.state.token_service
    result = token_service.verify(token)
    if not result.valid:
        reason, message = _FAILURES[result.reason]
        raise AuthenticationError(reason, message)

    if not _subject_exists(request, result.user_id):
        raise AuthenticationError(AuthFailure.INVALID, "Invalid token.")

    _mark(request, result.user_id)
    return result.user_id


def optional_auth(request: Request) -> int | None:
    """Attach identity when a valid token is present; never raises.

    Returns the user id, or None for a missing, invalid or expired token.
    """
    try:
        return require_auth(request)
    except AuthenticationError:
        _mark(request, None)
        return None
