"""
api/routes/v1/users.py -- Registration, login and account endpoints.

Routes:
  POST   /users               -- register; returns user + token (public)
  POST   /users/login         -- email/password login; returns user + token (public)
  GET    /users/me            -- current user's profile (requires auth)
  PUT    /users/me            -- update name/email/password (requires auth)
  DELETE /users/me            -- delete account and owned tasks (requires auth)
  GET    /users/verify-token  -- confirm the presented token is valid (requires auth)

Security:
  POST /users and POST /users/login are rate-limited (LOGIN_RATE_LIMIT per IP).
  Login failures use one generic message for unknown email and wrong password;
  CredentialService.login() also equalizes timing -- use it, never inline.
  Cache-Control: no-store on responses that carry a token.

Handlers are plain `def` so FastAPI runs them in its threadpool: bcrypt is
CPU-bound and must not stall the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import credential_rate_limit, limiter
from api.models import AuthEnvelope, Envelope, LoginRequest, ProfileUpdate, RegisterRequest, UserOut
from auth.credentials import CredentialService
from auth.dependencies import require_auth
from auth.models import AuthResult
from tasks.store import TaskStore

# Auth policy:
# - POST   /users:               public -- this is how a first token is obtained
# - POST   /users/login:         public
# - GET    /users/me:            requires auth (require_auth)
# - PUT    /users/me:            requires auth (require_auth)
# - DELETE /users/me:            requires auth (require_auth)
# - GET    /users/verify-token:  requires auth (require_auth)
router = APIRouter()


def _credentials(request: Request) -> CredentialService:
    return request.app.state.credentials


def _auth_envelope(result: AuthResult, message: str) -> AuthEnvelope:
    return AuthEnvelope(
        message=message,
        data=UserOut.from_user(result.user),
        token=result.token,
        token_expires_in=result.token_expires_in,
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------
#
# @router.post must stay outermost: FastAPI has to register the function
# slowapi wrapped, or the per-route limit never runs.


@router.post("/users", response_model=AuthEnvelope, response_model_exclude_none=True, status_code=201)
@limiter.limit(credential_rate_limit)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthEnvelope:
    """Create an account and return it with a freshly issued token."""
    result = _credentials(request).register(body.name, body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return _auth_envelope(result, "User registered successfully")


@router.post("/users/login", response_model=AuthEnvelope, response_model_exclude_none=True)
@limiter.limit(credential_rate_limit)
def login(request: Request, response: Response, body: LoginRequest) -> AuthEnvelope:
    """Authenticate with email and password.

    Returns the same 401 ("Invalid email or password.") for an unknown email
    and a wrong password to avoid leaking which accounts exist.
    """
    result = _credentials(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return _auth_envelope(result, "Login successful")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=Envelope[UserOut], response_model_exclude_none=True)
def me(request: Request, user_id: int = Depends(require_auth)) -> Envelope[UserOut]:
    """Return the profile of the authenticated user."""
    user = _credentials(request).get_profile(user_id)
    return Envelope[UserOut](data=UserOut.from_user(user))


@router.put("/users/me", response_model=Envelope[UserOut], response_model_exclude_none=True)
def update_me(request: Request, body: ProfileUpdate, user_id: int = Depends(require_auth)) -> Envelope[UserOut]:
    """Update name, email and/or password. The password is re-hashed only if supplied."""
    user = _credentials(request).update_profile(
        user_id,
        name=body.name,
        email=body.email,
        password=body.password,
    )
    return Envelope[UserOut](data=UserOut.from_user(user))


@router.delete("/users/me", response_model=Envelope[UserOut], response_model_exclude_none=True)
def delete_me(request: Request, user_id: int = Depends(require_auth)) -> Envelope[UserOut]:
    """Delete the authenticated user's account together with every task they own."""
    task_store: TaskStore = request.app.state.task_store
    # Tasks first: a failure here leaves the account intact, never orphaned tasks.
    removed = task_store.delete_by_owner(user_id)
    user = _credentials(request).delete_account(user_id)
    return Envelope[UserOut](
        data=UserOut.from_user(user),
        message=f"Account deleted ({removed} tasks removed)",
    )


@router.get("/users/verify-token", response_model=Envelope[UserOut], response_model_exclude_none=True)
def verify_token(request: Request, user_id: int = Depends(require_auth)) -> Envelope[UserOut]:
    """Confirm the token is valid and return the user it identifies."""
    user = _credentials(request).get_profile(user_id)
    return Envelope[UserOut](data=UserOut.from_user(user), message="Token is valid")
