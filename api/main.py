"""
api/main.py -- FastAPI application entry point for the Task Manager API.

Run with:      uvicorn asgi:app --reload
               python asgi.py          (binds HOST/PORT from settings)

Request path through the middleware:
  log_requests           -> one access-log line per request, never headers
  TrustedHostMiddleware  -> 400 for a Host outside ALLOWED_HOSTS
  CORSMiddleware         -> browser access for CORS_ORIGINS only
  SlowAPIMiddleware      -> LOGIN_RATE_LIMIT on register and login

Lifespan reads Settings once and builds every long-lived object onto
app.state: the two stores, the password hasher, the token service and the
credential service. Request-time code reads app.state, never the
environment.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.tasks import router as tasks_router
from api.routes.v1.users import router as users_router
from auth.credentials import CredentialService
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import AppError
from tasks.store import TaskStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("taskmanager.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build stores and services on startup; close the stores on shutdown.

    Startup order matters: the credential service wraps the user store,
    hasher and token service, so those come first.
    """
    settings = get_settings()
    logger.info("Task Manager API starting up")
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    app.state.task_store = TaskStore(settings.database_url)
    app.state.password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.token_service = TokenService(settings.secret_key, settings.token_lifetime_seconds)
    app.state.credentials = CredentialService(
        users=app.state.user_store,
        hasher=app.state.password_hasher,
        tokens=app.state.token_service,
        token_lifetime=settings.token_lifetime,
        password_min_length=settings.password_min_length,
    )
    logger.info(
        "Auth initialized (token_lifetime=%s, bcrypt_rounds=%d, verify_subject_exists=%s)",
        settings.token_lifetime,
        settings.bcrypt_rounds,
        settings.verify_subject_exists,
    )

    yield

    app.state.task_store.close()
    app.state.user_store.close()
    logger.info("Task Manager API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Task Manager API",
    description="Register, log in with a bearer token, and manage your own tasks.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the current stack, so the last call is outermost.
# Requests meet TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "x-access-token"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Never logs headers -- they carry bearer tokens.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(users_router, tags=["Users"])
app.include_router(tasks_router, tags=["Tasks"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every failure, whatever raised it, leaves as an ErrorResponse envelope.
# ---------------------------------------------------------------------------


def _error(status_code: int, error: str, code: str, hint: str | None = None, detail=None) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, hint=hint, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render the core error taxonomy.

    5xx errors are logged with their traceback and answered with a generic
    message; the internal message never reaches the client.
    """
    if exc.status_code >= 500:
        logger.error(
            "Internal error on %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
        return _error(exc.status_code, "An unexpected error occurred.", exc.code)
    response = _error(exc.status_code, exc.message, exc.code, hint=exc.hint)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 for a client over LOGIN_RATE_LIMIT, with Retry-After in seconds."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests.", "RATE_LIMITED", detail=str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when the body, path or query fails validation."""
    errors = jsonable_encoder(exc.errors(), exclude={"input", "ctx", "url"})
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Request validation failed.")
    return _error(
        400,
        f"{field}: {message}" if field else message,
        "VALIDATION_ERROR",
        detail=errors,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured errors for framework-raised HTTP exceptions (unknown route, bad method)."""
    if exc.status_code == 404:
        return _error(404, "Route not found", "NOT_FOUND")
    return _error(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything not in the AppError family: log the traceback, answer a bare 500."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred.", "INTERNAL_ERROR")


# ---------------------------------------------------------------------------
# Index and health
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def index() -> dict:
    """Describe the API and how to authenticate."""
    return {
        "success": True,
        "message": "Task Manager API",
        "version": VERSION,
        "authentication": "Send token as: Authorization: Bearer <token> or x-access-token header",
        "endpoints": {
            "users": {
                "register": "POST /users",
                "login": "POST /users/login",
                "myProfile": "GET /users/me (requires auth)",
                "updateProfile": "PUT /users/me (requires auth)",
                "deleteAccount": "DELETE /users/me (requires auth)",
                "verifyToken": "GET /users/verify-token (requires auth)",
            },
            "tasks": {
                "create": "POST /tasks (requires auth)",
                "getAll": "GET /tasks (requires auth - returns your tasks)",
                "getOne": "GET /tasks/:id (requires auth + ownership)",
                "update": "PUT /tasks/:id (requires auth + ownership)",
                "delete": "DELETE /tasks/:id (requires auth + ownership)",
                "complete": "PATCH /tasks/:id/complete (requires auth + ownership)",
            },
        },
    }


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Liveness probe. Touches neither store."""
    return HealthResponse(version=VERSION)
