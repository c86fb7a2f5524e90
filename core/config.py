"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Task Manager API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

How it is wired:
  get_settings() is wrapped in lru_cache, so the environment and .env file
      are read once per process. FastAPI code paths that need a value call it
      rather than building their own Settings.

  Env var names follow field names (DATABASE_URL -> database_url) and
      pydantic does the type coercion, so BCRYPT_ROUNDS=abc fails at startup.

  Injection, not lookup: business logic never reads Settings. api/main.py
      reads it once in lifespan and passes the values into TokenService and
      PasswordHasher constructors.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key makes offline forging practical.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or tasks/.
"""

import logging
import re
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("taskmanager.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'taskmanager.db'}"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS: dict[str, int] = {
    "": 1,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
}


def parse_duration(value: str) -> int:
    """Convert a lifetime string such as "7d", "12h", "30m" or "3600" to seconds.

    Raises ValueError for anything else, including zero-length lifetimes.
    """
    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ValueError(f"Invalid duration {value!r}; expected e.g. '7d', '12h', '30m' or '3600'.")
    amount, unit = match.groups()
    seconds = int(amount) * _DURATION_UNITS[unit]
    if seconds <= 0:
        raise ValueError("Duration must be greater than zero.")
    return seconds


class Settings(BaseSettings):
    """Every tunable of the Task Manager API.

    Defaults suit local development except SECRET_KEY, which must be set
    unless DEBUG is on. Validators reject unusable values at startup rather
    than on the first request.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key() replaces or rejects it.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = Field(default=5000, ge=1, le=65535)
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Human-readable lifetime echoed back to clients as token_expires_in.
    token_lifetime: str = "7d"
    # bcrypt cost factor. Each +1 doubles hashing time.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    password_min_length: int = Field(default=6, ge=1)
    # Off: tokens stay valid until expiry even if the account is deleted.
    # On: every authenticated request costs one user-store lookup.
    verify_subject_exists: bool = False

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_lifetime")
    @classmethod
    def validate_token_lifetime(cls, value: str) -> str:
        parse_duration(value)
        return value.strip()

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required when DEBUG is off. "
                    "Set it in the environment or .env, or set DEBUG=true for a throwaway dev key."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def token_lifetime_seconds(self) -> int:
        return parse_duration(self.token_lifetime)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, building it on first use.

    Tests that need different environment variables call
    get_settings.cache_clear() after changing them.
    """
    return Settings()
