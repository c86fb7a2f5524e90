"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tasks/models.py -- dataclasses own domain shape; stores and services do
the work.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    password_hash is None whenever the record was read without
    include_password=True. Only the credential service asks for it (login and
    password verification); every other read leaves it out so a response
    mapper cannot leak it by accident.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    id: int | None = None
    password_hash: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, bumped by store on every update


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login.

    user never carries password_hash. token_expires_in is the configured
    lifetime string (e.g. "7d"), echoed to the client as-is.
    """

    user: User
    token: str
    token_expires_in: str
