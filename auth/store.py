"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as tasks/store.py).
UserStore is the repository; _row_to_user is the mapper. Service and route
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  password_hash is excluded from every read unless the caller passes
  include_password=True. Only the credential service does that.

  UNIQUE(name) and UNIQUE(email) are the source of truth for uniqueness.
  create() and update_by_id() let sqlalchemy.exc.IntegrityError propagate so
  the caller can turn a lost race into a ConflictError.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.models import User
from core.config import get_settings
from core.db import create_store_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_UPDATABLE_FIELDS = frozenset({"name", "email", "password_hash"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.create(User(name="john", email="john@example.com", password_hash=digest))
        store.find_by_email("john@example.com", include_password=True)
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str, include_password: bool = False) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        return self._find_one(_users.c.email == email, include_password)

    def find_by_id(self, user_id: int, include_password: bool = False) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        return self._find_one(_users.c.id == user_id, include_password)

    def find_by_name(self, name: str, include_password: bool = False) -> User | None:
        """Look up a user by exact name (case-sensitive). Returns None if not found."""
        return self._find_one(_users.c.name == name, include_password)

    def _find_one(self, clause, include_password: bool) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(clause)).fetchone()
        return _row_to_user(row, include_password) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user: User) -> User:
        """Insert a new user and return the stored record (without password_hash).

        Raises sqlalchemy.exc.IntegrityError if name or email already exists.
        """
        if not user.password_hash:
            raise ValueError("Refusing to store a user without a password hash.")
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    password_hash=user.password_hash,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            user_id = result.inserted_primary_key[0]
        return User(id=user_id, name=user.name, email=user.email, created_at=now, updated_at=now)

    def update_by_id(self, user_id: int, **fields) -> User | None:
        """Update mutable fields on an existing user.

        Accepted fields: name, email, password_hash. The store writes exactly
        what it is given; hashing a new password is the caller's job, so a
        name or email change can never touch password_hash.

        Returns the updated User (without password_hash), or None if user_id
        was not found. Raises IntegrityError on a uniqueness violation.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update().where(_users.c.id == user_id).values(updated_at=_now_iso(), **fields)
                )
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.find_by_id(user_id)

    def delete_by_id(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Tasks owned by the user are not touched here; the account deletion
        route removes them through TaskStore.delete_by_owner().
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, include_password: bool = False) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash if include_password else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
