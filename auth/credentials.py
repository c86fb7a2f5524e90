"""
auth/credentials.py -- Credential lifecycle: register, login, profile changes.

Unregistered -> Registered -> (many) authenticated sessions. Sessions are just
tokens; nothing here tracks them.

Security design decisions:
  Uniqueness: find_by_email()/find_by_name() before the insert are only a
      fast path that yields a friendly message. The UNIQUE constraints in
      auth/store.py are authoritative -- an IntegrityError from a concurrent
      registration is translated into the same ConflictError.

  Login: unknown email and wrong password produce the identical
      AuthenticationError ("Invalid email or password."), and an unknown email
      still pays for one bcrypt comparison (PasswordHasher.verify_dummy) so
      response time does not reveal which case occurred.

  Re-hashing: a password is hashed exactly once per new value. update_profile()
      only hashes when a password is supplied; name/email changes never
      re-derive password_hash.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import AuthResult, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import AuthenticationError, AuthFailure, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("taskmanager.auth")

INVALID_CREDENTIALS = "Invalid email or password."
DUPLICATE_EMAIL = "User already exists with this email."
DUPLICATE_NAME = "User already exists with this name."

# bcrypt reads at most 72 bytes of input; multibyte characters count per byte.
PASSWORD_MAX_BYTES = 72


class CredentialService:
    """Register, log in, and manage an account's credentials.

    All collaborators are injected; the service holds no state of its own.
    token_lifetime is the human-readable lifetime (e.g. "7d") returned to
    clients alongside each token.
    """

    def __init__(
        self,
        users: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        token_lifetime: str,
        password_min_length: int = 6,
    ) -> None:
        self.users = users
        self.hasher = hasher
        self.tokens = tokens
        self.token_lifetime = token_lifetime
        self.password_min_length = password_min_length

    # ------------------------------------------------------------------
    # Register / login
    # ------------------------------------------------------------------

    def register(self, name: str | None, email: str | None, password: str | None) -> AuthResult:
        """Create an account and issue its first token.

        Raises ValidationError for missing or ill-formed fields and
        ConflictError when the email or name is already taken.
        """
        name = (name or "").strip()
        email = (email or "").strip()
        if not name or not email or not password:
            raise ValidationError("Please provide name, email, and password.")
        self._check_password(password)
        self._check_email(email)

        if self.users.find_by_email(email) is not None:
            raise ConflictError(DUPLICATE_EMAIL)
        if self.users.find_by_name(name) is not None:
            raise ConflictError(DUPLICATE_NAME)

        digest = self.hasher.hash(password)
        try:
            user = self.users.create(User(name=name, email=email, password_hash=digest))
        except IntegrityError as exc:
            raise self._conflict_from(exc, name=name, email=email) from exc

        logger.info("Registered user %d", user.id)
        return AuthResult(user=user, token=self.tokens.issue(user.id), token_expires_in=self.token_lifetime)

    def login(self, email: str | None, password: str | None) -> AuthResult:
        """Exchange email + password for a token.

        Raises ValidationError if either is missing, otherwise a single
        generic AuthenticationError for every kind of mismatch.
        """
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Please provide email and password.")

        stored = self.users.find_by_email(email, include_password=True)
        if stored is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.verify_dummy(password)
            logger.info("Failed login for unknown email")
            raise self._bad_credentials()
        if not self.hasher.verify(password, stored.password_hash):
            logger.info("Failed login for user %d", stored.id)
            raise self._bad_credentials()

        user = _without_password(stored)
        return AuthResult(user=user, token=self.tokens.issue(user.id), token_expires_in=self.token_lifetime)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: int) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def update_profile(
        self,
        user_id: int,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
    ) -> User:
        """Change any of name, email, password for user_id.

        Only the supplied fields are written. password_hash is re-derived
        only when password is supplied.
        """
        current = self.get_profile(user_id)
        updates: dict[str, str] = {}

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name cannot be empty.")
            if name != current.name:
                if self.users.find_by_name(name) is not None:
                    raise ConflictError(DUPLICATE_NAME)
                updates["name"] = name
        if email is not None:
            email = email.strip()
            self._check_email(email)
            if email != current.email:
                if self.users.find_by_email(email) is not None:
                    raise ConflictError(DUPLICATE_EMAIL)
                updates["email"] = email
        if password is not None:
            self._check_password(password)
            updates["password_hash"] = self.hasher.hash(password)

        if not updates:
            return current
        try:
            updated = self.users.update_by_id(user_id, **updates)
        except IntegrityError as exc:
            raise self._conflict_from(exc, name=updates.get("name"), email=updates.get("email")) from exc
        if updated is None:
            raise NotFoundError("User not found.")
        if "password_hash" in updates:
            logger.info("Password changed for user %d", user_id)
        return updated

    def delete_account(self, user_id: int) -> User:
        """Delete the account and return the record as it was.

        Tokens already issued to this user stay valid until they expire
        unless VERIFY_SUBJECT_EXISTS is enabled.
        """
        user = self.get_profile(user_id)
        if not self.users.delete_by_id(user_id):
            raise NotFoundError("User not found.")
        logger.info("Deleted user %d", user_id)
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_password(self, password: str) -> None:
        if len(password) < self.password_min_length:
            raise ValidationError(f"Password must be at least {self.password_min_length} characters.")
        if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValidationError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded.")

    @staticmethod
    def _check_email(email: str) -> None:
        if "@" not in email:
            raise ValidationError('The email should include the "@".')

    @staticmethod
    def _bad_credentials() -> AuthenticationError:
        return AuthenticationError(AuthFailure.INVALID, INVALID_CREDENTIALS, code="INVALID_CREDENTIALS")

    def _conflict_from(self, exc: IntegrityError, name: str | None, email: str | None) -> ConflictError:
        """Name the field that lost a uniqueness race, if it can be determined."""
        if email is not None and self.users.find_by_email(email) is not None:
            return ConflictError(DUPLICATE_EMAIL)
        if name is not None and self.users.find_by_name(name) is not None:
            return ConflictError(DUPLICATE_NAME)
        logger.warning("Integrity error without an identifiable duplicate: %s", type(exc.orig).__name__)
        return ConflictError("User already exists.")


def _without_password(user: User) -> User:
    return User(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )
