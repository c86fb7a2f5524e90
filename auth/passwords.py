"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

The salt is generated per call and embedded in the digest, so no separate salt
column exists. The work factor is injected at construction from
Settings.bcrypt_rounds; nothing in this module reads configuration.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import logging

import bcrypt

from core.errors import HashingError

logger = logging.getLogger("taskmanager.auth")

_TIMING_DUMMY = "taskmanager_timing_dummy"


class PasswordHasher:
    """Salted, work-factor-tunable password hashing.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("s3cret")
        hasher.verify("s3cret", digest)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31.")
        self._rounds = rounds
        # Timing equalization: computed once so verify_dummy() costs the
        # same as a real comparison at this work factor.
        self._dummy_hash = self.hash(_TIMING_DUMMY)

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of plain with a fresh random salt.

        bcrypt refuses or truncates input past 72 bytes. CredentialService
        rejects such passwords before they reach the hasher.

        Raises HashingError if bcrypt fails (e.g. the entropy source is
        unavailable). Never returns the plaintext.
        """
        try:
            digest = bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        except (ValueError, TypeError, OSError) as exc:
            logger.error("Password hashing failed: %s", type(exc).__name__)
            raise HashingError("Password hashing failed.") from exc
        return digest.decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if plain matches hashed. Constant-time inside bcrypt.

        A missing or corrupt stored digest is a mismatch, not an error.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plain: str) -> bool:
        """Burn one bcrypt comparison against the dummy digest. Always False.

        Login calls this when the email is unknown so the response time does
        not reveal whether the account exists.
        """
        self.verify(plain, self._dummy_hash)
        return False
