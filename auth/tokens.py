"""
auth/tokens.py -- JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only the subject (user id as a
       string), iat and exp. They are never stored server-side and cannot be
       revoked; they simply expire.

  Verification distinguishes three failures so the route layer can answer
       with distinct messages:
         MALFORMED      -- not a parseable JWT, or the claims are unusable
         BAD_SIGNATURE  -- well-formed but not signed with our key/algorithm
         EXPIRED        -- correctly signed, exp is in the past
       A token that is both forged and expired reports BAD_SIGNATURE because
       the signature is checked before any claim.

  Purity: verify() reads only the token, the wall clock and the secret. No
       I/O, no shared mutable state. There is no clock-skew leeway.

  SECRET_KEY: injected at construction from Settings.secret_key. This module
       does not read configuration itself.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

ALGORITHM = "HS256"


class TokenFailure(str, Enum):
    EXPIRED = "expired"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"


@dataclass(frozen=True)
class TokenVerification:
    """Result of TokenService.verify(). user_id is set only when valid."""

    valid: bool
    user_id: int | None = None
    reason: TokenFailure | None = None

    @classmethod
    def ok(cls, user_id: int) -> "TokenVerification":
        return cls(valid=True, user_id=user_id)

    @classmethod
    def failed(cls, reason: TokenFailure) -> "TokenVerification":
        return cls(valid=False, reason=reason)


class TokenService:
    """Issues and verifies signed, time-limited bearer tokens.

    Built once at startup from immutable configuration and shared by every
    request; it holds no mutable state.
    """

    def __init__(self, secret_key: str, lifetime_seconds: int, algorithm: str = ALGORITHM) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a signing secret.")
        if lifetime_seconds <= 0:
            raise ValueError("Token lifetime must be positive.")
        self._secret_key = secret_key
        self._lifetime = timedelta(seconds=lifetime_seconds)
        self._algorithm = algorithm

    @property
    def lifetime_seconds(self) -> int:
        return int(self._lifetime.total_seconds())

    def issue(self, user_id: int, now: datetime | None = None) -> str:
        """Encode a signed JWT for user_id expiring one lifetime after now.

        now defaults to the current UTC time; tests pass an explicit value to
        mint already-expired tokens.
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + self._lifetime,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenVerification:
        """Verify signature and expiry. Never raises on bad input."""
        # Structure first: anything that does not even parse as a JWT is
        # malformed regardless of what the signature check would say.
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError:
            return TokenVerification.failed(TokenFailure.MALFORMED)

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except ExpiredSignatureError:
            return TokenVerification.failed(TokenFailure.EXPIRED)
        except JWTClaimsError:
            return TokenVerification.failed(TokenFailure.MALFORMED)
        except JWTError:
            return TokenVerification.failed(TokenFailure.BAD_SIGNATURE)

        if "exp" not in payload:
            return TokenVerification.failed(TokenFailure.MALFORMED)
        try:
            user_id = int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            return TokenVerification.failed(TokenFailure.MALFORMED)
        return TokenVerification.ok(user_id)
