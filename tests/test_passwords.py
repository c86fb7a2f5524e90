"""Unit tests for auth/passwords.py -- bcrypt PasswordHasher.

Covers:
- Digest never equals the plaintext and verifies against it
- Salts are random (same password -> different digests)
- Work factor is embedded in the digest and range-checked at construction
- verify() treats missing/corrupt digests as a mismatch
- Hashing failures surface as HashingError, never plaintext
"""

from unittest.mock import patch

import bcrypt
import pytest

from auth.passwords import PasswordHasher
from core.errors import HashingError, InternalError


class TestHash:
    def test_digest_is_not_plaintext_and_verifies(self, hasher: PasswordHasher) -> None:
        digest = hasher.hash("password123")
        assert digest != "password123"
        assert "password123" not in digest
        assert hasher.verify("password123", digest) is True

    def test_wrong_password_does_not_verify(self, hasher: PasswordHasher) -> None:
        digest = hasher.hash("password123")
        assert hasher.verify("password124", digest) is False

    def test_salt_is_random(self, hasher: PasswordHasher) -> None:
        assert hasher.hash("same-password") != hasher.hash("same-password")

    def test_work_factor_embedded_in_digest(self) -> None:
        digest = PasswordHasher(rounds=5).hash("password123")
        # bcrypt format: $2b$<rounds>$<salt+hash>
        assert digest.split("$")[2] == "05"

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_rejects_out_of_range_rounds(self, rounds: int) -> None:
        with pytest.raises(ValueError):
            PasswordHasher(rounds=rounds)

    def test_hashing_failure_raises_hashing_error(self, hasher: PasswordHasher) -> None:
        with patch("auth.passwords.bcrypt.gensalt", side_effect=OSError("no entropy")):
            with pytest.raises(HashingError) as excinfo:
                hasher.hash("password123")
        assert isinstance(excinfo.value, InternalError)
        assert excinfo.value.status_code == 500


class TestVerify:
    @pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash"])
    def test_missing_or_corrupt_digest_is_mismatch(self, hasher: PasswordHasher, stored) -> None:
        assert hasher.verify("password123", stored) is False

    def test_verify_dummy_always_false_but_runs_bcrypt(self, hasher: PasswordHasher) -> None:
        with patch("auth.passwords.bcrypt.checkpw", wraps=bcrypt.checkpw) as spy:
            assert hasher.verify_dummy("whatever") is False
        assert spy.call_count == 1
