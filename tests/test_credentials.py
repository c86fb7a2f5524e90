"""
tests/test_credentials.py -- Unit tests for auth/credentials.py.

Covers:
  - register(): token identifies the new user, hash stored (never plaintext)
  - register(): missing fields, short password, bad email, duplicates
  - Passwords over 72 UTF-8 bytes are a ValidationError, not a hashing failure
  - A lost uniqueness race (IntegrityError) still maps to ConflictError
  - login(): unknown email and wrong password raise the identical error
  - update_profile(): name/email changes never re-hash; password change does
  - delete_account()
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from auth.credentials import DUPLICATE_EMAIL, DUPLICATE_NAME, INVALID_CREDENTIALS, CredentialService
from auth.store import UserStore
from core.errors import AuthenticationError, AuthFailure, ConflictError, NotFoundError, ValidationError


def _register(credentials: CredentialService, name: str = "John", password: str = "password123"):
    return credentials.register(name, f"{name.lower()}@example.com", password)


class TestRegister:
    def test_token_identifies_new_user(self, credentials: CredentialService) -> None:
        result = _register(credentials)
        assert result.user.id is not None
        assert result.user.password_hash is None
        assert result.token_expires_in == "7d"
        assert credentials.tokens.verify(result.token).user_id == result.user.id

    def test_stores_hash_not_plaintext(self, credentials: CredentialService, user_store: UserStore) -> None:
        result = _register(credentials)
        stored = user_store.find_by_id(result.user.id, include_password=True)
        assert stored.password_hash != "password123"
        assert credentials.hasher.verify("password123", stored.password_hash)

    @pytest.mark.parametrize(
        ("name", "email", "password"),
        [
            (None, "a@example.com", "password123"),
            ("A", None, "password123"),
            ("A", "a@example.com", None),
            ("   ", "a@example.com", "password123"),
            ("A", "a@example.com", ""),
        ],
    )
    def test_missing_fields(self, credentials: CredentialService, name, email, password) -> None:
        with pytest.raises(ValidationError, match="Please provide name, email, and password."):
            credentials.register(name, email, password)

    def test_short_password(self, credentials: CredentialService) -> None:
        with pytest.raises(ValidationError, match="at least 6 characters"):
            credentials.register("A", "a@example.com", "12345")

    def test_multibyte_password_over_72_bytes(self, credentials: CredentialService) -> None:
        """40 characters but 80 UTF-8 bytes: a validation error, never a hashing failure."""
        with pytest.raises(ValidationError, match="at most 72 bytes"):
            credentials.register("A", "a@example.com", "\u00e9" * 40)

    def test_multibyte_password_at_72_bytes_accepted(self, credentials: CredentialService) -> None:
        password = "\u00e9" * 36
        result = credentials.register("A", "a@example.com", password)
        assert credentials.login("a@example.com", password).user.id == result.user.id

    def test_email_without_at(self, credentials: CredentialService) -> None:
        with pytest.raises(ValidationError, match='include the "@"'):
            credentials.register("A", "a.example.com", "password123")

    def test_duplicate_email(self, credentials: CredentialService) -> None:
        credentials.register("John", "john@example.com", "password123")
        with pytest.raises(ConflictError) as excinfo:
            credentials.register("Johnny", "john@example.com", "password123")
        assert excinfo.value.message == DUPLICATE_EMAIL
        assert excinfo.value.status_code == 400

    def test_duplicate_name(self, credentials: CredentialService) -> None:
        credentials.register("John", "john@example.com", "password123")
        with pytest.raises(ConflictError) as excinfo:
            credentials.register("John", "other@example.com", "password123")
        assert excinfo.value.message == DUPLICATE_NAME

    def test_lost_race_maps_to_conflict(self, credentials: CredentialService, user_store: UserStore) -> None:
        """The pre-check misses a concurrent insert; the UNIQUE constraint still wins."""
        credentials.register("John", "john@example.com", "password123")
        real_find = user_store.find_by_email
        calls = {"n": 0}

        def stale_then_real(email, include_password=False):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(email, include_password)

        with patch.object(user_store, "find_by_email", side_effect=stale_then_real):
            with pytest.raises(ConflictError) as excinfo:
                credentials.register("Johnny", "john@example.com", "password123")
        assert excinfo.value.message == DUPLICATE_EMAIL


class TestLogin:
    def test_success(self, credentials: CredentialService) -> None:
        registered = _register(credentials)
        result = credentials.login("john@example.com", "password123")
        assert result.user.id == registered.user.id
        assert result.user.password_hash is None
        assert credentials.tokens.verify(result.token).user_id == registered.user.id

    def test_unknown_email_and_wrong_password_are_identical(self, credentials: CredentialService) -> None:
        _register(credentials)
        with pytest.raises(AuthenticationError) as unknown:
            credentials.login("nobody@example.com", "password123")
        with pytest.raises(AuthenticationError) as wrong:
            credentials.login("john@example.com", "wrong-password")

        for excinfo in (unknown, wrong):
            assert excinfo.value.message == INVALID_CREDENTIALS
            assert excinfo.value.code == "INVALID_CREDENTIALS"
            assert excinfo.value.reason is AuthFailure.INVALID
            assert excinfo.value.status_code == 401

    def test_unknown_email_still_runs_bcrypt(self, credentials: CredentialService) -> None:
        with patch.object(credentials.hasher, "verify_dummy", wraps=credentials.hasher.verify_dummy) as spy:
            with pytest.raises(AuthenticationError):
                credentials.login("nobody@example.com", "password123")
        spy.assert_called_once_with("password123")

    @pytest.mark.parametrize(("email", "password"), [(None, "password123"), ("john@example.com", None), ("", "")])
    def test_missing_fields(self, credentials: CredentialService, email, password) -> None:
        with pytest.raises(ValidationError, match="Please provide email and password."):
            credentials.login(email, password)


class TestProfile:
    def test_name_changes_do_not_rehash(self, credentials: CredentialService, user_store: UserStore) -> None:
        user_id = _register(credentials).user.id
        before = user_store.find_by_id(user_id, include_password=True).password_hash

        with patch.object(credentials.hasher, "hash", wraps=credentials.hasher.hash) as spy:
            credentials.update_profile(user_id, name="Johnny")
            credentials.update_profile(user_id, name="Jack", email="jack@example.com")
        assert spy.call_count == 0

        after = user_store.find_by_id(user_id, include_password=True).password_hash
        assert after == before
        assert credentials.login("jack@example.com", "password123").user.name == "Jack"

    def test_password_change_rehashes(self, credentials: CredentialService) -> None:
        user_id = _register(credentials).user.id
        credentials.update_profile(user_id, password="new-password")

        with pytest.raises(AuthenticationError):
            credentials.login("john@example.com", "password123")
        assert credentials.login("john@example.com", "new-password").user.id == user_id

    def test_no_changes_returns_current(self, credentials: CredentialService) -> None:
        user = _register(credentials).user
        assert credentials.update_profile(user.id, name=user.name).name == "John"

    def test_update_to_taken_name_or_email(self, credentials: CredentialService) -> None:
        _register(credentials, "John")
        jane = _register(credentials, "Jane").user
        with pytest.raises(ConflictError, match=DUPLICATE_NAME):
            credentials.update_profile(jane.id, name="John")
        with pytest.raises(ConflictError, match=DUPLICATE_EMAIL):
            credentials.update_profile(jane.id, email="john@example.com")

    def test_update_validates(self, credentials: CredentialService) -> None:
        user_id = _register(credentials).user.id
        with pytest.raises(ValidationError):
            credentials.update_profile(user_id, name="  ")
        with pytest.raises(ValidationError):
            credentials.update_profile(user_id, email="no-at-sign")
        with pytest.raises(ValidationError):
            credentials.update_profile(user_id, password="123")
        with pytest.raises(ValidationError):
            credentials.update_profile(user_id, password="\u00e9" * 40)

    def test_get_profile_missing(self, credentials: CredentialService) -> None:
        with pytest.raises(NotFoundError, match="User not found."):
            credentials.get_profile(999)

    def test_delete_account(self, credentials: CredentialService) -> None:
        user_id = _register(credentials).user.id
        deleted = credentials.delete_account(user_id)
        assert deleted.id == user_id
        with pytest.raises(NotFoundError):
            credentials.get_profile(user_id)
        with pytest.raises(AuthenticationError):
            credentials.login("john@example.com", "password123")
