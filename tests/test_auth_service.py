"""
tests/test_auth_service.py -- Registration, login, logout and password-reset flows.

These run the service functions directly against a fresh AuthStore, so the
rules can be checked without HTTP in the way.

Coverage:
  - register_user: required fields, email shape, password length, duplicates
    (including concurrent sign-ups settled by the UNIQUE constraint)
  - login: token issue, session record (a failed write is logged, not fatal),
    identical failure for unknown email and wrong password
  - logout: best effort, never raises
  - password reset: unknown email leaves no row, token works once, expired
    tokens fail, success ends every session of the user
  - purge_expired
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from auth import service
from auth.store import AuthStore
from auth.tokens import decode_token, verify_password
from conftest import create_user
from core.errors import AuthenticationError, ConflictError, ValidationError


class TestRegister:
    def test_creates_verified_user(self, auth_store: AuthStore) -> None:
        user_id = service.register_user(auth_store, "new@stockify.test", "secret1", "New", "User")
        user = auth_store.get_by_id(user_id)
        assert user.email == "new@stockify.test"
        assert user.is_verified is True
        assert user.role_id is None
        assert verify_password("secret1", user.password_hash)

    @pytest.mark.parametrize(
        "fields",
        [
            (None, "secret1", "A", "B"),
            ("a@b.io", "", "A", "B"),
            ("a@b.io", "secret1", "  ", "B"),
            ("a@b.io", "secret1", "A", None),
        ],
    )
    def test_all_fields_required(self, auth_store: AuthStore, fields) -> None:
        with pytest.raises(ValidationError, match="All fields are required"):
            service.register_user(auth_store, *fields)

    def test_bad_email(self, auth_store: AuthStore) -> None:
        with pytest.raises(ValidationError, match="Invalid email format"):
            service.register_user(auth_store, "not-an-email", "secret1", "A", "B")

    def test_short_password(self, auth_store: AuthStore) -> None:
        with pytest.raises(ValidationError, match="at least 6 characters"):
            service.register_user(auth_store, "a@b.io", "12345", "A", "B")

    def test_duplicate_email_is_conflict(self, auth_store: AuthStore) -> None:
        service.register_user(auth_store, "dup@stockify.test", "secret1", "A", "B")
        with pytest.raises(ConflictError) as excinfo:
            service.register_user(auth_store, "dup@stockify.test", "secret2", "C", "D")
        assert excinfo.value.code == "email_taken"

    def test_concurrent_duplicates_create_one_user(self, tmp_path) -> None:
        """Parallel sign-ups with one email: exactly one succeeds, the rest conflict."""
        store = AuthStore(db_url=f"sqlite:///{tmp_path / 'race.db'}")

        def attempt(_):
            try:
                return service.register_user(store, "race@stockify.test", "secret1", "R", "C")
            except ConflictError:
                return None

        try:
            with ThreadPoolExecutor(max_workers=4) as pool:
                results = list(pool.map(attempt, range(4)))
            assert len([r for r in results if r is not None]) == 1
            assert len([u for u in store.list_users() if u.email == "race@stockify.test"]) == 1
        finally:
            store.close()


class TestLogin:
    def test_success_issues_token_and_records_session(self, auth_store: AuthStore) -> None:
        user = create_user(auth_store, "in@stockify.test", "secret1")
        result = service.login(auth_store, "in@stockify.test", "secret1")
        identity = decode_token(result.token)
        assert identity.user_id == user.id
        assert identity.email == "in@stockify.test"
        assert result.user.id == user.id
        sessions = auth_store.list_sessions(user.id)
        assert [s.token for s in sessions] == [result.token]
        assert auth_store.has_session(user.id, result.token)

    def test_unknown_email_and_wrong_password_fail_identically(self, auth_store: AuthStore) -> None:
        create_user(auth_store, "in@stockify.test", "secret1")
        with pytest.raises(AuthenticationError) as wrong:
            service.login(auth_store, "in@stockify.test", "nope-nope")
        with pytest.raises(AuthenticationError) as unknown:
            service.login(auth_store, "ghost@stockify.test", "secret1")
        assert (wrong.value.message, wrong.value.code) == (unknown.value.message, unknown.value.code)
        assert wrong.value.message == "Invalid credentials"

    def test_missing_fields(self, auth_store: AuthStore) -> None:
        with pytest.raises(ValidationError, match="Email and password are required"):
            service.login(auth_store, "", "secret1")

    def test_session_write_failure_still_logs_in(self, auth_store: AuthStore, monkeypatch, caplog) -> None:
        user = create_user(auth_store, "in@stockify.test", "secret1")

        def broken_record(record) -> None:
            raise OperationalError("INSERT INTO sessions", {}, Exception("database is locked"))

        monkeypatch.setattr(auth_store, "record_session", broken_record)
        with caplog.at_level(logging.WARNING, logger="stockify.auth"):
            result = service.login(auth_store, "in@stockify.test", "secret1")

        assert decode_token(result.token).user_id == user.id
        assert auth_store.list_sessions(user.id) == []
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert any("could not be written" in r.getMessage() for r in warnings)


class TestLogout:
    def test_removes_session_record(self, auth_store: AuthStore) -> None:
        user = create_user(auth_store, "out@stockify.test", "secret1")
        token = service.login(auth_store, "out@stockify.test", "secret1").token
        service.logout(auth_store, token)
        assert auth_store.list_sessions(user.id) == []

    @pytest.mark.parametrize("token", [None, "", "garbage.token.value"])
    def test_never_raises(self, auth_store: AuthStore, token) -> None:
        service.logout(auth_store, token)


class TestPasswordReset:
    def test_unknown_email_creates_nothing(self, auth_store: AuthStore) -> None:
        assert service.request_password_reset(auth_store, "ghost@stockify.test") is None
        assert auth_store.list_password_resets("ghost@stockify.test") == []

    def test_known_email_gets_one_hour_token(self, auth_store: AuthStore) -> None:
        create_user(auth_store, "reset@stockify.test")
        now = datetime.now(timezone.utc)
        token = service.request_password_reset(auth_store, "reset@stockify.test", now=now)
        (row,) = auth_store.list_password_resets("reset@stockify.test")
        assert row.token == token
        assert len(token) == 64
        expires = datetime.fromisoformat(row.expires_at)
        assert expires - now == timedelta(hours=1)

    def test_reset_works_once_and_ends_sessions(self, auth_store: AuthStore) -> None:
        user = create_user(auth_store, "reset@stockify.test", "oldpass1")
        service.login(auth_store, "reset@stockify.test", "oldpass1")
        token = service.request_password_reset(auth_store, "reset@stockify.test")

        service.reset_password(auth_store, token, "newpass1")
        stored = auth_store.get_by_id(user.id)
        assert verify_password("newpass1", stored.password_hash)
        assert auth_store.list_sessions(user.id) == []
        assert auth_store.list_password_resets("reset@stockify.test") == []

        with pytest.raises(ValidationError, match="Invalid or expired reset token"):
            service.reset_password(auth_store, token, "another1")
        assert verify_password("newpass1", auth_store.get_by_id(user.id).password_hash)

    def test_expired_token_rejected(self, auth_store: AuthStore) -> None:
        user = create_user(auth_store, "late@stockify.test", "oldpass1")
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = service.request_password_reset(auth_store, "late@stockify.test", now=issued)
        with pytest.raises(ValidationError, match="Invalid or expired reset token"):
            service.reset_password(auth_store, token, "newpass1")
        assert verify_password("oldpass1", auth_store.get_by_id(user.id).password_hash)

    def test_unknown_token_rejected(self, auth_store: AuthStore) -> None:
        with pytest.raises(ValidationError, match="Invalid or expired reset token"):
            service.reset_password(auth_store, "f" * 64, "newpass1")

    def test_new_password_length_checked(self, auth_store: AuthStore) -> None:
        create_user(auth_store, "reset@stockify.test")
        token = service.request_password_reset(auth_store, "reset@stockify.test")
        with pytest.raises(ValidationError, match="at least 6 characters"):
            service.reset_password(auth_store, token, "123")
        # The failed attempt must not spend the token.
        assert len(auth_store.list_password_resets("reset@stockify.test")) == 1


def test_purge_expired(auth_store: AuthStore) -> None:
    create_user(auth_store, "old@stockify.test", "secret1")
    past = datetime.now(timezone.utc) - timedelta(days=30)
    service.login(auth_store, "old@stockify.test", "secret1", now=past)
    service.login(auth_store, "old@stockify.test", "secret1")
    service.request_password_reset(auth_store, "old@stockify.test", now=past)
    service.request_password_reset(auth_store, "old@stockify.test")

    assert auth_store.purge_expired() == (1, 1)
    assert len(auth_store.list_password_resets("old@stockify.test")) == 1
