from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from taskmanager.auth import INVALID_CREDENTIALS, AuthService
from taskmanager.database import Database
from taskmanager.errors import Conflict, ErrorKind, NotFound, Unauthorized
from taskmanager.tokens import TokenService

ACCESS_SECRET = "auth-tests-access-secret-0123456789"
REFRESH_SECRET = "auth-tests-refresh-secret-0123456789"


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "taskmanager.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def tokens() -> TokenService:
    return TokenService(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture()
def auth(database: Database, tokens: TokenService) -> AuthService:
    return AuthService(database, tokens)


def test_register_returns_usable_tokens(auth: AuthService, tokens: TokenService, database: Database) -> None:
    session = auth.register("a@x.com", "secret1")

    assert session.user.email == "a@x.com"
    assert tokens.verify_access_token(session.tokens.access_token) == session.user.id
    assert database.get_refresh_token(session.user.id) == session.tokens.refresh_token

    rotated = auth.refresh(session.tokens.refresh_token)
    assert tokens.verify_access_token(rotated.access_token) == session.user.id


def test_register_twice_conflicts(auth: AuthService) -> None:
    auth.register("a@x.com", "secret1")
    with pytest.raises(Conflict) as excinfo:
        auth.register("a@x.com", "another")
    assert excinfo.value.kind is ErrorKind.CONFLICT


def test_login_failures_are_indistinguishable(auth: AuthService) -> None:
    auth.register("a@x.com", "secret1")

    with pytest.raises(Unauthorized) as wrong_password:
        auth.login("a@x.com", "nope")
    with pytest.raises(Unauthorized) as unknown_email:
        auth.login("nobody@x.com", "secret1")

    assert wrong_password.value.message == unknown_email.value.message == INVALID_CREDENTIALS
    assert type(wrong_password.value) is type(unknown_email.value)


def test_login_supersedes_earlier_refresh_token(auth: AuthService) -> None:
    registered = auth.register("a@x.com", "secret1")
    logged_in = auth.login("a@x.com", "secret1")

    assert logged_in.user == registered.user
    with pytest.raises(Unauthorized):
        auth.refresh(registered.tokens.refresh_token)
    auth.refresh(logged_in.tokens.refresh_token)


def test_refresh_is_single_use(auth: AuthService) -> None:
    session = auth.login(*_registered(auth))

    rotated = auth.refresh(session.tokens.refresh_token)
    assert rotated.refresh_token != session.tokens.refresh_token

    with pytest.raises(Unauthorized):
        auth.refresh(session.tokens.refresh_token)
    auth.refresh(rotated.refresh_token)


def test_refresh_rejects_invalid_and_expired_tokens(auth: AuthService, database: Database) -> None:
    with pytest.raises(Unauthorized):
        auth.refresh("garbage")

    session = auth.register("a@x.com", "secret1")
    stale_clock = TokenService(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        clock=lambda: datetime.now(timezone.utc) - timedelta(days=8),
    )
    expired = stale_clock.issue_refresh_token(session.user.id)
    database.set_refresh_token(session.user.id, expired)

    with pytest.raises(Unauthorized):
        auth.refresh(expired)


def test_logout_revokes_refresh_token(auth: AuthService, database: Database) -> None:
    session = auth.register("a@x.com", "secret1")
    auth.logout(session.user.id)

    assert database.get_refresh_token(session.user.id) is None
    with pytest.raises(Unauthorized):
        auth.refresh(session.tokens.refresh_token)

    # Logging out again is harmless.
    auth.logout(session.user.id)


def test_get_user_by_id(auth: AuthService) -> None:
    session = auth.register("a@x.com", "secret1")
    assert auth.get_user_by_id(session.user.id) == session.user

    with pytest.raises(NotFound):
        auth.get_user_by_id("missing")


def _registered(auth: AuthService) -> tuple[str, str]:
    auth.register("a@x.com", "secret1")
    return "a@x.com", "secret1"
