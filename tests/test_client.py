"""Tests for the HTTP client, driven against the real app through TestClient."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from taskmanager.api import create_app
from taskmanager.client import ClientError, TaskManagerClient
from taskmanager.config import Settings
from taskmanager.database import Database


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "taskmanager.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def client(database: Database) -> Iterator[TaskManagerClient]:
    settings = Settings(
        access_secret="client-tests-access-secret-0123456789",
        refresh_secret="client-tests-refresh-secret-0123456789",
        database_path=database.path,
    )
    app = create_app(settings=settings, database=database)
    with TaskManagerClient(http=TestClient(app)) as api:
        yield api


def test_task_round_trip(client: TaskManagerClient) -> None:
    user = client.register("a@x.com", "secret1")
    assert user["email"] == "a@x.com"
    assert client.is_authenticated

    task = client.create_task("buy milk", description="2 litres")
    assert task["status"] == "PENDING"

    assert client.toggle_task(task["id"])["status"] == "COMPLETED"
    assert client.update_task(task["id"], title="buy oat milk")["title"] == "buy oat milk"
    assert client.get_task(task["id"])["description"] == "2 litres"

    listing = client.list_tasks(status="COMPLETED", search="oat")
    assert [item["id"] for item in listing["tasks"]] == [task["id"]]
    assert listing["pagination"]["totalPages"] == 1

    client.delete_task(task["id"])
    with pytest.raises(ClientError) as excinfo:
        client.get_task(task["id"])
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Task not found"


def test_expired_access_token_is_refreshed_once(client: TaskManagerClient) -> None:
    client.register("a@x.com", "secret1")
    old_refresh = client.refresh_token
    client.access_token = "stale"

    assert client.me()["email"] == "a@x.com"
    assert client.access_token != "stale"
    assert client.refresh_token != old_refresh


def test_rejected_refresh_clears_session(client: TaskManagerClient) -> None:
    client.register("a@x.com", "secret1")
    client.access_token = "stale"
    client.refresh_token = "also-stale"

    with pytest.raises(ClientError) as excinfo:
        client.list_tasks()
    assert excinfo.value.status_code == 401
    assert not client.is_authenticated
    assert client.refresh_token is None


def test_logout_forgets_tokens(client: TaskManagerClient) -> None:
    client.register("a@x.com", "secret1")
    client.logout()
    assert not client.is_authenticated

    client.login("a@x.com", "secret1")
    assert client.me()["email"] == "a@x.com"


def test_bad_credentials_raise(client: TaskManagerClient) -> None:
    client.register("a@x.com", "secret1")
    with pytest.raises(ClientError) as excinfo:
        client.login("a@x.com", "wrong-password")
    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "Invalid email or password"


def test_base_url_is_required() -> None:
    with pytest.raises(ValueError):
        TaskManagerClient("  ")
