from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from taskmanager.config import Settings, load_settings, parse_duration


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("15m", timedelta(minutes=15)),
        ("7d", timedelta(days=7)),
        ("12h", timedelta(hours=12)),
        ("30s", timedelta(seconds=30)),
        ("90", timedelta(seconds=90)),
        (600, timedelta(seconds=600)),
    ],
)
def test_parse_duration(raw: object, expected: timedelta) -> None:
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "fifteen", "15w", "0m", "-5m", True])
def test_parse_duration_rejects_garbage(raw: object) -> None:
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_defaults_without_file_or_environment() -> None:
    settings = load_settings(environ={})
    assert settings.port == 3001
    assert settings.access_expiry == timedelta(minutes=15)
    assert settings.refresh_expiry == timedelta(days=7)
    assert settings.uses_default_secrets()


def test_environment_overrides_file(tmp_path: Path) -> None:
    config_path = tmp_path / "taskmanager.yaml"
    config_path.write_text(
        "port: 8000\n"
        "access_secret: from-file\n"
        "refresh_expiry: 1d\n"
        "database_path: tasks.sqlite3\n"
        "cors_origins:\n"
        "  - https://tasks.example.com\n",
        encoding="utf-8",
    )

    settings = load_settings(
        config_path,
        environ={
            "PORT": "9000",
            "REFRESH_TOKEN_SECRET": "from-env",
            "ACCESS_TOKEN_EXPIRY": "5m",
        },
    )

    assert settings.port == 9000
    assert settings.access_secret == "from-file"
    assert settings.refresh_secret == "from-env"
    assert settings.access_expiry == timedelta(minutes=5)
    assert settings.refresh_expiry == timedelta(days=1)
    assert settings.database_path.name == "tasks.sqlite3"
    assert settings.cors_origins == ("https://tasks.example.com",)
    assert not settings.uses_default_secrets()


def test_cors_origins_from_environment() -> None:
    settings = load_settings(environ={"TASKMANAGER_CORS_ORIGINS": "https://a.test, https://b.test,"})
    assert settings.cors_origins == ("https://a.test", "https://b.test")


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "taskmanager.yaml"
    config_path.write_text("prot: 8000\n", encoding="utf-8")
    with pytest.raises(ValueError, match="prot"):
        load_settings(config_path, environ={})


def test_invalid_port_is_rejected() -> None:
    with pytest.raises(ValueError):
        Settings.from_dict({"port": 70000})


def test_create_application_from_settings(tmp_path: Path) -> None:
    from fastapi.testclient import TestClient

    import taskmanager

    settings = Settings(
        access_secret="factory-tests-access-secret-0123456789",
        refresh_secret="factory-tests-refresh-secret-0123456789",
        database_path=tmp_path / "data" / "taskmanager.sqlite3",
    )
    app = taskmanager.create_application(settings=settings)

    with TestClient(app) as client:
        assert client.get("/health").json()["status"] == "ok"
        response = client.post("/auth/register", json={"email": "a@x.com", "password": "secret1"})
        assert response.status_code == 201
    assert settings.database_path.exists()
    assert app.state.settings is settings
