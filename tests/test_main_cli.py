from pathlib import Path
import sys
from unittest import mock

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import main
from main import _parse_args
from taskmanager.database import Database


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"
    assert args.host is None
    assert args.port is None


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_config_option_without_subcommand() -> None:
    args = _parse_args(["--config", "settings.yaml"])
    assert args.command == "serve"
    assert args.config == "settings.yaml"


def test_create_user_subcommand() -> None:
    args = _parse_args(["create-user", "a@x.com"])
    assert args.command == "create-user"
    assert args.email == "a@x.com"


def test_init_db_creates_schema(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.setenv("TASKMANAGER_DB_PATH", str(db_path))

    assert main.main(["init-db"]) == 0
    assert db_path.exists()


def test_create_user_registers_account(tmp_path, monkeypatch, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.setenv("TASKMANAGER_DB_PATH", str(db_path))

    with mock.patch.object(main, "getpass", side_effect=["secret1", "secret1"]):
        assert main.main(["create-user", "a@x.com"]) == 0
    assert "a@x.com" in capsys.readouterr().out
    assert Database(db_path).authenticate_user("a@x.com", "secret1") is not None

    with mock.patch.object(main, "getpass", side_effect=["secret1", "secret1"]):
        assert main.main(["create-user", "a@x.com"]) == 1
    assert "Email already registered" in capsys.readouterr().out
