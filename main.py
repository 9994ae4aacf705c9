"""Command-line interface for the task manager service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import replace
from getpass import getpass
from pathlib import Path
from typing import Sequence

from taskmanager.auth import AuthService
from taskmanager.config import Settings, load_settings, resolve_config_path
from taskmanager.database import Database
from taskmanager.errors import ServiceError
from taskmanager.tokens import TokenService

logger = logging.getLogger("taskmanager.main")

_MIN_PASSWORD_LENGTH = 6


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file (default: TASKMANAGER_CONFIG or config/taskmanager.yaml)",
    )

    parser = argparse.ArgumentParser(description="Task manager service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve", config=None, host=None, port=None)

    subparsers.add_parser("init-db", parents=[common], help="Initialise the task database")

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: PORT or 3001)",
    )

    user_parser = subparsers.add_parser(
        "create-user", parents=[common], help="Register a user from the command line"
    )
    user_parser.add_argument("email", help="Unique email address for login")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "create-user"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_settings(config: str | None) -> Settings:
    path = Path(config).expanduser() if config else resolve_config_path(os.getenv("TASKMANAGER_CONFIG"))
    return load_settings(path)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, host: str | None, port: int | None) -> None:
    from taskmanager.application import create_application
    import uvicorn

    if host:
        settings = replace(settings, host=host)
    if port:
        settings = replace(settings, port=port)

    logger.info("Starting task manager API on http://%s:%s", settings.host, settings.port)

    app = create_application(settings=settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {_MIN_PASSWORD_LENGTH} characters): ")
        if len(password) < _MIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _create_user(database: Database, settings: Settings, email: str) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.")
        return 1

    auth = AuthService(database, TokenService.from_settings(settings))
    try:
        session = auth.register(email.strip(), password)
    except ServiceError as exc:
        print(f"Failed to create user: {exc.message}")
        return 1

    print(f"Created user {session.user.id} <{session.user.email}>")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = _load_settings(args.config)

    if args.command == "serve":
        _serve(settings=settings, host=args.host, port=args.port)
    elif args.command == "init-db":
        _initialise_database(settings)
        print("Database initialisation complete.")
    elif args.command == "create-user":
        return _create_user(_initialise_database(settings), settings, args.email)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
