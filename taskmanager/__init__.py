"""Task manager service: JWT-authenticated personal task tracking."""

from __future__ import annotations

from typing import Any

from .config import Settings, load_settings
from .database import Database, resolve_database_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the API application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_application(*args: Any, **kwargs: Any):
    """Factory function that builds the application from settings or the environment."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "Database",
    "Settings",
    "create_app",
    "create_application",
    "load_settings",
    "resolve_database_path",
]
