"""Application factory that wires settings, storage and services together."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from .api import create_app
from .config import Settings, load_settings, resolve_config_path
from .database import Database
from .tokens import TokenService

logger = logging.getLogger("taskmanager.application")


def create_application(
    *,
    settings: Optional[Settings] = None,
    config_path: Optional[Path] = None,
) -> FastAPI:
    """Create the ASGI application from explicit settings or the environment."""

    if settings is None:
        path = config_path or resolve_config_path(os.getenv("TASKMANAGER_CONFIG"))
        settings = load_settings(path)

    database = Database(settings.database_path)
    database.initialize()
    logger.info("Using database at %s", settings.database_path)

    return create_app(
        settings=settings,
        database=database,
        token_service=TokenService.from_settings(settings),
    )


__all__ = ["create_application"]
