"""Configuration management for the task manager service."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

logger = logging.getLogger("taskmanager.config")

DEFAULT_ACCESS_SECRET = "default-access-secret"
DEFAULT_REFRESH_SECRET = "default-refresh-secret"

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}

# Environment variable -> Settings field.
_ENV_FIELDS = {
    "TASKMANAGER_HOST": "host",
    "PORT": "port",
    "ACCESS_TOKEN_SECRET": "access_secret",
    "REFRESH_TOKEN_SECRET": "refresh_secret",
    "ACCESS_TOKEN_EXPIRY": "access_expiry",
    "REFRESH_TOKEN_EXPIRY": "refresh_expiry",
    "TASKMANAGER_DB_PATH": "database_path",
    "TASKMANAGER_CORS_ORIGINS": "cors_origins",
}


def parse_duration(value: object) -> timedelta:
    """Parse ``"15m"``, ``"7d"``, ``"12h"``, ``"30s"`` or a number of seconds."""

    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value <= 0:
            raise ValueError(f"Duration must be positive: {value!r}")
        return timedelta(seconds=value)

    match = _DURATION_PATTERN.match(str(value))
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(**{_DURATION_UNITS[match.group(2)]: amount})


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "taskmanager.sqlite3").resolve(strict=False)


def _parse_origins(value: object) -> Tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(item) for item in value or ()]
    return tuple(item.strip() for item in items if item.strip())


@dataclass(frozen=True)
class Settings:
    """Settings loaded once at startup and handed to the application factory."""

    host: str = "0.0.0.0"
    port: int = 3001
    access_secret: str = DEFAULT_ACCESS_SECRET
    refresh_secret: str = DEFAULT_REFRESH_SECRET
    access_expiry: timedelta = timedelta(minutes=15)
    refresh_expiry: timedelta = timedelta(days=7)
    database_path: Path = field(default_factory=lambda: resolve_database_path(None))
    cors_origins: Tuple[str, ...] = ("http://localhost:3000", "http://localhost:3001")

    @staticmethod
    def from_dict(data: Mapping[str, object], base: Optional["Settings"] = None) -> "Settings":
        """Create :class:`Settings` from raw mapping data layered over ``base``."""

        unknown = set(data.keys()) - {
            "host",
            "port",
            "access_secret",
            "refresh_secret",
            "access_expiry",
            "refresh_expiry",
            "database_path",
            "cors_origins",
        }
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values: Dict[str, object] = {}
        if "host" in data:
            values["host"] = str(data["host"]).strip() or "0.0.0.0"
        if "port" in data:
            port = int(str(data["port"]))
            if not 0 < port < 65536:
                raise ValueError(f"Port out of range: {port}")
            values["port"] = port
        for key in ("access_secret", "refresh_secret"):
            if key in data:
                secret = str(data[key])
                if not secret:
                    raise ValueError(f"{key} must not be empty")
                values[key] = secret
        for key in ("access_expiry", "refresh_expiry"):
            if key in data:
                values[key] = parse_duration(data[key])
        if "database_path" in data:
            values["database_path"] = resolve_database_path(str(data["database_path"]))
        if "cors_origins" in data:
            values["cors_origins"] = _parse_origins(data["cors_origins"])

        return replace(base or Settings(), **values)

    def uses_default_secrets(self) -> bool:
        return (
            self.access_secret == DEFAULT_ACCESS_SECRET
            or self.refresh_secret == DEFAULT_REFRESH_SECRET
        )


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file, then overlay environment variables."""

    settings = Settings()
    if config_path is not None:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")
        settings = Settings.from_dict(raw, base=settings)

    env = os.environ if environ is None else environ
    overrides = {
        name: env[variable]
        for variable, name in _ENV_FIELDS.items()
        if env.get(variable)
    }
    if overrides:
        settings = Settings.from_dict(overrides, base=settings)

    if settings.uses_default_secrets():
        logger.warning("Using built-in development token secrets; set ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET")
    return settings


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    candidate = (Path(__file__).resolve().parent.parent / "config" / "taskmanager.yaml").resolve(strict=False)
    return candidate if candidate.exists() else None


__all__ = [
    "Settings",
    "load_settings",
    "parse_duration",
    "resolve_config_path",
    "resolve_database_path",
]
