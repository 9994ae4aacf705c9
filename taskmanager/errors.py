"""Error kinds raised by the auth and task flows.

The flows only know *what* went wrong; translating an :class:`ErrorKind` into
an HTTP status happens in :mod:`taskmanager.api`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class ServiceError(Exception):
    """Base class for expected failures surfaced to API callers."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, *, details: Optional[Sequence[FieldError]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: List[FieldError] = list(details or [])


class ValidationFailed(ServiceError):
    kind = ErrorKind.VALIDATION


class Unauthorized(ServiceError):
    kind = ErrorKind.UNAUTHORIZED


class NotFound(ServiceError):
    kind = ErrorKind.NOT_FOUND


class Conflict(ServiceError):
    kind = ErrorKind.CONFLICT


__all__ = [
    "Conflict",
    "ErrorKind",
    "FieldError",
    "NotFound",
    "ServiceError",
    "Unauthorized",
    "ValidationFailed",
]
