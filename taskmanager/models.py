"""Domain models for users and their tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class User:
    """Public view of a user account; never carries the password hash or tokens."""

    id: str
    email: str
    created_at: datetime


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    description: Optional[str]
    status: TaskStatus
    user_id: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthSession:
    """Result of a successful registration or login."""

    user: User
    tokens: TokenPair


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int


@dataclass(frozen=True)
class TaskPage:
    tasks: List[Task]
    pagination: Pagination


__all__ = [
    "AuthSession",
    "Pagination",
    "Task",
    "TaskPage",
    "TaskStatus",
    "TokenPair",
    "User",
]
