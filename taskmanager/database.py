"""SQLite-backed persistence for users and their tasks."""
from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from passlib.context import CryptContext

from .config import resolve_database_path
from .models import Task, TaskStatus, User

logger = logging.getLogger("taskmanager.database")


class DuplicateEmailError(ValueError):
    """Raised when a user with the requested email already exists."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _generate_id() -> str:
    return uuid.uuid4().hex


_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


class Database:
    """Simple wrapper around SQLite for persisting users and tasks."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    refresh_token TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id, created_at);
                """
            )

            columns = {
                row["name"]
                for row in conn.execute("PRAGMA table_info(users)").fetchall()
            }
            if "refresh_token" not in columns:
                conn.execute("ALTER TABLE users ADD COLUMN refresh_token TEXT")

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, email: str, password: str) -> User:
        """Create a new user with a hashed password and no active session."""

        if not password:
            raise ValueError("Password must not be empty")

        user_id = _generate_id()
        created_at = _current_timestamp()
        password_hash = _hash_password(password)

        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (id, email, password_hash, refresh_token, created_at)
                    VALUES (?, ?, ?, NULL, ?)
                    """,
                    (user_id, email, password_hash, _serialize_datetime(created_at)),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError("A user with that email already exists") from exc

        logger.debug("Created user %s", user_id)
        return User(id=user_id, email=email, created_at=created_at)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        stored_hash = row["password_hash"]
        if not stored_hash or not _verify_password(password, stored_hash):
            return None
        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # Refresh token storage
    # ------------------------------------------------------------------
    def set_refresh_token(self, user_id: str, token: Optional[str]) -> bool:
        """Overwrite (or clear, with ``None``) the stored refresh token."""

        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET refresh_token = ? WHERE id = ?",
                (token, user_id),
            )
            return cursor.rowcount > 0

    def get_refresh_token(self, user_id: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT refresh_token FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return row["refresh_token"]

    def replace_refresh_token(self, user_id: str, current: str, new: str) -> bool:
        """Swap ``current`` for ``new`` only if ``current`` is still the stored token."""

        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET refresh_token = ? WHERE id = ? AND refresh_token = ?",
                (new, user_id, current),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------
    def create_task(
        self,
        user_id: str,
        *,
        title: str,
        description: Optional[str],
        status: TaskStatus,
    ) -> Task:
        task_id = _generate_id()
        created_at = _serialize_datetime(_current_timestamp())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks (id, user_id, title, description, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (task_id, user_id, title, description, status.value, created_at, created_at),
            )

        task = self.get_task_for_user(user_id, task_id)
        if task is None:
            raise RuntimeError("Failed to load task after creation")
        return task

    def get_task_for_user(self, user_id: str, task_id: str) -> Optional[Task]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE user_id = ? AND id = ?",
                (user_id, task_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def list_tasks_for_user(
        self,
        user_id: str,
        *,
        status: Optional[TaskStatus] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Task], int]:
        """Return one page of the user's tasks (newest first) and the total match count."""

        clauses = ["user_id = ?"]
        params: List[object] = [user_id]
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if search:
            clauses.append("instr(title, ?) > 0")
            params.append(search)
        where = " AND ".join(clauses)

        with self._connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM tasks WHERE {where}", params).fetchone()[0]
            if offset >= total:
                return [], int(total)
            rows = conn.execute(
                f"SELECT * FROM tasks WHERE {where} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        return [self._row_to_task(row) for row in rows], int(total)

    def update_task(
        self,
        user_id: str,
        task_id: str,
        **fields: object,
    ) -> Optional[Task]:
        allowed = {
            "title": "title",
            "description": "description",
            "status": "status",
        }

        updates: List[str] = []
        values: List[object] = []
        for key, column in allowed.items():
            if key not in fields:
                continue
            value = fields[key]
            if value is None and column != "description":
                continue
            if isinstance(value, TaskStatus):
                value = value.value
            updates.append(f"{column} = ?")
            values.append(value)

        if not updates:
            return self.get_task_for_user(user_id, task_id)

        updates.append("updated_at = ?")
        values.append(_serialize_datetime(_current_timestamp()))
        values.extend([user_id, task_id])
        query = f"UPDATE tasks SET {', '.join(updates)} WHERE user_id = ? AND id = ?"

        with self._connect() as conn:
            cursor = conn.execute(query, values)
            if cursor.rowcount == 0:
                return None

        return self.get_task_for_user(user_id, task_id)

    def delete_task(self, user_id: str, task_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE user_id = ? AND id = ?",
                (user_id, task_id),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"]),
            description=row["description"],
            status=TaskStatus(row["status"]),
            user_id=str(row["user_id"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["Database", "DuplicateEmailError", "resolve_database_path"]
