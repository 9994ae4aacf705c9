"""FastAPI application exposing the auth and task endpoints."""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import AuthService
from .config import Settings
from .database import Database
from .errors import ErrorKind, FieldError, ServiceError
from .models import Pagination, Task, TaskStatus, User
from .security import BearerAuth
from .tasks import TaskQuery, TaskService
from .tokens import TokenService

logger = logging.getLogger("taskmanager.api")

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        stripped = value.strip()
        if not _EMAIL_PATTERN.match(stripped):
            raise ValueError("Invalid email address")
        return stripped


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip()


class RefreshRequest(BaseModel):
    refreshToken: str = Field(..., min_length=1)


class CreateTaskRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None

    @field_validator("description", "status")
    @classmethod
    def _reject_null(cls, value: object) -> object:
        if value is None:
            raise ValueError("must not be null")
        return value


class UpdateTaskRequest(BaseModel):
    """Fields left out are unchanged; an explicit null is rejected."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None

    @field_validator("title", "description", "status")
    @classmethod
    def _reject_null(cls, value: object) -> object:
        if value is None:
            raise ValueError("must not be null")
        return value


class UserPayload(BaseModel):
    id: str
    email: str
    createdAt: datetime


class TaskPayload(BaseModel):
    id: str
    title: str
    description: Optional[str]
    status: TaskStatus
    userId: str
    createdAt: datetime
    updatedAt: datetime


class PaginationPayload(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class AuthPayload(BaseModel):
    user: UserPayload
    accessToken: str
    refreshToken: str


class TokenPairPayload(BaseModel):
    accessToken: str
    refreshToken: str


class Envelope(BaseModel):
    success: bool = True


class MessageResponse(Envelope):
    message: str


class AuthResponse(MessageResponse):
    data: AuthPayload


class TokenPairResponse(MessageResponse):
    data: TokenPairPayload


class UserResponse(Envelope):
    data: UserPayload


class TaskResponse(Envelope):
    data: TaskPayload


class TaskChangeResponse(MessageResponse):
    data: TaskPayload


class TaskListResponse(Envelope):
    data: List[TaskPayload]
    pagination: PaginationPayload


def user_to_payload(user: User) -> UserPayload:
    return UserPayload(id=user.id, email=user.email, createdAt=user.created_at)


def task_to_payload(task: Task) -> TaskPayload:
    return TaskPayload(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        userId=task.user_id,
        createdAt=task.created_at,
        updatedAt=task.updated_at,
    )


def pagination_to_payload(pagination: Pagination) -> PaginationPayload:
    return PaginationPayload(
        page=pagination.page,
        limit=pagination.limit,
        total=pagination.total,
        totalPages=pagination.total_pages,
    )


def _error_response(
    status_code: int,
    message: str,
    details: Optional[List[FieldError]] = None,
) -> JSONResponse:
    content: Dict[str, object] = {"success": False, "error": message}
    if details:
        content["details"] = [{"field": item.field, "message": item.message} for item in details]
    return JSONResponse(status_code=status_code, content=content)


def _validation_details(exc: RequestValidationError) -> List[FieldError]:
    details: List[FieldError] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.append(FieldError(field=".".join(location), message=str(error.get("msg", "Invalid value"))))
    return details


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    token_service: TokenService | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    if settings is None:
        settings = Settings()

    if database is None:
        database = Database(settings.database_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if token_service is None:
        token_service = TokenService.from_settings(settings)

    auth_service = AuthService(database, token_service)
    task_service = TaskService(database)
    current_user = BearerAuth(token_service)

    app = FastAPI(
        title="Task Manager",
        description="Personal task tracking with JWT authentication",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.database = database

    def get_auth_service() -> AuthService:
        return auth_service

    def get_task_service() -> TaskService:
        return task_service

    @app.get("/health")
    def healthcheck() -> Dict[str, str]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    auth_router = APIRouter(prefix="/auth")

    @auth_router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
    def register(payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)) -> AuthResponse:
        session = auth.register(payload.email, payload.password)
        return AuthResponse(
            message="User registered successfully",
            data=AuthPayload(
                user=user_to_payload(session.user),
                accessToken=session.tokens.access_token,
                refreshToken=session.tokens.refresh_token,
            ),
        )

    @auth_router.post("/login", response_model=AuthResponse)
    def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)) -> AuthResponse:
        session = auth.login(payload.email, payload.password)
        return AuthResponse(
            message="Login successful",
            data=AuthPayload(
                user=user_to_payload(session.user),
                accessToken=session.tokens.access_token,
                refreshToken=session.tokens.refresh_token,
            ),
        )

    @auth_router.post("/refresh", response_model=TokenPairResponse)
    def refresh(payload: RefreshRequest, auth: AuthService = Depends(get_auth_service)) -> TokenPairResponse:
        tokens = auth.refresh(payload.refreshToken)
        return TokenPairResponse(
            message="Token refreshed successfully",
            data=TokenPairPayload(accessToken=tokens.access_token, refreshToken=tokens.refresh_token),
        )

    @auth_router.post("/logout", response_model=MessageResponse)
    def logout(
        user_id: str = Depends(current_user),
        auth: AuthService = Depends(get_auth_service),
    ) -> MessageResponse:
        auth.logout(user_id)
        return MessageResponse(message="Logged out successfully")

    @auth_router.get("/me", response_model=UserResponse)
    def read_current_user(
        user_id: str = Depends(current_user),
        auth: AuthService = Depends(get_auth_service),
    ) -> UserResponse:
        return UserResponse(data=user_to_payload(auth.get_user_by_id(user_id)))

    tasks_router = APIRouter(prefix="/tasks")

    @tasks_router.get("", response_model=TaskListResponse)
    def list_tasks(
        page: int = Query(default=1),
        limit: int = Query(default=10, ge=1, le=100),
        task_status: Optional[TaskStatus] = Query(default=None, alias="status"),
        search: Optional[str] = Query(default=None, max_length=255),
        user_id: str = Depends(current_user),
        tasks: TaskService = Depends(get_task_service),
    ) -> TaskListResponse:
        result = tasks.list_tasks(
            user_id,
            TaskQuery(page=page, limit=limit, status=task_status, search=search),
        )
        return TaskListResponse(
            data=[task_to_payload(task) for task in result.tasks],
            pagination=pagination_to_payload(result.pagination),
        )

    @tasks_router.post("", response_model=TaskChangeResponse, status_code=status.HTTP_201_CREATED)
    def create_task(
        payload: CreateTaskRequest,
        user_id: str = Depends(current_user),
        tasks: TaskService = Depends(get_task_service),
    ) -> TaskChangeResponse:
        task = tasks.create_task(
            user_id,
            payload.title,
            description=payload.description,
            status=payload.status,
        )
        logger.info("User %s created task %s", user_id, task.id)
        return TaskChangeResponse(message="Task created successfully", data=task_to_payload(task))

    @tasks_router.get("/{task_id}", response_model=TaskResponse)
    def read_task(
        task_id: str,
        user_id: str = Depends(current_user),
        tasks: TaskService = Depends(get_task_service),
    ) -> TaskResponse:
        return TaskResponse(data=task_to_payload(tasks.get_task(user_id, task_id)))

    @tasks_router.patch("/{task_id}", response_model=TaskChangeResponse)
    def update_task(
        task_id: str,
        payload: UpdateTaskRequest,
        user_id: str = Depends(current_user),
        tasks: TaskService = Depends(get_task_service),
    ) -> TaskChangeResponse:
        updates = payload.model_dump(exclude_unset=True)
        task = tasks.update_task(user_id, task_id, **updates)
        return TaskChangeResponse(message="Task updated successfully", data=task_to_payload(task))

    @tasks_router.patch("/{task_id}/toggle", response_model=TaskChangeResponse)
    def toggle_task(
        task_id: str,
        user_id: str = Depends(current_user),
        tasks: TaskService = Depends(get_task_service),
    ) -> TaskChangeResponse:
        task = tasks.toggle_status(user_id, task_id)
        return TaskChangeResponse(message="Task status toggled successfully", data=task_to_payload(task))

    @tasks_router.delete("/{task_id}", response_model=MessageResponse)
    def delete_task(
        task_id: str,
        user_id: str = Depends(current_user),
        tasks: TaskService = Depends(get_task_service),
    ) -> MessageResponse:
        tasks.delete_task(user_id, task_id)
        logger.info("User %s deleted task %s", user_id, task_id)
        return MessageResponse(message="Task deleted successfully")

    app.include_router(auth_router)
    app.include_router(tasks_router)

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return _error_response(_STATUS_BY_KIND[exc.kind], exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, "Validation error", _validation_details(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return app


__all__ = ["create_app", "task_to_payload", "user_to_payload"]
