"""Bearer access-token authentication for the task API."""
from __future__ import annotations

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import Unauthorized
from .tokens import TokenService


class BearerAuth:
    """Resolve ``Authorization: Bearer <access token>`` to the caller's user id."""

    def __init__(self, tokens: TokenService) -> None:
        self._tokens = tokens
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> str:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise Unauthorized("Access token is required")

        user_id = self._tokens.verify_access_token(credentials.credentials)
        if user_id is None:
            raise Unauthorized("Invalid or expired access token")
        return user_id


__all__ = ["BearerAuth"]
