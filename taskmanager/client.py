"""HTTP client for the task manager API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger("taskmanager.client")


class ClientError(Exception):
    """Raised when the API answers with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return default


class TaskManagerClient:
    """Keep an access/refresh token pair and call the API on the user's behalf.

    An authenticated call that comes back 401 triggers one refresh attempt
    followed by a single retry. When the refresh is rejected too, the stored
    tokens are discarded and :class:`ClientError` is raised so the caller can
    prompt for a new login.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = 10.0,
        http: httpx.Client | None = None,
    ) -> None:
        if http is None:
            http = httpx.Client(base_url=_normalize_base_url(base_url), timeout=timeout)
        self._http = http
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None

    def __enter__(self) -> "TaskManagerClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def register(self, email: str, password: str) -> Dict[str, Any]:
        payload = self._request(
            "POST",
            "/auth/register",
            json={"email": email, "password": password},
            authenticated=False,
        )
        return self._store_session(payload["data"])

    def login(self, email: str, password: str) -> Dict[str, Any]:
        payload = self._request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
            authenticated=False,
        )
        return self._store_session(payload["data"])

    def logout(self) -> None:
        try:
            if self.access_token is not None:
                self._request("POST", "/auth/logout")
        except ClientError as exc:
            logger.debug("Ignoring logout failure: %s", exc.message)
        finally:
            self._clear_tokens()

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")["data"]

    def refresh(self) -> bool:
        """Exchange the refresh token for a new pair; ``False`` when rejected."""

        if not self.refresh_token:
            return False
        response = self._http.post("/auth/refresh", json={"refreshToken": self.refresh_token})
        if response.status_code != 200:
            return False
        data = response.json()["data"]
        self.access_token = data["accessToken"]
        self.refresh_token = data["refreshToken"]
        return True

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def list_tasks(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        if search:
            params["search"] = search
        payload = self._request("GET", "/tasks", params=params)
        return {"tasks": payload["data"], "pagination": payload["pagination"]}

    def create_task(
        self,
        title: str,
        *,
        description: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"title": title}
        if description is not None:
            body["description"] = description
        if status is not None:
            body["status"] = status
        return self._request("POST", "/tasks", json=body)["data"]

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/tasks/{task_id}")["data"]

    def update_task(self, task_id: str, **fields: Any) -> Dict[str, Any]:
        return self._request("PATCH", f"/tasks/{task_id}", json=fields)["data"]

    def toggle_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("PATCH", f"/tasks/{task_id}/toggle")["data"]

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _store_session(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.access_token = data["accessToken"]
        self.refresh_token = data["refreshToken"]
        return data["user"]

    def _clear_tokens(self) -> None:
        self.access_token = None
        self.refresh_token = None

    def _send(self, method: str, path: str, *, authenticated: bool, **kwargs: Any) -> httpx.Response:
        headers: Dict[str, str] = {}
        if authenticated and self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            return self._http.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as exc:  # pragma: no cover - network failure
            raise ClientError(f"Failed to contact task manager API: {exc}") from exc

    def _request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        response = self._send(method, path, authenticated=authenticated, **kwargs)

        if response.status_code == 401 and authenticated and self.refresh_token:
            if self.refresh():
                response = self._send(method, path, authenticated=authenticated, **kwargs)
            else:
                self._clear_tokens()
                raise ClientError("Session expired; log in again", status_code=401)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            default = f"Task manager API request failed with status {response.status_code}"
            raise ClientError(_extract_error_message(payload, default), status_code=response.status_code)

        if not isinstance(payload, dict):
            raise ClientError("Task manager API returned an unexpected response payload")
        return payload


__all__ = ["ClientError", "TaskManagerClient"]
