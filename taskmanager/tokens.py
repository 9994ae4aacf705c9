"""Signed access and refresh tokens."""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt

from .config import Settings

_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and verify JWTs that bind a user id.

    Access and refresh tokens are signed with independent secrets so one can
    never be accepted in place of the other. Verification reports ``None`` for
    every failure mode.
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        access_expiry: timedelta = timedelta(minutes=15),
        refresh_expiry: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not access_secret or not refresh_secret:
            raise ValueError("Token secrets must not be empty")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._access_expiry = access_expiry
        self._refresh_expiry = refresh_expiry
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            access_secret=settings.access_secret,
            refresh_secret=settings.refresh_secret,
            access_expiry=settings.access_expiry,
            refresh_expiry=settings.refresh_expiry,
        )

    @property
    def access_expiry(self) -> timedelta:
        return self._access_expiry

    @property
    def refresh_expiry(self) -> timedelta:
        return self._refresh_expiry

    def issue_access_token(self, user_id: str) -> str:
        return self._encode(user_id, self._access_secret, self._access_expiry)

    def issue_refresh_token(self, user_id: str) -> str:
        return self._encode(user_id, self._refresh_secret, self._refresh_expiry)

    def verify_access_token(self, token: str) -> Optional[str]:
        return self._decode(token, self._access_secret)

    def verify_refresh_token(self, token: str) -> Optional[str]:
        return self._decode(token, self._refresh_secret)

    def _encode(self, user_id: str, secret: str, lifetime: timedelta) -> str:
        now = self._clock()
        payload: Dict[str, Any] = {
            "sub": user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + lifetime).timestamp()),
            # Distinguishes tokens issued within the same second.
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    @staticmethod
    def _decode(token: str, secret: str) -> Optional[str]:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.InvalidTokenError:
            return None
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            return None
        return subject


__all__ = ["TokenService"]
