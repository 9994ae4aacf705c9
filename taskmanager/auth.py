"""Registration, login and refresh-token rotation."""
from __future__ import annotations

import logging

from .database import Database, DuplicateEmailError
from .errors import Conflict, NotFound, Unauthorized
from .models import AuthSession, TokenPair, User
from .tokens import TokenService

logger = logging.getLogger("taskmanager.auth")

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Compose the credential store with the token service.

    Each user holds at most one refresh token. Issuing a new one overwrites
    the stored value, which invalidates every earlier refresh token.
    """

    def __init__(self, database: Database, tokens: TokenService) -> None:
        self._database = database
        self._tokens = tokens

    def register(self, email: str, password: str) -> AuthSession:
        if self._database.get_user_by_email(email) is not None:
            raise Conflict("Email already registered")

        try:
            user = self._database.create_user(email, password)
        except DuplicateEmailError as exc:
            raise Conflict("Email already registered") from exc

        tokens = self._issue_pair(user.id)
        self._database.set_refresh_token(user.id, tokens.refresh_token)
        logger.info("Registered user %s", user.id)
        return AuthSession(user=user, tokens=tokens)

    def login(self, email: str, password: str) -> AuthSession:
        user = self._database.authenticate_user(email, password)
        if user is None:
            logger.info("Rejected login attempt")
            raise Unauthorized(INVALID_CREDENTIALS)

        tokens = self._issue_pair(user.id)
        self._database.set_refresh_token(user.id, tokens.refresh_token)
        logger.info("User %s logged in", user.id)
        return AuthSession(user=user, tokens=tokens)

    def refresh(self, refresh_token: str) -> TokenPair:
        user_id = self._tokens.verify_refresh_token(refresh_token)
        if user_id is None:
            raise Unauthorized("Invalid or expired refresh token")

        tokens = self._issue_pair(user_id)
        if not self._database.replace_refresh_token(user_id, refresh_token, tokens.refresh_token):
            logger.warning("Rejected superseded refresh token for user %s", user_id)
            raise Unauthorized("Invalid refresh token")
        return tokens

    def logout(self, user_id: str) -> None:
        self._database.set_refresh_token(user_id, None)
        logger.info("User %s logged out", user_id)

    def get_user_by_id(self, user_id: str) -> User:
        user = self._database.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _issue_pair(self, user_id: str) -> TokenPair:
        return TokenPair(
            access_token=self._tokens.issue_access_token(user_id),
            refresh_token=self._tokens.issue_refresh_token(user_id),
        )


__all__ = ["AuthService", "INVALID_CREDENTIALS"]
