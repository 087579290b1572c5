from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from jose import JOSEError
from sqlalchemy.exc import SQLAlchemyError

from app.accounts.core.config import Settings
from app.accounts.core.errors import (
    InternalError,
    NotFoundError,
    UnauthenticatedError,
    UnauthorizedError,
)
from app.accounts.core.security import hash_password, verify_password
from app.accounts.core.tokens import InvalidTokenError, TokenService
from app.accounts.models.user import User
from app.accounts.schemas.user import LoginRequest, UserPublic
from app.accounts.services.user_store import UserStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CookieOptions:
    httponly: bool = True
    secure: bool = True
    samesite: str = "lax"
    path: str = "/"


@dataclass(frozen=True)
class SessionTokens:
    """
    Result of login / renewal. Cookie writing is left to the transport,
    which reads cookie_options and the two max-age values from here.
    """
    access_token: str
    refresh_token: str
    cookie_options: CookieOptions
    access_max_age: int
    refresh_max_age: int
    user: Optional[UserPublic] = None


class SessionManager:
    """
    로그인 / 로그아웃 / RT 회전 / 비밀번호 변경.
    Login:   verify password -> issue pair -> persist RT -> hand back both tokens
    Renewal: verify RT -> compare with stored RT -> issue pair -> persist new RT
    """

    def __init__(self, store: UserStore, tokens: TokenService, settings: Settings) -> None:
        self.store = store
        self.tokens = tokens
        self.cookie_options = CookieOptions(
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )
        self.access_max_age = settings.access_token_max_age
        self.refresh_max_age = settings.refresh_token_max_age

    def _start_session(self, user: User) -> SessionTokens:
        try:
            access_token = self.tokens.issue_access_token(
                user.id,
                extra={"email": user.email, "username": user.username, "full_name": user.full_name},
            )
            refresh_token = self.tokens.issue_refresh_token(user.id)
        except JOSEError as exc:
            log.exception("token generation failed for user=%s", user.id)
            raise InternalError(
                "Something went wrong while generating refresh and access token"
            ) from exc

        try:
            persisted = self.store.update_refresh_token(user.id, refresh_token)
        except SQLAlchemyError as exc:
            log.exception("refresh token persist failed for user=%s", user.id)
            raise InternalError("Could not persist refresh token") from exc
        if not persisted:
            raise InternalError("Could not persist refresh token")

        return SessionTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            cookie_options=self.cookie_options,
            access_max_age=self.access_max_age,
            refresh_max_age=self.refresh_max_age,
            user=UserPublic.model_validate(user),
        )

    def login(self, credentials: LoginRequest) -> SessionTokens:
        user = self.store.find_by_email_or_username(
            email=credentials.email, username=credentials.username
        )
        if user is None:
            raise NotFoundError("User does not exist")
        if not verify_password(credentials.password, user.password_hash):
            log.info("login rejected: bad password user=%s", user.id)
            raise UnauthorizedError("Invalid user credentials")

        session = self._start_session(user)
        log.info("login ok user=%s", user.id)
        return session

    def logout(self, user_id: UUID) -> None:
        try:
            self.store.update_refresh_token(user_id, None)
        except SQLAlchemyError as exc:
            raise InternalError("Could not clear refresh token") from exc
        log.info("logout user=%s", user_id)

    def renew(self, incoming_refresh_token: Optional[str]) -> SessionTokens:
        if not incoming_refresh_token:
            raise UnauthorizedError("Unauthorized request")

        try:
            claims = self.tokens.verify_refresh_token(incoming_refresh_token)
        except InvalidTokenError as exc:
            log.info("renewal rejected: %s", exc)
            raise UnauthorizedError("Invalid refresh token") from exc

        user = self.store.find_by_id(claims.user_id)
        if user is None:
            raise UnauthorizedError("Invalid refresh token")

        # 저장된 RT와 문자 그대로 같아야만 사용 가능 (회전된 이전 RT는 여기서 탈락)
        stored = user.refresh_token
        if not stored or not hmac.compare_digest(
            stored.encode("utf-8"), incoming_refresh_token.encode("utf-8")
        ):
            log.warning("renewal rejected: stale refresh token user=%s", user.id)
            raise UnauthorizedError("Refresh token is expired or used")

        return self._start_session(user)

    def change_password(self, user_id: UUID, old_password: str, new_password: str) -> None:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User does not exist")
        if not verify_password(old_password, user.password_hash):
            raise UnauthorizedError("Invalid old password")
        try:
            self.store.update_password_hash(user_id, hash_password(new_password))
        except SQLAlchemyError as exc:
            raise InternalError("Could not update password") from exc
        log.info("password changed user=%s", user_id)


def resolve_user(token: Optional[str], tokens: TokenService, store: UserStore) -> UserPublic:
    """Authentication gate: access token -> live user, without credential fields."""
    if not token:
        raise UnauthenticatedError("Unauthorized request")
    try:
        claims = tokens.verify_access_token(token)
    except InvalidTokenError as exc:
        raise UnauthenticatedError("Invalid access token") from exc

    user = store.find_by_id(claims.user_id)
    if user is None:
        raise UnauthenticatedError("Invalid access token")
    return UserPublic.model_validate(user)
