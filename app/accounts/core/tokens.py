from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict
from uuid import UUID, uuid4

from jose import JWTError, jwt

from app.accounts.core.config import Settings

ACCESS_COOKIE_NAME = "accessToken"
REFRESH_COOKIE_NAME = "refreshToken"

ACCESS_TYPE = "access"
REFRESH_TYPE = "refresh"


class InvalidTokenError(Exception):
    """Bad signature, wrong secret, wrong token type or malformed claims."""


class ExpiredTokenError(InvalidTokenError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    user_id: UUID
    token_type: str
    jti: str
    issued_at: datetime
    expires_at: datetime
    extra: Dict[str, Any]


# ---- 공통 ----
def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _make_jwt(payload: Dict[str, Any], secret: str, algorithm: str, iat: datetime, exp: datetime) -> str:
    to_encode = payload.copy()
    to_encode["iat"] = int(iat.timestamp())
    to_encode["exp"] = int(exp.timestamp())
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def _to_claims(payload: Dict[str, Any], expected_type: str) -> TokenClaims:
    if payload.get("typ") != expected_type:
        raise InvalidTokenError("Invalid token type")
    for k in ("sub", "jti", "iat", "exp"):
        if k not in payload:
            raise InvalidTokenError(f"Missing {k}")
    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError as exc:
        raise InvalidTokenError("Invalid subject") from exc
    extra = {
        k: v for k, v in payload.items() if k not in ("sub", "typ", "jti", "iat", "exp")
    }
    return TokenClaims(
        user_id=user_id,
        token_type=expected_type,
        jti=str(payload["jti"]),
        issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        extra=extra,
    )


class TokenService:
    """
    Signs and verifies access/refresh JWTs.
    Each token kind has its own secret, so one leaked key cannot forge the other kind.
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> None:
        self.algorithm = settings.jwt_algorithm
        self.access_secret = settings.access_token_secret
        self.refresh_secret = settings.refresh_token_secret
        self.access_ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_ttl = timedelta(days=settings.refresh_token_expire_days)
        self.clock = clock

    def _issue(self, sub: UUID, token_type: str, secret: str, ttl: timedelta,
               extra: Dict[str, Any] | None = None) -> str:
        payload: Dict[str, Any] = {}
        if extra:
            payload.update(extra)
        payload.update({"sub": str(sub), "typ": token_type, "jti": uuid4().hex})
        now = self.clock()
        return _make_jwt(payload, secret, self.algorithm, now, now + ttl)

    # ---- Access Token ----
    def issue_access_token(self, sub: UUID, extra: Dict[str, Any] | None = None) -> str:
        return self._issue(sub, ACCESS_TYPE, self.access_secret, self.access_ttl, extra)

    def verify_access_token(self, token: str) -> TokenClaims:
        return self.verify(token, self.access_secret, ACCESS_TYPE)

    # ---- Refresh Token (회전 전제) ----
    def issue_refresh_token(self, sub: UUID) -> str:
        return self._issue(sub, REFRESH_TYPE, self.refresh_secret, self.refresh_ttl)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        return self.verify(token, self.refresh_secret, REFRESH_TYPE)

    def verify(self, token: str, secret: str, expected_type: str) -> TokenClaims:
        if not token:
            raise InvalidTokenError("Token missing")
        # exp is checked against our own clock so an injected clock stays consistent
        try:
            payload = jwt.decode(
                token, secret, algorithms=[self.algorithm], options={"verify_exp": False}
            )
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc
        claims = _to_claims(payload, expected_type)
        if claims.expires_at <= self.clock():
            raise ExpiredTokenError("Token expired")
        return claims
