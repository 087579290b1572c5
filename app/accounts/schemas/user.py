from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Type, TypeVar
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator, model_validator

from app.accounts.core.errors import ValidationError
from app.accounts.core.responses import CamelModel

M = TypeVar("M", bound=CamelModel)


def _required(v: Optional[str]) -> str:
    if v is None or not str(v).strip():
        raise ValueError("must not be blank")
    return str(v).strip()


def _normalized(v: Optional[str]) -> str:
    return _required(v).lower()


def parse_payload(model: Type[M], data: dict[str, Any]) -> M:
    """Validate raw (form) data into ``model``; failures become a 400 ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError("All fields are required", errors) from exc


# ── 입력 스키마 ─────────────────────────────────────
class RegisterForm(CamelModel):
    email: str
    username: str
    full_name: str
    password: str

    @field_validator("email", "username", mode="before")
    @classmethod
    def normalize_identity(cls, v: Optional[str]) -> str:
        return _normalized(v)

    @field_validator("full_name", mode="before")
    @classmethod
    def check_full_name(cls, v: Optional[str]) -> str:
        return _required(v)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v: Optional[str]) -> str:
        _required(v)
        return str(v)


class LoginRequest(CamelModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: str

    @field_validator("email", "username", mode="before")
    @classmethod
    def normalize_identity(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return str(v).strip().lower()

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v: Optional[str]) -> str:
        _required(v)
        return str(v)

    @model_validator(mode="after")
    def require_identity(self) -> "LoginRequest":
        if not self.email and not self.username:
            raise ValueError("email or username is required")
        return self


class ChangePasswordRequest(CamelModel):
    old_password: str
    new_password: str

    @field_validator("old_password", "new_password", mode="before")
    @classmethod
    def check_not_blank(cls, v: Optional[str]) -> str:
        _required(v)
        return str(v)


class UpdateAccountRequest(CamelModel):
    full_name: str
    email: str

    @field_validator("full_name", mode="before")
    @classmethod
    def check_full_name(cls, v: Optional[str]) -> str:
        return _required(v)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> str:
        return _normalized(v)


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = None


# ── 출력 스키마 (password_hash / refresh_token 제외) ─────
class UserPublic(CamelModel):
    id: UUID
    email: str
    username: str
    full_name: str
    avatar: str
    cover_image: str = ""
    created_at: datetime
    updated_at: datetime


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class LoginResult(TokenPair):
    user: UserPublic


class ChannelProfile(CamelModel):
    id: UUID
    username: str
    full_name: str
    email: str
    avatar: str
    cover_image: str = ""
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class SubscriptionState(CamelModel):
    channel: str
    subscribed: bool
