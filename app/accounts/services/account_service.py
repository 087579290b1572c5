"""
Registration and profile maintenance.

Upload steps are awaited on the image host; store calls are blocking
SQLModel work and run in the threadpool.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
from uuid import UUID

from starlette.concurrency import run_in_threadpool

from app.accounts.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
)
from app.accounts.core.security import hash_password
from app.accounts.schemas.user import RegisterForm, UpdateAccountRequest, UserPublic
from app.accounts.services.image_host import ImageHost
from app.accounts.services.user_store import UserStore

log = logging.getLogger(__name__)


async def register_user(
    store: UserStore,
    image_host: ImageHost,
    form: RegisterForm,
    avatar_path: Optional[Path],
    cover_image_path: Optional[Path] = None,
) -> UserPublic:
    existing = await run_in_threadpool(
        store.find_by_email_or_username, form.email, form.username
    )
    if existing is not None:
        raise ConflictError("User already exists")

    if avatar_path is None:
        raise ValidationError("Avatar file is required")

    avatar_url = await image_host.upload(avatar_path)
    if not avatar_url:
        raise UpstreamFailureError("Avatar upload failed")

    cover_url = ""
    if cover_image_path is not None:
        # 커버 이미지는 선택 항목: 업로드 실패해도 가입은 진행
        cover_url = await image_host.upload(cover_image_path) or ""
        if not cover_url:
            log.warning("cover image upload failed for username=%s", form.username)

    user = await run_in_threadpool(
        lambda: store.create(
            email=form.email,
            username=form.username,
            full_name=form.full_name,
            password_hash=hash_password(form.password),
            avatar=avatar_url,
            cover_image=cover_url,
        )
    )

    created = await run_in_threadpool(store.find_by_id, user.id)
    if created is None:
        raise InternalError("Failed to create user")
    return UserPublic.model_validate(created)


def update_account_details(store: UserStore, user_id: UUID, payload: UpdateAccountRequest) -> UserPublic:
    other = store.find_by_email_or_username(email=payload.email)
    if other is not None and other.id != user_id:
        raise ConflictError("Email already in use")

    user = store.update_fields(user_id, {"full_name": payload.full_name, "email": payload.email})
    if user is None:
        raise NotFoundError("User does not exist")
    return UserPublic.model_validate(user)


async def _replace_image(
    store: UserStore, image_host: ImageHost, user_id: UUID, field: str, path: Optional[Path], label: str
) -> UserPublic:
    if path is None:
        raise ValidationError(f"{label} file is missing")

    url = await image_host.upload(path)
    if not url:
        raise UpstreamFailureError(f"Error while uploading {label.lower()}")

    user = await run_in_threadpool(store.update_fields, user_id, {field: url})
    if user is None:
        raise NotFoundError("User does not exist")
    return UserPublic.model_validate(user)


async def update_avatar(store: UserStore, image_host: ImageHost, user_id: UUID, path: Optional[Path]) -> UserPublic:
    return await _replace_image(store, image_host, user_id, "avatar", path, "Avatar")


async def update_cover_image(
    store: UserStore, image_host: ImageHost, user_id: UUID, path: Optional[Path]
) -> UserPublic:
    return await _replace_image(store, image_host, user_id, "cover_image", path, "Cover image")
