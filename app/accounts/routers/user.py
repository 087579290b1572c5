from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from app.accounts.core.config import Settings
from app.accounts.core.responses import ApiResponse
from app.accounts.core.tokens import ACCESS_COOKIE_NAME, REFRESH_COOKIE_NAME
from app.accounts.dependencies.auth import get_current_user
from app.accounts.dependencies.services import (
    get_channel_service,
    get_image_host,
    get_session_manager,
    get_settings,
    get_user_store,
)
from app.accounts.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResult,
    RefreshTokenRequest,
    RegisterForm,
    SubscriptionState,
    TokenPair,
    UpdateAccountRequest,
    UserPublic,
    parse_payload,
)
from app.accounts.services import account_service
from app.accounts.services.auth_service import SessionManager, SessionTokens
from app.accounts.services.channel_service import ChannelService
from app.accounts.services.image_host import ImageHost, save_upload_to_temp
from app.accounts.services.user_store import UserStore

user_router = APIRouter(prefix="/api/v1/user", tags=["users"])


# ──────────────────────────────────────────────────────────────────────────────
# 쿠키 헬퍼 (쿠키 쓰기는 여기서만)
# ──────────────────────────────────────────────────────────────────────────────
def _apply_auth_cookies(response: Response, tokens: SessionTokens) -> None:
    opts = tokens.cookie_options
    for key, value, max_age in (
        (ACCESS_COOKIE_NAME, tokens.access_token, tokens.access_max_age),
        (REFRESH_COOKIE_NAME, tokens.refresh_token, tokens.refresh_max_age),
    ):
        response.set_cookie(
            key=key,
            value=value,
            httponly=opts.httponly,
            secure=opts.secure,
            samesite=opts.samesite,
            max_age=max_age,
            path=opts.path,
        )


def _clear_auth_cookies(response: Response, settings: Settings) -> None:
    for key in (ACCESS_COOKIE_NAME, REFRESH_COOKIE_NAME):
        response.delete_cookie(
            key=key,
            path="/",
            secure=settings.cookie_secure,
            httponly=True,
            samesite=settings.cookie_samesite,
        )


def _discard(*paths: Optional[Path]) -> None:
    for p in paths:
        if p is not None:
            p.unlink(missing_ok=True)


# ──────────────────────────────────────────────────────────────────────────────
# 가입 / 로그인 / 로그아웃 / 토큰 갱신
# ──────────────────────────────────────────────────────────────────────────────
@user_router.post("/register", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def register(
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    full_name: Optional[str] = Form(None, alias="fullName"),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    store: UserStore = Depends(get_user_store),
    image_host: ImageHost = Depends(get_image_host),
    settings: Settings = Depends(get_settings),
):
    form = parse_payload(
        RegisterForm,
        {"email": email, "username": username, "fullName": full_name, "password": password},
    )
    avatar_path = await run_in_threadpool(save_upload_to_temp, avatar, settings.upload_temp_dir)
    cover_path = await run_in_threadpool(save_upload_to_temp, cover_image, settings.upload_temp_dir)
    try:
        user = await account_service.register_user(store, image_host, form, avatar_path, cover_path)
    finally:
        # 업로드 전에 실패한 경우 남은 임시 파일 정리
        _discard(avatar_path, cover_path)
    # HTTP 상태는 201, 봉투 statusCode는 200
    return ApiResponse.ok(user, "User registered successfully")


@user_router.post("/login", response_model=ApiResponse)
def login(
    body: LoginRequest,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    result = sessions.login(body)
    _apply_auth_cookies(response, result)
    data = LoginResult(
        user=result.user,
        access_token=result.access_token,
        refresh_token=result.refresh_token,
    )
    return ApiResponse.ok(data, "User logged in successfully")


@user_router.post("/logout", response_model=ApiResponse)
def logout(
    response: Response,
    current_user: UserPublic = Depends(get_current_user),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    sessions.logout(current_user.id)
    _clear_auth_cookies(response, settings)
    return ApiResponse.ok({}, "User logged out")


@user_router.post("/refresh-token", response_model=ApiResponse)
def refresh_access_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = Body(None),
    sessions: SessionManager = Depends(get_session_manager),
):
    # 본문에 명시된 RT가 있으면 우선, 없으면 쿠키
    incoming = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE_NAME)
    result = sessions.renew(incoming)
    _apply_auth_cookies(response, result)
    data = TokenPair(access_token=result.access_token, refresh_token=result.refresh_token)
    return ApiResponse.ok(data, "Access token refreshed")


# ──────────────────────────────────────────────────────────────────────────────
# 계정 관리
# ──────────────────────────────────────────────────────────────────────────────
@user_router.post("/change-password", response_model=ApiResponse)
def change_password(
    body: ChangePasswordRequest,
    current_user: UserPublic = Depends(get_current_user),
    sessions: SessionManager = Depends(get_session_manager),
):
    sessions.change_password(current_user.id, body.old_password, body.new_password)
    return ApiResponse.ok({}, "Password changed successfully")


@user_router.get("/current-user", response_model=ApiResponse)
def current_user(current_user: UserPublic = Depends(get_current_user)):
    return ApiResponse.ok(current_user, "Current user fetched successfully")


@user_router.patch("/update-account", response_model=ApiResponse)
def update_account(
    body: UpdateAccountRequest,
    current_user: UserPublic = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
):
    user = account_service.update_account_details(store, current_user.id, body)
    return ApiResponse.ok(user, "Account details updated successfully")


@user_router.patch("/avatar", response_model=ApiResponse)
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: UserPublic = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
    image_host: ImageHost = Depends(get_image_host),
    settings: Settings = Depends(get_settings),
):
    path = await run_in_threadpool(save_upload_to_temp, avatar, settings.upload_temp_dir)
    try:
        user = await account_service.update_avatar(store, image_host, current_user.id, path)
    finally:
        _discard(path)
    return ApiResponse.ok(user, "Avatar image updated successfully")


@user_router.patch("/cover-image", response_model=ApiResponse)
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: UserPublic = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
    image_host: ImageHost = Depends(get_image_host),
    settings: Settings = Depends(get_settings),
):
    path = await run_in_threadpool(save_upload_to_temp, cover_image, settings.upload_temp_dir)
    try:
        user = await account_service.update_cover_image(store, image_host, current_user.id, path)
    finally:
        _discard(path)
    return ApiResponse.ok(user, "Cover image updated successfully")


# ──────────────────────────────────────────────────────────────────────────────
# 채널 프로필
# ──────────────────────────────────────────────────────────────────────────────
@user_router.get("/c/{username}", response_model=ApiResponse)
def channel_profile(
    username: str,
    current_user: UserPublic = Depends(get_current_user),
    channels: ChannelService = Depends(get_channel_service),
):
    profile = channels.profile(username, viewer_id=current_user.id)
    return ApiResponse.ok(profile, "User channel fetched successfully")


@user_router.post("/c/{username}/subscription", response_model=ApiResponse)
def toggle_subscription(
    username: str,
    current_user: UserPublic = Depends(get_current_user),
    channels: ChannelService = Depends(get_channel_service),
):
    subscribed = channels.toggle_subscription(username, current_user.id)
    data = SubscriptionState(channel=username.strip().lower(), subscribed=subscribed)
    return ApiResponse.ok(data, "Subscribed" if subscribed else "Unsubscribed")
