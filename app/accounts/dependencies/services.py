from typing import Iterator

from fastapi import Depends, Request
from sqlmodel import Session

from app.accounts.core.config import Settings
from app.accounts.core.tokens import TokenService
from app.accounts.services.auth_service import SessionManager
from app.accounts.services.channel_service import ChannelService
from app.accounts.services.image_host import ImageHost
from app.accounts.services.user_store import UserStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session(request: Request) -> Iterator[Session]:
    """요청당 세션 1개. Database는 lifespan에서 app.state에 올라감."""
    yield from request.app.state.db.session()


def get_user_store(db: Session = Depends(get_session)) -> UserStore:
    return UserStore(db)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_image_host(request: Request) -> ImageHost:
    return request.app.state.image_host


def get_session_manager(
    store: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
) -> SessionManager:
    return SessionManager(store, tokens, settings)


def get_channel_service(db: Session = Depends(get_session)) -> ChannelService:
    return ChannelService(db)
