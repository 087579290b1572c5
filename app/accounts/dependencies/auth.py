from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from app.accounts.core.tokens import ACCESS_COOKIE_NAME, TokenService
from app.accounts.dependencies.services import get_token_service, get_user_store
from app.accounts.schemas.user import UserPublic
from app.accounts.services.auth_service import resolve_user
from app.accounts.services.user_store import UserStore

oauth2_optional_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/user/login", auto_error=False
)


def _extract_jwt(request: Request, token: str | None) -> str | None:
    # 명시적인 Authorization: Bearer 우선, 없으면 쿠키
    return token or request.cookies.get(ACCESS_COOKIE_NAME)


def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_optional_scheme),
    tokens: TokenService = Depends(get_token_service),
    store: UserStore = Depends(get_user_store),
) -> UserPublic:
    """Strict auth dependency; raises UnauthenticatedError when no/invalid token."""
    return resolve_user(_extract_jwt(request, token), tokens, store)
