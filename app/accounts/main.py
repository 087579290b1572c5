# app/accounts/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.accounts.core.config import Settings, get_settings
from app.accounts.core.errors import register_exception_handlers
from app.accounts.core.logging_config import setup_logging
from app.accounts.core.tokens import TokenService
from app.accounts.routers import health
from app.accounts.routers.user import user_router
from app.accounts.services.image_host import CloudinaryImageHost
from app.db.session import Database

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the API. Settings and the Database may be injected (tests);
    otherwise they come from the environment. The DB connection is checked at
    startup, so an unreachable database fails the boot instead of the first request.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database.from_settings(settings)
        db.connect()
        if settings.auto_create_tables:
            db.create_all_tables()
        app.state.db = db
        logger.info("accounts API started (env=%s)", settings.app_env)
        try:
            yield
        finally:
            db.dispose()

    app = FastAPI(
        title="Accounts API",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tokens = TokenService(settings)
    app.state.image_host = CloudinaryImageHost.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # 라우터 등록
    app.include_router(health.router)
    app.include_router(user_router)
    return app
