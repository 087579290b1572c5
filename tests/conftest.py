import sys
from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.accounts.core.config import Settings  # noqa: E402
from app.accounts.core.security import hash_password  # noqa: E402
from app.accounts.core.tokens import TokenService  # noqa: E402
from app.accounts.dependencies.services import get_image_host  # noqa: E402
from app.accounts.main import create_app  # noqa: E402
from app.accounts.services.auth_service import SessionManager  # noqa: E402
from app.accounts.services.user_store import UserStore  # noqa: E402
from app.db.session import Database  # noqa: E402


class FakeImageHost:
    def __init__(self) -> None:
        self.uploaded: list[str] = []
        self.fail_names: set[str] = set()

    async def upload(self, local_path) -> Optional[str]:
        name = Path(local_path).name
        self.uploaded.append(name)
        if any(name.endswith(f) for f in self.fail_names):
            return None
        return f"https://images.test/{name}"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        ACCESS_TOKEN_SECRET="test-access-secret",
        REFRESH_TOKEN_SECRET="test-refresh-secret",
        ACCESS_TOKEN_EXPIRE_MINUTES=15,
        REFRESH_TOKEN_EXPIRE_DAYS=7,
        COOKIE_SECURE=False,
        LOG_LEVEL="WARNING",
        UPLOAD_TEMP_DIR=str(tmp_path / "uploads"),
        AUTO_CREATE_TABLES=True,
    )


@pytest.fixture
def db_session():
    database = Database("sqlite://")
    database.create_all_tables()
    with database.session_scope() as s:
        yield s
    database.dispose()


@pytest.fixture
def store(db_session):
    return UserStore(db_session)


@pytest.fixture
def tokens(settings):
    return TokenService(settings)


@pytest.fixture
def sessions(store, tokens, settings):
    return SessionManager(store, tokens, settings)


@pytest.fixture
def make_user(store):
    def _make(email="a@b.com", username="alice", full_name="Alice A", password="pw123"):
        return store.create(
            email=email,
            username=username,
            full_name=full_name,
            password_hash=hash_password(password),
            avatar="https://images.test/avatar.png",
        )

    return _make


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def client(settings, image_host):
    app = create_app(settings, database=Database("sqlite://"))
    app.dependency_overrides[get_image_host] = lambda: image_host
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    def _register(email="a@b.com", username="Alice", full_name="Alice A", password="pw123",
                  avatar=True, cover=False):
        files = {}
        if avatar:
            files["avatar"] = ("avatar.png", b"\x89PNG avatar", "image/png")
        if cover:
            files["coverImage"] = ("cover.png", b"\x89PNG cover", "image/png")
        data = {"email": email, "username": username, "fullName": full_name, "password": password}
        return client.post("/api/v1/user/register", data=data, files=files or None)

    return _register
