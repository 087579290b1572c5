from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.accounts.dependencies.services import get_image_host
from app.accounts.main import create_app
from app.accounts.routers import user as user_routes
from app.db.session import Database

API = "/api/v1/user"


def _login(client, **body):
    body.setdefault("password", "pw123")
    return client.post(f"{API}/login", json=body)


def test_register_normalizes_and_hides_credentials(register, image_host):
    r = register(email=" A@B.com ", username="Alice", cover=True)

    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["statusCode"] == 200
    user = body["data"]
    assert user["username"] == "alice"
    assert user["email"] == "a@b.com"
    assert user["fullName"] == "Alice A"
    assert user["avatar"].startswith("https://images.test/")
    assert user["coverImage"].startswith("https://images.test/")
    assert "password" not in user and "passwordHash" not in user
    assert "refreshToken" not in user
    assert len(image_host.uploaded) == 2


def test_register_cleans_up_temp_files(register, settings):
    register()

    temp_dir = Path(settings.upload_temp_dir)
    assert not temp_dir.exists() or list(temp_dir.iterdir()) == []


def test_register_requires_all_fields(register):
    r = register(full_name="   ")

    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["data"] is None
    assert any(e["field"] == "fullName" for e in body["errors"])


def test_register_requires_avatar(register):
    r = register(avatar=False)

    assert r.status_code == 400
    assert r.json()["message"] == "Avatar file is required"


def test_register_duplicate_is_conflict(register):
    assert register().status_code == 201

    r = register(email="other@b.com", username="ALICE")

    assert r.status_code == 409
    assert r.json()["message"] == "User already exists"


def test_register_avatar_upload_failure_is_upstream_error(client, register, image_host):
    image_host.fail_names.add("avatar.png")

    r = register()

    assert r.status_code == 502
    assert _login(client, email="a@b.com").status_code == 404


def test_register_tolerates_cover_upload_failure(register, image_host):
    image_host.fail_names.add("cover.png")

    r = register(cover=True)

    assert r.status_code == 201
    assert r.json()["data"]["coverImage"] == ""


def test_login_sets_cookies_and_returns_tokens(client, register):
    register()

    r = _login(client, email="a@b.com")

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["user"]["username"] == "alice"
    assert data["accessToken"] and data["refreshToken"]
    assert client.cookies.get("accessToken") == data["accessToken"]
    assert client.cookies.get("refreshToken") == data["refreshToken"]
    set_cookie = ",".join(r.headers.get_list("set-cookie")).lower()
    assert "httponly" in set_cookie


def test_login_errors(client, register):
    register()

    assert _login(client, email="nobody@b.com").status_code == 404
    assert _login(client, email="a@b.com", password="nope").status_code == 401
    assert _login(client, password="pw123").status_code == 400


def test_full_session_lifecycle(client, register):
    register()
    first = _login(client, email="a@b.com").json()["data"]

    r = client.post(f"{API}/refresh-token", json={"refreshToken": first["refreshToken"]})
    assert r.status_code == 200
    second = r.json()["data"]
    assert second["refreshToken"] != first["refreshToken"]

    client.cookies.clear()
    r = client.post(f"{API}/refresh-token", json={"refreshToken": first["refreshToken"]})
    assert r.status_code == 401
    assert r.json()["success"] is False

    r = client.post(f"{API}/refresh-token", json={"refreshToken": second["refreshToken"]})
    assert r.status_code == 200


def test_refresh_uses_cookie_when_body_is_empty(client, register):
    register()
    _login(client, email="a@b.com")
    old_cookie = client.cookies.get("refreshToken")

    r = client.post(f"{API}/refresh-token")

    assert r.status_code == 200
    assert client.cookies.get("refreshToken") != old_cookie


def test_refresh_without_token_is_unauthorized(client):
    r = client.post(f"{API}/refresh-token")

    assert r.status_code == 401


def test_current_user_via_cookie_and_bearer(client, register):
    register()
    token = _login(client, email="a@b.com").json()["data"]["accessToken"]

    assert client.get(f"{API}/current-user").json()["data"]["username"] == "alice"

    client.cookies.clear()
    r = client.get(f"{API}/current-user", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert "refreshToken" not in r.json()["data"]


def test_protected_routes_require_access_token(client):
    assert client.get(f"{API}/current-user").status_code == 401
    assert client.post(f"{API}/logout").status_code == 401
    r = client.get(f"{API}/current-user", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.headers.get("www-authenticate") == "Bearer"


def test_logout_clears_cookies_and_refresh_token(client, register):
    register()
    refresh = _login(client, email="a@b.com").json()["data"]["refreshToken"]

    r = client.post(f"{API}/logout")

    assert r.status_code == 200
    assert client.cookies.get("accessToken") is None
    assert client.cookies.get("refreshToken") is None
    r = client.post(f"{API}/refresh-token", json={"refreshToken": refresh})
    assert r.status_code == 401


def test_change_password(client, register):
    register()
    _login(client, email="a@b.com")

    r = client.post(f"{API}/change-password", json={"oldPassword": "wrong", "newPassword": "pw456"})
    assert r.status_code == 401

    r = client.post(f"{API}/change-password", json={"oldPassword": "pw123", "newPassword": "pw456"})
    assert r.status_code == 200

    assert _login(client, email="a@b.com").status_code == 401
    assert _login(client, email="a@b.com", password="pw456").status_code == 200


def test_update_account(client, register):
    register()
    register(email="b@b.com", username="bob", full_name="Bob B")
    _login(client, email="a@b.com")

    r = client.patch(f"{API}/update-account", json={"fullName": "Alice Z", "email": "NEW@b.com"})
    assert r.status_code == 200
    assert r.json()["data"]["email"] == "new@b.com"
    assert r.json()["data"]["fullName"] == "Alice Z"

    r = client.patch(f"{API}/update-account", json={"fullName": "Alice Z", "email": "b@b.com"})
    assert r.status_code == 409


def test_update_avatar_and_cover_image(client, register, image_host):
    register()
    _login(client, email="a@b.com")

    r = client.patch(f"{API}/avatar", files={"avatar": ("new.png", b"img", "image/png")})
    assert r.status_code == 200
    assert r.json()["data"]["avatar"].endswith("new.png")

    r = client.patch(f"{API}/cover-image", files={"coverImage": ("c2.png", b"img", "image/png")})
    assert r.status_code == 200
    assert r.json()["data"]["coverImage"].endswith("c2.png")

    image_host.fail_names.add("bad.png")
    r = client.patch(f"{API}/avatar", files={"avatar": ("bad.png", b"img", "image/png")})
    assert r.status_code == 502


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/health/db").json() == {"ok": True}


@pytest.fixture
def secure_client(settings, image_host):
    app = create_app(settings.model_copy(update={"cookie_secure": True}), database=Database("sqlite://"))
    app.dependency_overrides[get_image_host] = lambda: image_host
    with TestClient(app, base_url="https://testserver") as c:
        yield c


def test_auth_cookies_carry_secure_and_httponly(secure_client):
    secure_client.post(
        f"{API}/register",
        data={"email": "a@b.com", "username": "alice", "fullName": "Alice A", "password": "pw123"},
        files={"avatar": ("avatar.png", b"\x89PNG", "image/png")},
    )

    r = _login(secure_client, email="a@b.com")

    assert r.status_code == 200
    cookies = r.headers.get_list("set-cookie")
    assert len(cookies) == 2
    for header in cookies:
        assert "secure" in header.lower()
        assert "httponly" in header.lower()


def test_upload_spooling_runs_in_threadpool(register, monkeypatch):
    calls = []
    real = user_routes.run_in_threadpool

    async def recording(func, *args, **kwargs):
        calls.append(func.__name__)
        return await real(func, *args, **kwargs)

    monkeypatch.setattr(user_routes, "run_in_threadpool", recording)

    assert register(cover=True).status_code == 201
    assert calls.count("save_upload_to_temp") == 2


def test_bearer_header_wins_over_stale_cookie(client, register):
    register()
    token = _login(client, email="a@b.com").json()["data"]["accessToken"]
    client.cookies.clear()
    client.cookies.set("accessToken", "stale")

    r = client.get(f"{API}/current-user", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200
    assert r.json()["data"]["username"] == "alice"


def test_routes_mounted_under_singular_prefix(client):
    body = {"email": "a@b.com", "password": "x"}

    assert client.post(f"{API}/login", json=body).json()["message"] == "User does not exist"
    r = client.post("/api/v1/users/login", json=body)
    assert r.status_code == 404
    assert r.json()["message"] != "User does not exist"
