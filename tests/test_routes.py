# End-to-end tests for the /auth API.

from urllib.parse import parse_qs, urlparse

import jwt
import pytest
from fastapi.testclient import TestClient

from apps.api.main import create_app
from tests.conftest import ALICE_PASSWORD, JWT_SECRET, OTHER_CLIENT, WEB_CLIENT


def _login_body(**overrides):
    body = {
        "client_id": WEB_CLIENT["client_id"],
        "client_secret": WEB_CLIENT["secret"],
        "username": "alice",
        "password": ALICE_PASSWORD,
    }
    body.update(overrides)
    return body


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


# ===================== Login =====================


class TestLogin:
    def test_login_returns_code(self, client):
        response = client.post("/auth/login", json=_login_body())
        assert response.status_code == 200
        assert response.json()["code"]

    def test_login_wrong_password(self, client):
        response = client.post("/auth/login", json=_login_body(password="wrong"))
        assert response.status_code == 401
        assert response.json()["detail"] == "InvalidCredentials"

    def test_login_missing_secret(self, client):
        response = client.post("/auth/login", json=_login_body(client_secret=None))
        assert response.status_code == 400
        assert response.json()["detail"] == "ClientSecretMissing"

    def test_login_unknown_client(self, client):
        response = client.post("/auth/login", json=_login_body(client_id="ghost"))
        assert response.status_code == 401
        assert response.json()["detail"] == "ClientInvalid"

    def test_login_registered_user(self, client):
        response = client.post("/auth/login", json=_login_body(username="bob", password="B0bPassword"))
        assert response.status_code == 400
        assert response.json() == {"detail": "UserNotActive", "message": "User not active yet"}

    def test_login_missing_fields(self, client):
        response = client.post("/auth/login", json={"client_id": "c1"})
        assert response.status_code == 422

    def test_login_token_returns_pair(self, client, login_tokens):
        assert set(login_tokens) == {"accessToken", "refreshToken", "expires"}
        claims = jwt.decode(login_tokens["accessToken"], JWT_SECRET, algorithms=["HS256"], issuer="auth-service")
        assert claims["username"] == "alice"

    def test_login_token_device_info(self, client):
        response = client.post(
            "/auth/login-token",
            json=_login_body(),
            headers={"device_id": "phone-42", "User-Agent": "MobileApp/1.0"},
        )
        claims = jwt.decode(response.json()["accessToken"], options={"verify_signature": False})
        assert claims["deviceInfo"] == {"deviceId": "phone-42", "userAgent": "MobileApp/1.0"}

    def test_login_token_unlinked_user(self, client):
        response = client.post("/auth/login-token", json=_login_body(username="carol", password="C4rolPassword"))
        assert response.status_code == 422
        assert response.json()["detail"] == "ClientUserMissing"

    def test_login_token_other_client(self, client):
        body = _login_body(client_id=OTHER_CLIENT["client_id"], client_secret=OTHER_CLIENT["secret"])
        response = client.post("/auth/login-token", json=body)
        assert response.status_code == 401
        assert response.json()["detail"] == "ClientInvalid"


# ===================== Code grant =====================


class TestTokenEndpoints:
    def test_code_round_trip(self, client):
        code = client.post("/auth/login", json=_login_body()).json()["code"]
        response = client.post("/auth/token", json={"code": code, "clientId": "c1"})
        assert response.status_code == 200

        me = client.get("/auth/me", headers=_bearer(response.json()["accessToken"]))
        assert me.status_code == 200
        assert me.json()["userId"] == "u1"

    def test_code_replay(self, client):
        code = client.post("/auth/login", json=_login_body()).json()["code"]
        assert client.post("/auth/token", json={"code": code, "clientId": "c1"}).status_code == 200
        replay = client.post("/auth/token", json={"code": code, "clientId": "c1"})
        assert replay.status_code == 401
        assert replay.json()["detail"] == "InvalidCredentials"

    def test_code_for_other_client(self, client):
        code = client.post("/auth/login", json=_login_body()).json()["code"]
        response = client.post("/auth/token", json={"code": code, "clientId": "c2"})
        assert response.status_code == 401

    def test_refresh_rotation(self, client, login_tokens):
        response = client.post("/auth/token-refresh", json={"refreshToken": login_tokens["refreshToken"]})
        assert response.status_code == 200
        rotated = response.json()
        assert rotated["refreshToken"] != login_tokens["refreshToken"]

        old = client.get("/auth/me", headers=_bearer(login_tokens["accessToken"]))
        assert old.status_code == 401
        assert old.json()["detail"] == "TokenRevoked"
        assert client.get("/auth/me", headers=_bearer(rotated["accessToken"])).status_code == 200

    def test_two_logins_rotate_independently(self, client, login_tokens):
        other = client.post("/auth/login-token", json=_login_body()).json()
        rotated = client.post("/auth/token-refresh", json={"refreshToken": login_tokens["refreshToken"]}).json()

        assert client.get("/auth/me", headers=_bearer(rotated["accessToken"])).status_code == 200
        assert client.get("/auth/me", headers=_bearer(other["accessToken"])).status_code == 200

    def test_refresh_token_reuse(self, client, login_tokens):
        client.post("/auth/token-refresh", json={"refreshToken": login_tokens["refreshToken"]})
        response = client.post("/auth/token-refresh", json={"refreshToken": login_tokens["refreshToken"]})
        assert response.status_code == 401
        assert response.json()["detail"] == "TokenExpired"


# ===================== Session =====================


class TestMe:
    def test_me_strips_device_info(self, client, login_tokens):
        body = client.get("/auth/me", headers=_bearer(login_tokens["accessToken"])).json()
        assert body["username"] == "alice"
        assert "deviceInfo" not in body

    def test_me_without_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "TokenInvalid"

    def test_me_with_garbage_token(self, client):
        assert client.get("/auth/me", headers=_bearer("garbage")).status_code == 401

    def test_me_with_foreign_signature(self, client):
        token = jwt.encode({"username": "alice", "iss": "auth-service"}, "another-secret-entirely", algorithm="HS256")
        assert client.get("/auth/me", headers=_bearer(token)).json()["detail"] == "TokenInvalid"


class TestChangePassword:
    def test_change_password_ends_session(self, client, login_tokens):
        response = client.patch(
            "/auth/change-password",
            json={"refreshToken": login_tokens["refreshToken"], "username": "alice", "password": "N3wPassword!"},
            headers=_bearer(login_tokens["accessToken"]),
        )
        assert response.status_code == 200
        assert response.json() == {"success": True}

        assert client.get("/auth/me", headers=_bearer(login_tokens["accessToken"])).status_code == 401
        refresh = client.post("/auth/token-refresh", json={"refreshToken": login_tokens["refreshToken"]})
        assert refresh.status_code == 401
        assert client.post("/auth/login", json=_login_body(password="N3wPassword!")).status_code == 200

    def test_change_password_for_someone_else(self, client, login_tokens):
        response = client.patch(
            "/auth/change-password",
            json={"refreshToken": login_tokens["refreshToken"], "username": "bob", "password": "x"},
            headers=_bearer(login_tokens["accessToken"]),
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "NotAllowedAccess"

    def test_change_password_wrong_old_password(self, client, login_tokens):
        response = client.patch(
            "/auth/change-password",
            json={
                "refreshToken": login_tokens["refreshToken"],
                "username": "alice",
                "password": "N3wPassword!",
                "oldPassword": "nope",
            },
            headers=_bearer(login_tokens["accessToken"]),
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "WrongPassword"

    def test_change_password_requires_bearer(self, client, login_tokens):
        response = client.patch(
            "/auth/change-password",
            json={"refreshToken": login_tokens["refreshToken"], "username": "alice", "password": "x"},
        )
        assert response.status_code == 401


# ===================== Federated =====================


class TestFederatedRoutes:
    def test_post_login_redirects_to_provider(self, client):
        response = client.post(
            "/auth/google",
            data={"client_id": WEB_CLIENT["client_id"], "client_secret": WEB_CLIENT["secret"]},
            follow_redirects=False,
        )
        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert location.netloc == "accounts.example.com"
        assert parse_qs(location.query)["state"] == ["client_id=c1"]

    def test_post_login_bad_secret(self, client):
        response = client.post(
            "/auth/keycloak",
            data={"client_id": WEB_CLIENT["client_id"], "client_secret": "wrong"},
            follow_redirects=False,
        )
        assert response.status_code == 401

    def test_deprecated_get_login_disabled_by_default(self, client):
        response = client.get(
            "/auth/google",
            params={"client_id": WEB_CLIENT["client_id"], "client_secret": WEB_CLIENT["secret"]},
            follow_redirects=False,
        )
        assert response.status_code == 405

    def test_deprecated_get_login_when_enabled(self, container):
        from dataclasses import replace

        container.settings = replace(container.settings, enable_deprecated_get_login=True)
        client = TestClient(create_app(container))
        response = client.get(
            "/auth/google",
            params={"client_id": WEB_CLIENT["client_id"], "client_secret": WEB_CLIENT["secret"]},
            follow_redirects=False,
        )
        assert response.status_code == 302

    def test_callback_then_token(self, client):
        response = client.get(
            "/auth/google-auth-redirect",
            params={"code": "provider-code", "state": "client_id=c1"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith(WEB_CLIENT["redirect_url"])

        code = parse_qs(urlparse(location).query)["code"][0]
        tokens = client.post("/auth/token", json={"code": code, "clientId": "c1"}).json()
        me = client.get("/auth/me", headers=_bearer(tokens["accessToken"])).json()
        assert me["userId"] == "u1"

    def test_form_post_callback(self, client, provider_state):
        provider_state["profile"] = {"preferred_username": "alice"}
        response = client.post(
            "/auth/keycloak-auth-redirect",
            data={"code": "kc-code", "state": "client_id=c1"},
            follow_redirects=False,
        )
        assert response.status_code == 302

    def test_callback_unknown_client(self, client):
        response = client.get(
            "/auth/google-auth-redirect",
            params={"code": "provider-code", "state": "client_id=ghost"},
            follow_redirects=False,
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "ClientInvalid"

    def test_unconfigured_provider(self, settings):
        from dataclasses import replace

        from auth_service.cache_manager import InMemoryTokenCache
        from auth_service.container import build_container
        from auth_service.models import Database

        bare = build_container(replace(settings, providers={}), db=Database("sqlite://"), cache=InMemoryTokenCache())
        client = TestClient(create_app(bare))
        response = client.post("/auth/google", data={"client_id": "c1", "client_secret": "x"}, follow_redirects=False)
        assert response.status_code == 404
        assert response.json()["detail"] == "ProviderNotConfigured"


class TestAppShell:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_auth_responses_not_cached(self, client):
        response = client.post("/auth/login", json=_login_body())
        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
