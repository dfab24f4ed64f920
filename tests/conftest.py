# Shared fixtures: in-memory SQLite, in-memory token cache, seeded clients/users
# and a mock transport standing in for the federated identity providers.

import httpx
import pytest
from fastapi.testclient import TestClient

from apps.api.main import create_app
from auth_service.cache_manager import InMemoryTokenCache
from auth_service.config import AuthSettings, ProviderSettings
from auth_service.container import build_container
from auth_service.domain import DeviceInfo, UserStatus
from auth_service.models import Database

JWT_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"
TENANT_ID = "t1"

WEB_CLIENT = {"client_id": "c1", "secret": "c1-secret-0123456789abcdef", "redirect_url": "https://app.example.com/callback"}
OTHER_CLIENT = {"client_id": "c2", "secret": "c2-secret-fedcba9876543210", "redirect_url": None}

ALICE_PASSWORD = "Passw0rd!"


def _providers():
    return {
        "google": ProviderSettings(
            name="google",
            authorization_url="https://accounts.example.com/o/oauth2/auth",
            token_url="https://accounts.example.com/token",
            userinfo_url="https://accounts.example.com/userinfo",
            client_id="google-app",
            client_secret="google-app-secret",
            callback_url="http://testserver/auth/google-auth-redirect",
            scopes=["profile", "email"],
            identity_claim="email",
            extra_params={"access_type": "offline"},
        ),
        "keycloak": ProviderSettings(
            name="keycloak",
            authorization_url="https://sso.example.com/auth/realms/demo/protocol/openid-connect/auth",
            token_url="https://sso.example.com/auth/realms/demo/protocol/openid-connect/token",
            userinfo_url="https://sso.example.com/auth/realms/demo/protocol/openid-connect/userinfo",
            client_id="keycloak-app",
            client_secret="keycloak-app-secret",
            callback_url="http://testserver/auth/keycloak-auth-redirect",
            scopes=["openid"],
            identity_claim="preferred_username",
        ),
    }


@pytest.fixture
def settings():
    return AuthSettings(jwt_secret=JWT_SECRET, database_url="sqlite://", providers=_providers())


@pytest.fixture
def provider_state():
    """What the fake providers answer; tests mutate it before a callback."""
    return {
        "token_status": 200,
        "tokens": {"access_token": "provider-access", "refresh_token": "provider-refresh"},
        "userinfo_status": 200,
        "profile": {"email": "alice@example.com", "preferred_username": "alice"},
        "requests": [],
    }


@pytest.fixture
def provider_transport(provider_state):
    def handler(request: httpx.Request) -> httpx.Response:
        provider_state["requests"].append(request)
        if request.url.path.endswith("/token"):
            return httpx.Response(provider_state["token_status"], json=provider_state["tokens"])
        if request.url.path.endswith("/userinfo"):
            return httpx.Response(provider_state["userinfo_status"], json=provider_state["profile"])
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture
def container(settings, provider_transport):
    container = build_container(
        settings,
        db=Database("sqlite://"),
        cache=InMemoryTokenCache(),
        http_transport=provider_transport,
    )
    container.clients.create(**WEB_CLIENT)
    container.clients.create(**OTHER_CLIENT)
    container.users.create_tenant("Tenant One", tenant_id=TENANT_ID)
    container.users.create_user(
        "alice",
        ALICE_PASSWORD,
        TENANT_ID,
        email="alice@example.com",
        status=UserStatus.ACTIVE,
        client_ids=["c1"],
        user_id="u1",
        first_name="Alice",
        last_name="Liddell",
    )
    container.users.create_user(
        "bob", "B0bPassword", TENANT_ID, email="bob@example.com", status=UserStatus.REGISTERED,
        client_ids=["c1"], user_id="u2",
    )
    container.users.create_user(
        "carol", "C4rolPassword", TENANT_ID, email="carol@example.com", status=UserStatus.ACTIVE, user_id="u3",
    )
    return container


@pytest.fixture
def web_client(container):
    return container.clients.find_by_client_id("c1")


@pytest.fixture
def device():
    return DeviceInfo(device_id="dev-1", user_agent="pytest")


@pytest.fixture
def app(container):
    return create_app(container)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login_tokens(client):
    """Token pair for alice through the resource-owner grant."""
    response = client.post(
        "/auth/login-token",
        json={
            "client_id": WEB_CLIENT["client_id"],
            "client_secret": WEB_CLIENT["secret"],
            "username": "alice",
            "password": ALICE_PASSWORD,
        },
    )
    assert response.status_code == 200, response.text
    return response.json()
