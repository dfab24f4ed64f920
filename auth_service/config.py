"""
Runtime configuration for the auth service.

Everything is read once from the environment (a .env file is honoured)
and frozen into AuthSettings, which is passed to the components that need it.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import dotenv
from loguru import logger


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ProviderSettings:
    """Endpoints and credentials of one federated identity provider"""

    name: str
    authorization_url: str
    token_url: str
    userinfo_url: str
    client_id: str
    client_secret: str
    callback_url: str
    scopes: List[str] = field(default_factory=list)
    # email for Google, preferred_username for Keycloak
    identity_claim: str = "email"
    extra_params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthSettings:
    """Immutable service configuration built at startup"""

    jwt_secret: str
    jwt_issuer: str = "auth-service"
    database_url: str = "sqlite:///./auth.db"
    redis_url: Optional[str] = None
    revoked_token_ttl: int = 3600
    single_use_codes: bool = True
    enable_deprecated_get_login: bool = False
    http_timeout: float = 10.0
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)

    def provider(self, name: str) -> Optional[ProviderSettings]:
        return self.providers.get(name)

    @classmethod
    def from_env(cls) -> "AuthSettings":
        """Build settings from environment variables"""
        dotenv.load_dotenv()

        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        if len(jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")

        providers = {}
        google = _google_from_env()
        if google:
            providers[google.name] = google
        keycloak = _keycloak_from_env()
        if keycloak:
            providers[keycloak.name] = keycloak

        settings = cls(
            jwt_secret=jwt_secret,
            jwt_issuer=os.getenv("JWT_ISSUER", "auth-service"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./auth.db"),
            redis_url=os.getenv("REDIS_URL") or None,
            revoked_token_ttl=int(os.getenv("REVOKED_TOKEN_TTL", "3600")),
            single_use_codes=_env_bool("SINGLE_USE_AUTH_CODES", True),
            enable_deprecated_get_login=_env_bool("ENABLE_DEPRECATED_GET_LOGIN", False),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "10")),
            providers=providers,
        )
        logger.info(
            f"Auth settings loaded: issuer={settings.jwt_issuer}, "
            f"providers={sorted(providers)}, redis={'yes' if settings.redis_url else 'no'}"
        )
        return settings


def _google_from_env() -> Optional[ProviderSettings]:
    client_id = os.getenv("GOOGLE_AUTH_CLIENT_ID")
    if not client_id:
        return None
    return ProviderSettings(
        name="google",
        authorization_url=os.getenv("GOOGLE_AUTH_URL", "https://accounts.google.com/o/oauth2/v2/auth"),
        token_url=os.getenv("GOOGLE_AUTH_TOKEN_URL", "https://oauth2.googleapis.com/token"),
        userinfo_url=os.getenv("GOOGLE_AUTH_USERINFO_URL", "https://www.googleapis.com/oauth2/v3/userinfo"),
        client_id=client_id,
        client_secret=os.getenv("GOOGLE_AUTH_CLIENT_SECRET", ""),
        callback_url=os.getenv("GOOGLE_AUTH_CALLBACK_URL", ""),
        scopes=["profile", "email"],
        identity_claim="email",
        extra_params={"access_type": "offline"},
    )


def _keycloak_from_env() -> Optional[ProviderSettings]:
    host = os.getenv("KEYCLOAK_HOST")
    realm = os.getenv("KEYCLOAK_REALM")
    if not host or not realm:
        return None
    base = f"{host.rstrip('/')}/auth/realms/{realm}/protocol/openid-connect"
    return ProviderSettings(
        name="keycloak",
        authorization_url=f"{base}/auth",
        token_url=f"{base}/token",
        userinfo_url=f"{base}/userinfo",
        client_id=os.getenv("KEYCLOAK_CLIENT_ID", ""),
        client_secret=os.getenv("KEYCLOAK_CLIENT_SECRET", ""),
        callback_url=os.getenv("KEYCLOAK_CALLBACK_URL", ""),
        scopes=["openid"],
        identity_claim="preferred_username",
    )
