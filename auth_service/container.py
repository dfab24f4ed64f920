"""
Explicit wiring of the auth components.

build_container() is the only place that decides which implementation backs
which collaborator. The API reads the container from app.state.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from auth_service.cache_manager import TokenCache, build_token_cache
from auth_service.client_auth import ClientAuthenticator
from auth_service.codes import AuthorizationCodeIssuer, CodeReader, CodeWriter, passthrough_code
from auth_service.config import AuthSettings
from auth_service.federated import FederatedLoginBridge
from auth_service.jwt_payload import JwtPayloadProvider, default_jwt_payload
from auth_service.models import Database
from auth_service.password_reset import PasswordResetFlow
from auth_service.refresh_tokens import RefreshTokenStore
from auth_service.repository import ClientRepository, UserRepository
from auth_service.token_exchange import TokenExchanger
from auth_service.user_auth import UserAuthenticator


@dataclass
class AuthContainer:
    settings: AuthSettings
    db: Database
    cache: TokenCache
    clients: ClientRepository
    users: UserRepository
    client_auth: ClientAuthenticator
    user_auth: UserAuthenticator
    code_issuer: AuthorizationCodeIssuer
    refresh_tokens: RefreshTokenStore
    exchanger: TokenExchanger
    federated: FederatedLoginBridge
    password_reset: PasswordResetFlow


def build_container(
    settings: AuthSettings,
    db: Optional[Database] = None,
    cache: Optional[TokenCache] = None,
    payload_provider: JwtPayloadProvider = default_jwt_payload,
    code_reader: CodeReader = passthrough_code,
    code_writer: CodeWriter = passthrough_code,
    http_transport: Optional[httpx.BaseTransport] = None,
) -> AuthContainer:
    db = db or Database(settings.database_url)
    db.init_database()
    cache = cache or build_token_cache(settings.redis_url)

    clients = ClientRepository(db)
    users = UserRepository(db)
    user_auth = UserAuthenticator(users)
    code_issuer = AuthorizationCodeIssuer(settings.jwt_issuer)
    refresh_tokens = RefreshTokenStore(cache, clients, settings.revoked_token_ttl)

    return AuthContainer(
        settings=settings,
        db=db,
        cache=cache,
        clients=clients,
        users=users,
        client_auth=ClientAuthenticator(clients),
        user_auth=user_auth,
        code_issuer=code_issuer,
        refresh_tokens=refresh_tokens,
        exchanger=TokenExchanger(
            settings,
            clients,
            users,
            refresh_tokens,
            payload_provider=payload_provider,
            code_reader=code_reader,
        ),
        federated=FederatedLoginBridge(
            settings,
            clients,
            user_auth,
            code_issuer,
            code_writer=code_writer,
            transport=http_transport,
        ),
        password_reset=PasswordResetFlow(users, refresh_tokens),
    )
