"""
Token exchange: every login path ends here.

Direct grants hand over an already authenticated user; code grants hand over
an authorization code that is verified against the client's secret. Both
converge on create_access_token_pair.
"""

import secrets
import time
from datetime import datetime, timedelta, timezone

import jwt
from loguru import logger

from auth_service.codes import CODE_ALGORITHM, CodeReader, passthrough_code
from auth_service.config import AuthSettings
from auth_service.domain import (
    AuthUser,
    Client,
    CodePayload,
    DeviceInfo,
    EmbeddedUserPayload,
    RefreshTokenRecord,
    TokenPair,
    payload_from_claims,
)
from auth_service.errors import AuthError, ClientInvalid, CodeExpired, InvalidCredentials, UserDoesNotExist
from auth_service.jwt_payload import JwtPayloadProvider, default_jwt_payload
from auth_service.refresh_tokens import RefreshTokenStore
from auth_service.repository import ClientRepository, UserRepository

ACCESS_TOKEN_ALGORITHM = "HS256"
REFRESH_TOKEN_BYTES = 32


class TokenExchanger:
    """Creates access/refresh token pairs"""

    def __init__(
        self,
        settings: AuthSettings,
        clients: ClientRepository,
        users: UserRepository,
        store: RefreshTokenStore,
        payload_provider: JwtPayloadProvider = default_jwt_payload,
        code_reader: CodeReader = passthrough_code,
    ):
        self.settings = settings
        self.clients = clients
        self.users = users
        self.store = store
        self.payload_provider = payload_provider
        self.code_reader = code_reader

    # ==================== ENTRY POINTS ====================

    def login_with_user(self, client: Client, user: AuthUser, device_info: DeviceInfo) -> TokenPair:
        """Direct grant for an authenticated user+client context"""
        return self.create_access_token_pair(
            EmbeddedUserPayload(client_id=client.client_id, user=user), client, device_info
        )

    def exchange_code(self, client_id: str, code: str, device_info: DeviceInfo) -> TokenPair:
        """Code grant: verify the code with the client's secret, then issue tokens"""
        client = self.clients.find_by_client_id(client_id) if client_id else None
        if not client:
            logger.warning(f"[TOKEN] Code exchange for unknown client: {client_id}")
            raise ClientInvalid()

        try:
            raw_code = self.code_reader(code)
            claims = jwt.decode(
                raw_code,
                client.secret,
                algorithms=[CODE_ALGORITHM],
                audience=client_id,
                issuer=self.settings.jwt_issuer,
                options={"require": ["exp", "aud", "iss"]},
            )
            payload = payload_from_claims(claims)
            if payload.client_id != client_id:
                raise InvalidCredentials()
            if self.settings.single_use_codes:
                self._consume(claims)
        except jwt.ExpiredSignatureError:
            logger.warning(f"[TOKEN] Expired code presented by client {client_id}")
            raise CodeExpired()
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"[TOKEN] Code verification failed for client {client_id}: {type(e).__name__}: {e}")
            raise InvalidCredentials()

        return self.create_access_token_pair(payload, client, device_info)

    def _consume(self, claims: dict):
        jti = claims.get("jti")
        if not jti:
            raise InvalidCredentials()
        ttl = int(claims["exp"] - time.time())
        if not self.store.consume_code(jti, ttl):
            logger.warning(f"[TOKEN] Replayed authorization code {jti}")
            raise InvalidCredentials()

    # ==================== PAIR CREATION ====================

    def _resolve_user(self, payload: CodePayload) -> AuthUser:
        if isinstance(payload, EmbeddedUserPayload):
            return payload.user
        user = self.users.find_by_id(payload.user_id)
        if not user:
            logger.warning(f"[TOKEN] User does not exist: {payload.user_id}")
            raise UserDoesNotExist()
        return user

    def _record_login(self, user_id: str):
        try:
            if self.users.first_time_user(user_id):
                self.users.mark_first_login(user_id)
            else:
                self.users.update_last_login(user_id)
        except Exception as e:
            logger.warning(f"[TOKEN] Could not update login timestamps for {user_id}: {type(e).__name__}: {e}")

    def create_access_token_pair(self, payload: CodePayload, client: Client, device_info: DeviceInfo) -> TokenPair:
        try:
            user = self._resolve_user(payload)
            self._record_login(user.id)

            claims = dict(self.payload_provider(user, client, device_info))
            now = datetime.now(timezone.utc)
            expires_at = now + timedelta(seconds=client.access_token_expiration)
            claims.update(
                {
                    "jti": secrets.token_hex(16),
                    "iss": self.settings.jwt_issuer,
                    "iat": now,
                    "exp": expires_at,
                }
            )
            access_token = jwt.encode(claims, self.settings.jwt_secret, algorithm=ACCESS_TOKEN_ALGORITHM)

            refresh_token = secrets.token_hex(REFRESH_TOKEN_BYTES)
            self.store.save(
                refresh_token,
                RefreshTokenRecord(
                    client_id=client.client_id,
                    user_id=user.id,
                    username=user.username,
                    access_token=access_token,
                    external_auth_token=user.external_auth_token,
                    external_refresh_token=user.external_refresh_token,
                ),
                client.refresh_token_expiration,
            )

            logger.info(f"[TOKEN] Issued token pair for user {user.id} via client {client.client_id}")
            return TokenPair(
                access_token=access_token,
                refresh_token=refresh_token,
                expires=int(expires_at.timestamp() * 1000),
            )
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"[TOKEN] Token creation failed: {type(e).__name__}: {e}")
            raise InvalidCredentials()

    # ==================== VERIFICATION ====================

    def decode_access_token(self, access_token: str) -> dict:
        """Verify an access token's signature, issuer and expiry"""
        return jwt.decode(
            access_token,
            self.settings.jwt_secret,
            algorithms=[ACCESS_TOKEN_ALGORITHM],
            issuer=self.settings.jwt_issuer,
        )
