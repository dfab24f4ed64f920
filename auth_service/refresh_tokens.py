"""
Refresh-token records, rotation and access-token revocation.

Records are created once per issuance and deleted on rotation or password
reset; they are never updated in place. Rotation takes the record with an
atomic fetch-and-delete, so a refresh token can be exchanged at most once.
"""

import time
from typing import Optional

import jwt
from loguru import logger

from auth_service.cache_manager import TokenCache
from auth_service.domain import DeviceInfo, RefreshTokenRecord, TokenPair, UserIdPayload
from auth_service.errors import ClientInvalid, TokenExpired
from auth_service.repository import ClientRepository

REFRESH_PREFIX = "refresh_token:"
REVOKED_PREFIX = "revoked:"
USED_CODE_PREFIX = "used_code:"


def _short(token: str) -> str:
    return f"{token[:8]}..." if token else "<none>"


class RefreshTokenStore:
    """Persists refresh-token records and the revocation list"""

    def __init__(self, cache: TokenCache, clients: ClientRepository, revoked_token_ttl: int = 3600):
        self.cache = cache
        self.clients = clients
        self.revoked_token_ttl = revoked_token_ttl

    # ==================== RECORDS ====================

    def save(self, refresh_token: str, record: RefreshTokenRecord, ttl: int):
        self.cache.set(REFRESH_PREFIX + refresh_token, record.to_dict(), ttl)
        logger.debug(f"[REFRESH] Stored {_short(refresh_token)} for user {record.user_id}, ttl {ttl}s")

    def get(self, refresh_token: str) -> Optional[RefreshTokenRecord]:
        data = self.cache.get(REFRESH_PREFIX + refresh_token)
        return RefreshTokenRecord.from_dict(data) if data else None

    def take(self, refresh_token: str) -> Optional[RefreshTokenRecord]:
        """Fetch and delete in one step"""
        data = self.cache.pop(REFRESH_PREFIX + refresh_token)
        return RefreshTokenRecord.from_dict(data) if data else None

    def delete(self, refresh_token: str) -> bool:
        return self.cache.delete(REFRESH_PREFIX + refresh_token)

    # ==================== REVOCATION ====================

    def _remaining_lifetime(self, access_token: str) -> int:
        try:
            claims = jwt.decode(access_token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return self.revoked_token_ttl
        exp = claims.get("exp")
        if not exp:
            return self.revoked_token_ttl
        # keep a short entry even for tokens that are already past exp
        return max(int(exp - time.time()), 1)

    def revoke_access_token(self, access_token: str):
        ttl = self._remaining_lifetime(access_token)
        self.cache.set(REVOKED_PREFIX + access_token, {"token": access_token}, ttl)
        logger.info(f"[REVOKE] Access token {_short(access_token)} revoked for {ttl}s")

    def is_revoked(self, access_token: str) -> bool:
        return self.cache.exists(REVOKED_PREFIX + access_token)

    # ==================== AUTHORIZATION CODES ====================

    def consume_code(self, jti: str, ttl: int) -> bool:
        """Record a code id as used. False if it was already used."""
        return self.cache.add(USED_CODE_PREFIX + jti, {"jti": jti}, max(ttl, 1))

    # ==================== ROTATION ====================

    def exchange_token(self, refresh_token: str, device_info: DeviceInfo, exchanger) -> TokenPair:
        """Rotate a refresh token into a fresh token pair"""
        record = self.take(refresh_token) if refresh_token else None
        if not record:
            logger.warning(f"[REFRESH] Unknown or expired refresh token {_short(refresh_token)}")
            raise TokenExpired()

        # the record is gone now, so its access token goes with it
        self.revoke_access_token(record.access_token)

        client = self.clients.find_by_client_id(record.client_id)
        if not client:
            logger.warning(f"[REFRESH] Client {record.client_id} no longer exists")
            raise ClientInvalid()

        logger.info(f"[REFRESH] Rotating refresh token for user {record.user_id}")

        return exchanger.create_access_token_pair(
            UserIdPayload(client_id=record.client_id, user_id=record.user_id),
            client,
            device_info,
        )
