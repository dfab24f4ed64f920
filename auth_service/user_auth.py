"""
Resource-owner authentication strategies.

Local password, resource-owner password grant and delegated (federated)
identity all end in the same place: an AuthUser with its tenant status.
"""

from typing import Any, Dict, Optional

from loguru import logger

from auth_service.config import ProviderSettings
from auth_service.domain import AuthUser, Client, UserStatus
from auth_service.errors import (
    ClientInvalid,
    ClientUserMissing,
    InvalidCredentials,
    UserDoesNotExist,
    UserInactive,
    UserNotActive,
)
from auth_service.repository import UserRepository


class UserAuthenticator:
    """Resolves and checks the user behind a login attempt"""

    def __init__(self, users: UserRepository):
        self.users = users

    # ==================== LOCAL ====================

    def authenticate_local(self, username: Optional[str], password: Optional[str]) -> AuthUser:
        if not username or not password:
            raise InvalidCredentials()
        user = self.users.verify_password(username, password)
        if not user:
            raise InvalidCredentials()
        logger.debug(f"[LOGIN] Local credentials accepted for: {username}")
        return user

    # ==================== RESOURCE OWNER GRANT ====================

    def authenticate_resource_owner(
        self, client: Optional[Client], username: Optional[str], password: Optional[str]
    ) -> AuthUser:
        if not client:
            raise ClientInvalid()
        user = self.authenticate_local(username, password)
        if not user.auth_client_ids:
            logger.warning(f"[LOGIN] User {username} has no linked clients")
            raise ClientUserMissing()
        if client.client_id not in user.auth_client_ids:
            logger.warning(f"[LOGIN] User {username} is not linked to client {client.client_id}")
            raise ClientInvalid()
        return user

    # ==================== FEDERATED ====================

    def authenticate_federated(
        self,
        provider: ProviderSettings,
        profile: Dict[str, Any],
        external_auth_token: Optional[str] = None,
        external_refresh_token: Optional[str] = None,
    ) -> AuthUser:
        """Map a provider profile onto a local user"""
        identity = profile.get(provider.identity_claim) or profile.get("email")
        if not identity:
            logger.warning(f"[FEDERATED] {provider.name} profile has no {provider.identity_claim}")
            raise UserDoesNotExist()

        user = self.users.find_by_username(identity)
        if not user and "@" in identity:
            user = self.users.find_by_email(identity)
        if not user:
            logger.warning(f"[FEDERATED] No local user for {provider.name} identity {identity}")
            raise UserDoesNotExist()

        user.external_auth_token = external_auth_token
        user.external_refresh_token = external_refresh_token
        return user

    # ==================== TENANT STATUS ====================

    def ensure_active(self, user: Optional[AuthUser]) -> AuthUser:
        if not user:
            raise ClientInvalid()
        if user.status == UserStatus.REGISTERED:
            logger.info(f"[LOGIN] User {user.username} not active yet")
            raise UserNotActive("User not active yet")
        if user.status != UserStatus.ACTIVE:
            # no membership in the tenant, or deactivated there
            logger.warning(f"[LOGIN] User {user.username} is inactive in tenant {user.tenant_id}")
            raise UserInactive()
        return user
