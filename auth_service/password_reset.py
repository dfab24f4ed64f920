"""
Password change for a logged-in session.

The session is validated against its refresh-token record, the credential is
updated, and the session is then terminated: the caller has to log in again.
"""

from typing import Any, Dict, Optional

from loguru import logger

from auth_service.domain import UserStatus
from auth_service.errors import (
    NotAllowedAccess,
    PasswordInvalid,
    TokenExpired,
    TokenInvalid,
    TokenMissing,
    UnableToSetPassword,
    UserInactive,
)
from auth_service.refresh_tokens import RefreshTokenStore
from auth_service.repository import UserRepository


class PasswordResetFlow:
    def __init__(self, users: UserRepository, store: RefreshTokenStore):
        self.users = users
        self.store = store

    def reset_password(
        self,
        bearer_token: Optional[str],
        refresh_token: Optional[str],
        username: Optional[str],
        password: Optional[str],
        current_user: Dict[str, Any],
        old_password: Optional[str] = None,
    ) -> Dict[str, bool]:
        if not bearer_token or not refresh_token:
            raise TokenMissing()

        record = self.store.get(refresh_token)
        if not record:
            raise TokenExpired()
        if record.access_token != bearer_token:
            logger.warning(f"[RESET_PWD] Bearer does not belong to refresh token of {record.username}")
            raise TokenInvalid()

        if record.username != username or current_user.get("username") != username:
            logger.warning(f"[RESET_PWD] Username mismatch for {current_user.get('username')} -> {username}")
            raise NotAllowedAccess()

        if not password:
            raise PasswordInvalid()

        if old_password:
            user = self.users.update_password(username, old_password, password)
        else:
            user = self.users.change_password(username, password)
        if not user:
            raise UnableToSetPassword("Unable to set password !")

        user_tenant = self.users.find_user_tenant(user.id, current_user.get("tenantId"))
        if not user_tenant:
            raise UserInactive()
        if user_tenant.status < UserStatus.ACTIVE:
            self.users.set_tenant_status(user.id, user_tenant.tenant_id, UserStatus.ACTIVE)

        self.store.revoke_access_token(bearer_token)
        if not self.store.delete(refresh_token):
            logger.warning(f"[RESET_PWD] Refresh token of {username} was already consumed")

        logger.info(f"[RESET_PWD] Password changed for {username}; session terminated")
        return {"success": True}
